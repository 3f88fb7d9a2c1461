from __future__ import annotations

import json
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qsl

import httpx
import pytest

from garmin_portal import PortalClient

USERNAME = "runner@example.com"
PASSWORD = "s3cret pass"
CSRF = "csrf-token-123"
TICKET = "ST-0042-abc-cas"
SESSION_COOKIE = "SESSIONID=good"

LOGIN_PAGE = (
    '<form method="post"><input type="hidden" name="_csrf" value="%s" />'
    '<input name="username"/></form>' % CSRF
)
TICKET_PAGE = (
    '<script>var response_url = "https://connect.garmin.com/modern/?ticket=%s";</script>' % TICKET
)


class FakePortal:
    """Stand-in for sso.garmin.com and connect.garmin.com behind httpx.MockTransport."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.prestart_status = 200
        self.login_page = LOGIN_PAGE
        self.locked = False
        self.redemption_status = 302
        self.completion_status = 200
        self.profile_username = "runner"
        self.activities: List[dict] = []
        self.data: Dict[str, Any] = {}
        self.raw: Dict[str, str] = {}
        self.data_status = 200

    # ---------- helpers for assertions ----------

    def calls(self, host: Optional[str] = None, path: Optional[str] = None, method: Optional[str] = None):
        return [
            r for r in self.requests
            if (host is None or r.url.host == host)
            and (path is None or r.url.path == path)
            and (method is None or r.method == method)
        ]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    # ---------- routing ----------

    def _logged_in(self, request: httpx.Request) -> bool:
        return SESSION_COOKIE in request.headers.get("cookie", "")

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        host, path = request.url.host, request.url.path

        if host == "sso.garmin.com" and path == "/sso/login":
            if request.method == "GET":
                return httpx.Response(self.prestart_status, text=self.login_page)
            return self._login(request)

        if host != "connect.garmin.com":
            return httpx.Response(404)

        if path == "/modern/" and request.method == "POST":
            if request.url.params.get("ticket") != TICKET:
                return httpx.Response(400, text="bad ticket")
            if self.redemption_status != 302:
                return httpx.Response(self.redemption_status, text="nope")
            return httpx.Response(
                302,
                headers={
                    "Location": "/modern/",
                    "Set-Cookie": f"{SESSION_COOKIE}; Path=/",
                },
            )

        if path == "/modern/" and request.method == "GET":
            return httpx.Response(self.completion_status, text="<html>dashboard</html>")

        if not self._logged_in(request):
            return httpx.Response(401, text="")

        if path == "/modern/currentuser-service/user/info":
            return httpx.Response(200, json={"username": self.profile_username})

        if self.data_status != 200:
            return httpx.Response(self.data_status, text="error")

        if path == "/proxy/activitylist-service/activities/search/activities":
            start = int(request.url.params.get("start", 0))
            limit = int(request.url.params.get("limit", 20))
            return httpx.Response(200, json=self.activities[start:start + limit])

        if path.startswith("/proxy/download-service/export/"):
            return httpx.Response(200, text="<gpx>track</gpx>")

        if path in self.raw:
            return httpx.Response(200, text=self.raw[path])
        if path in self.data:
            return httpx.Response(200, text=json.dumps(self.data[path]))
        return httpx.Response(404, text="")

    def _login(self, request: httpx.Request) -> httpx.Response:
        form = dict(parse_qsl(request.content.decode()))
        if self.locked:
            return httpx.Response(200, text="<p>Your account is locked.</p>")
        if (
            form.get("username") == USERNAME
            and form.get("password") == PASSWORD
            and form.get("_csrf") == CSRF
        ):
            return httpx.Response(200, text=TICKET_PAGE)
        return httpx.Response(200, text="<p>Invalid sign in.</p>")


@pytest.fixture
def portal() -> FakePortal:
    return FakePortal()


@pytest.fixture
def make_client(portal: FakePortal, tmp_path):
    def _make(username: Optional[str] = USERNAME, password: Optional[str] = PASSWORD, **kwargs: Any) -> PortalClient:
        kwargs.setdefault("session_dir", tmp_path)
        kwargs.setdefault("transport", portal.transport())
        return PortalClient(username, password, **kwargs)

    return _make


@pytest.fixture
def client(make_client, portal: FakePortal) -> PortalClient:
    """A logged-in client with the login traffic already discarded."""
    c = make_client()
    portal.requests.clear()
    return c
