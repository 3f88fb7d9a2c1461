"""SSO login for Garmin Connect.

There is no public API for this, so the flow replays what a browser does:

1. probe the "current user" endpoint with the stored cookies
2. GET the SSO login page and scrape its CSRF token
3. POST the credentials and scrape the service ticket from the response
4. POST the ticket to the portal, which answers 302 and sets session cookies
5. follow that redirect
6. reopen the connection so the new cookies are used from a clean client

Any failure in steps 2-5 aborts the whole flow; nothing is retried here.
"""
from __future__ import annotations

import json
import re
from typing import Callable, Optional, Union

import structlog

from .config import PortalConfig
from .errors import AuthenticationError, UnexpectedResponseCode
from .params import EQUAL, AuthParameters, QueryParams
from .session import HttpSession
from .utils import redact

logger = structlog.get_logger()

HTTP_OK = 200
HTTP_FOUND = 302

CSRF_PATTERN = re.compile(r'name="_csrf" value="([^"]*)"')
TICKET_PATTERN = re.compile(r'ticket=([^"]+)"')
LOCKED_PATTERN = re.compile(r"locked")

TokenExtractor = Callable[[str, Union[str, re.Pattern[str]]], Optional[str]]


def extract_token(body: str, pattern: Union[str, re.Pattern[str]]) -> Optional[str]:
    """Return the first capture group of ``pattern`` in ``body`` (whole match if it has none)."""
    match = re.search(pattern, body or "")
    if match is None:
        return None
    return match.group(1) if match.re.groups else match.group(0)


def parse_username(body: str) -> Optional[str]:
    """Username from a user-info JSON body, or None when the body is not usable."""
    try:
        data = json.loads(body)
    except (TypeError, ValueError):
        return None
    if not isinstance(data, dict):
        return None
    username = data.get("username")
    if not isinstance(username, str) or not username.strip():
        return None
    return username


class AuthenticationFlow:
    def __init__(
        self,
        session: HttpSession,
        config: Optional[PortalConfig] = None,
        extractor: TokenExtractor = extract_token,
    ):
        self.session = session
        self.config = config or PortalConfig()
        self._extract = extractor

    def probe(self) -> bool:
        """True when the stored cookies still identify a logged-in user.

        A stale session is wiped and reopened so the SSO flow starts clean.
        """
        body, meta = self.session.get(self.config.user_info_url)
        if meta.status == HTTP_OK and parse_username(body):
            logger.info("session_reused", identity=self.session.identity[:8])
            return True

        logger.info("session_stale", identity=self.session.identity[:8], status=meta.status)
        self.session.close()
        self.session.refresh()
        return False

    def login(self, username: str, password: str) -> None:
        session = self.session
        sso_url = self.config.sso_url
        params = self.config.sso_params()

        # prestart: login page with the CSRF token
        body, meta = session.get(sso_url, params)
        logger.info("sso_prestart", status=meta.status)
        if meta.status != HTTP_OK:
            raise AuthenticationError(
                f"SSO prestart error (code: {meta.status}, message: {body})",
                status=meta.status,
                body=body,
            )
        csrf = self._extract(body, CSRF_PATTERN)
        if csrf is None:
            raise AuthenticationError("Unable to find CSRF input in login form", status=meta.status)

        # credentials -> service ticket
        form = (
            AuthParameters(self.config.auth_fields)
            .username(username)
            .password(password)
            .csrf(csrf)
        )
        body, meta = session.post(
            sso_url,
            params,
            form,
            follow_redirects=False,
            referer=f"{sso_url}?{params.build()}",
        )
        ticket = self._extract(body, TICKET_PATTERN)
        if ticket is None:
            message = "Authentication failed - please check your credentials"
            if self._extract(body, LOCKED_PATTERN) is not None:
                message = (
                    "Authentication failed, and it looks like your account has been locked. "
                    f"Please access {self.config.base_url} to unlock"
                )
            logger.warning("sso_login_failed", username=redact(username), status=meta.status)
            session.close()
            raise AuthenticationError(message, status=meta.status)
        logger.info("sso_ticket_received", username=redact(username))

        # ticket -> portal session cookies
        ticket_params = QueryParams().set("ticket", EQUAL, ticket)
        _, meta = session.post(self.config.modern_url, ticket_params, follow_redirects=False)
        if meta.status != HTTP_FOUND:
            raise UnexpectedResponseCode(meta.status)
        if not meta.redirect_target:
            raise AuthenticationError("Ticket redemption redirected without a Location header", status=meta.status)

        _, meta = session.get(meta.redirect_target, follow_redirects=True)
        if meta.status not in (HTTP_OK, HTTP_FOUND):
            raise UnexpectedResponseCode(meta.status)

        session.refresh()
        logger.info("sso_login_complete", username=redact(username))
