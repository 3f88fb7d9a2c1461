from __future__ import annotations

import datetime as dt
import json
import os
from typing import Any, Callable, List, Optional, Union

import httpx
import structlog

from .auth import HTTP_OK, AuthenticationFlow, parse_username
from .config import PortalConfig, Settings, get_settings
from .errors import InvalidParameter, MalformedResponse, MissingCredentials, UnexpectedResponseCode
from .params import EQUAL, ActivityFilter, QueryParams
from .session import DEFAULT_TIMEOUT, HttpSession, identity_key
from .utils import iso_date, redact, today

logger = structlog.get_logger()

DATA_TYPE_CSV = "csv"
DATA_TYPE_TCX = "tcx"
DATA_TYPE_GPX = "gpx"
DATA_TYPE_GOOGLE_EARTH = "kml"
DATA_TYPES = frozenset({DATA_TYPE_CSV, DATA_TYPE_TCX, DATA_TYPE_GPX, DATA_TYPE_GOOGLE_EARTH})

DEFAULT_PAGE_SIZE = 100


class PortalClient:
    """Logged-in view of one Garmin Connect account.

    Construction either reuses the cookie session stored for ``username``
    (no password needed) or runs the SSO login, which needs ``password``.
    ``reset_session=True`` always discards the stored cookies first.
    """

    def __init__(
        self,
        username: Optional[str],
        password: Optional[str] = None,
        *,
        reset_session: bool = False,
        config: Optional[PortalConfig] = None,
        session_dir: Union[str, os.PathLike, None] = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
        throttle: Optional[Callable[[], None]] = None,
    ):
        if not username or not username.strip():
            raise MissingCredentials("Username credential missing")

        self.username = username
        self.config = config or PortalConfig()
        self.throttle = throttle
        self.session = HttpSession(
            identity_key(username),
            session_dir,
            timeout=timeout,
            headers={"User-Agent": self.config.user_agent},
            transport=transport,
        )
        self._auth = AuthenticationFlow(self.session, self.config)

        try:
            self._authenticate(username, password, reset_session)
        except BaseException:
            self.session.release()
            raise

    def _authenticate(self, username: str, password: Optional[str], reset_session: bool) -> None:
        if reset_session:
            logger.info("session_reset", username=redact(username))
            self.session.clear_session()
        elif self._auth.probe():
            return

        if not password:
            raise MissingCredentials("Password credential missing")
        self._auth.login(username, password)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **kwargs: Any) -> "PortalClient":
        settings = settings or get_settings()
        kwargs.setdefault("config", PortalConfig.from_settings(settings))
        kwargs.setdefault("session_dir", settings.GARMIN_SESSION_DIR)
        kwargs.setdefault("timeout", settings.GARMIN_HTTP_TIMEOUT)
        return cls(settings.GARMIN_USERNAME, settings.GARMIN_PASSWORD, **kwargs)

    # --------------------------- Transport helpers ---------------------------

    def _get_raw(
        self,
        path: str,
        params: Optional[QueryParams] = None,
        follow_redirects: bool = True,
    ) -> str:
        body, meta = self.session.get(self.config.url(path), params, follow_redirects)
        if meta.status != HTTP_OK:
            raise UnexpectedResponseCode(meta.status, body)
        return body

    def _get(
        self,
        path: str,
        params: Optional[QueryParams] = None,
        follow_redirects: bool = True,
    ) -> Any:
        body = self._get_raw(path, params, follow_redirects)
        try:
            return json.loads(body)
        except ValueError as e:
            raise MalformedResponse(f"Invalid JSON from {path}: {e}") from e

    # --------------------------- Activities ---------------------------

    def get_activity_types(self) -> Any:
        return self._get("/proxy/activity-service/activity/activityTypes", follow_redirects=False)

    def get_activity_count(self) -> Any:
        return self._get("/proxy/activitylist-service/activities/count", follow_redirects=False)

    def get_activity_list(self, activity_filter: Optional[ActivityFilter] = None) -> List[dict]:
        return self._get(
            "/proxy/activitylist-service/activities/search/activities",
            activity_filter,
        )

    def get_all_activity_list(
        self,
        activity_filter: Optional[ActivityFilter] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> List[dict]:
        """Every activity matching the filter, fetched page by page.

        Stops at the first page holding fewer than ``page_size`` items.
        """
        # work on a copy, start/limit are overwritten for every page
        page_filter = ActivityFilter()
        if activity_filter is not None:
            for name, (operator, value) in activity_filter.items():
                page_filter.set(name, operator, value)
        page_filter.limit(page_size)

        activities: List[dict] = []
        page = 0
        while True:
            if self.throttle is not None:
                self.throttle()
            page_filter.start(page * page_size)
            found = self.get_activity_list(page_filter) or []
            activities.extend(found)
            logger.debug("activity_page", page=page, count=len(found))
            page += 1
            if len(found) < page_size:
                break
        return activities

    def get_activity_summary(self, activity_id: int) -> Any:
        return self._get(f"/proxy/activity-service/activity/{activity_id}")

    def get_activity_details(self, activity_id: int) -> Any:
        params = (
            QueryParams()
            .set("maxChartSize", EQUAL, 100)
            .set("maxPolylineSize", EQUAL, 100)
        )
        return self._get(f"/proxy/activity-service/activity/{activity_id}/details", params)

    def get_extended_activity_details(self, activity_id: int) -> Any:
        return self._get(f"/proxy/activity-service/activity/{activity_id}/details")

    def get_data_file(self, data_type: str, activity_id: int) -> str:
        """Raw export of an activity as csv, tcx, gpx or kml."""
        if data_type not in DATA_TYPES:
            raise InvalidParameter(f"Unsupported data type: {data_type!r}")
        return self._get_raw(f"/proxy/download-service/export/{data_type}/activity/{activity_id}")

    # --------------------------- Gear ---------------------------

    def get_user_gear_list(self) -> Any:
        return self._get("/proxy/userstats-service/gears/all", follow_redirects=False)

    def get_user_gear(self, uuid: str) -> Any:
        return self._get(f"/proxy/gear-service/gear/{uuid}", follow_redirects=False)

    def get_activity_gear(self, activity_id: int) -> Any:
        params = QueryParams().set("activityId", EQUAL, activity_id)
        return self._get("/proxy/gear-service/gear/filterGear", params)

    # --------------------------- User / wellness ---------------------------

    def get_username(self) -> str:
        username = parse_username(self._get_raw("/modern/currentuser-service/user/info"))
        if username is None:
            raise MalformedResponse("User info response has no username")
        return username

    def get_wellness_daily_summary(self, day: Optional[dt.date] = None) -> Any:
        day = day or today(self.config.timezone)
        return self._get(
            f"/proxy/wellness-service/wellness/dailySummary/{iso_date(day)}/{self.get_username()}"
        )

    # --------------------------- Lifecycle ---------------------------

    def logout(self) -> None:
        """Close the connection and delete the stored session."""
        self.session.close()

    def __enter__(self) -> "PortalClient":
        return self

    def __exit__(self, *args: object) -> None:
        self.session.release()
