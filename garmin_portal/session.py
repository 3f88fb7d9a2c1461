"""Browser-like HTTP session with a cookie jar persisted per identity.

The jar lives in ``<session_dir>/GarminCookie_<identity>`` (LWP format) and is
written back after every request, so a later process can pick the session up
again. There is no file locking: one writer per cookie file.
"""
from __future__ import annotations

import hashlib
import os
import tempfile
from dataclasses import dataclass
from http.cookiejar import LoadError, LWPCookieJar
from pathlib import Path
from typing import Mapping, Optional, Tuple, Union

import httpx
import structlog

from .errors import InvalidParameter, TransportError
from .params import QueryParams

logger = structlog.get_logger()

COOKIE_PREFIX = "GarminCookie_"
DEFAULT_TIMEOUT = 30.0


def identity_key(username: str) -> str:
    """One-way key for a username; names the session file."""
    if not username or not username.strip():
        raise InvalidParameter("Identifier isn't valid")
    return hashlib.sha256(username.encode("utf-8")).hexdigest()


def _without_query(url: str) -> str:
    # query strings may carry tickets, keep them out of the logs
    return url.split("?", 1)[0]


@dataclass(frozen=True)
class ResponseMeta:
    status: int
    url: str
    redirect_target: Optional[str] = None


class HttpSession:
    def __init__(
        self,
        identity: str,
        session_dir: Union[str, os.PathLike, None] = None,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        headers: Optional[Mapping[str, str]] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        if not identity or not identity.strip():
            raise InvalidParameter("Identifier isn't valid")

        self.identity = identity
        self.session_dir = Path(session_dir) if session_dir else Path(tempfile.gettempdir())
        self.cookie_file = self.session_dir / f"{COOKIE_PREFIX}{identity}"
        self.session_dir.mkdir(parents=True, exist_ok=True)

        self._timeout = timeout
        self._headers = dict(headers or {})
        self._transport = transport
        self._jar = LWPCookieJar(str(self.cookie_file))
        self._client: Optional[httpx.Client] = None
        self._last: Optional[ResponseMeta] = None
        self.refresh()

    # --------------------------- Cookie file ---------------------------

    def _load_jar(self) -> LWPCookieJar:
        jar = LWPCookieJar(str(self.cookie_file))
        if self.cookie_file.exists():
            try:
                jar.load(ignore_discard=True)
            except (LoadError, OSError) as e:
                logger.warning("session_cookie_unreadable", path=str(self.cookie_file), error=str(e))
        return jar

    def _save(self) -> None:
        self.session_dir.mkdir(parents=True, exist_ok=True)
        self._jar.save(ignore_discard=True, ignore_expires=True)
        os.chmod(self.cookie_file, 0o600)

    def clear_session(self) -> None:
        """Forget all cookies, on disk and in memory."""
        self._jar.clear()
        if self.cookie_file.exists():
            self.cookie_file.unlink()
            logger.info("session_cleared", path=str(self.cookie_file))

    # --------------------------- Connection ---------------------------

    def refresh(self) -> None:
        """Drop the current connection and open a new one on the same cookie file.

        Some cookies set during the SSO redirects are only picked up reliably by
        a freshly opened client, so the login flow calls this at the end.
        """
        if self._client is not None:
            self._save()
            self._client.close()
        self._jar = self._load_jar()
        self._client = httpx.Client(
            cookies=self._jar,
            headers=self._headers,
            timeout=self._timeout,
            transport=self._transport,
        )

    def release(self) -> None:
        """Close the connection but keep the cookie file for later reuse."""
        if self._client is not None:
            self._save()
            self._client.close()
            self._client = None

    def close(self) -> None:
        """Close the connection and delete the session (forced logout)."""
        self.release()
        self.clear_session()

    # --------------------------- Requests ---------------------------

    def get(
        self,
        url: str,
        query: Optional[QueryParams] = None,
        follow_redirects: bool = True,
    ) -> Tuple[str, ResponseMeta]:
        return self._call("GET", url, query, follow_redirects=follow_redirects)

    def post(
        self,
        url: str,
        query: Optional[QueryParams] = None,
        form: Optional[QueryParams] = None,
        follow_redirects: bool = True,
        referer: Optional[str] = None,
    ) -> Tuple[str, ResponseMeta]:
        headers: dict[str, str] = {}
        content = None
        if form is not None:
            headers["Content-Type"] = "application/x-www-form-urlencoded"
            content = form.build()
        if referer is not None:
            headers["Referer"] = referer
        return self._call(
            "POST", url, query, follow_redirects=follow_redirects, content=content, headers=headers
        )

    def _call(
        self,
        method: str,
        url: str,
        query: Optional[QueryParams],
        *,
        follow_redirects: bool,
        content: Optional[str] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> Tuple[str, ResponseMeta]:
        if query is not None:
            built = query.build()
            if built:
                url = f"{url}{'&' if '?' in url else '?'}{built}"

        if self._client is None:
            self.refresh()
        assert self._client is not None

        try:
            response = self._client.request(
                method,
                url,
                content=content,
                headers=headers,
                follow_redirects=follow_redirects,
            )
        except httpx.RequestError as e:
            logger.warning("http_transport_error", method=method, url=_without_query(url), error=str(e))
            raise TransportError(f"{method} {_without_query(url)} failed: {e}") from e

        self._save()

        redirect_target = None
        location = response.headers.get("location")
        if response.is_redirect and location:
            redirect_target = str(response.url.join(location))

        self._last = ResponseMeta(
            status=response.status_code,
            url=str(response.url),
            redirect_target=redirect_target,
        )
        logger.debug("http_call", method=method, url=_without_query(url), status=response.status_code)
        return response.text, self._last

    # --------------------------- Last response ---------------------------

    @property
    def last_response(self) -> Optional[ResponseMeta]:
        return self._last

    @property
    def last_status(self) -> int:
        return self._last.status if self._last else -1

    @property
    def last_redirect_target(self) -> Optional[str]:
        return self._last.redirect_target if self._last else None

    @property
    def is_open(self) -> bool:
        return self._client is not None

    def __enter__(self) -> "HttpSession":
        return self

    def __exit__(self, *args: object) -> None:
        self.release()
