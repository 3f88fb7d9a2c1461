from __future__ import annotations

from typing import Optional


class GarminConnectError(Exception):
    """Base exception for everything raised by garmin_portal."""


class InvalidParameter(GarminConnectError, ValueError):
    """A locally validated argument was rejected before any request was made."""


class AuthenticationError(GarminConnectError):
    """The SSO handshake failed (rejected prestart, missing CSRF/ticket, locked account)."""

    def __init__(self, message: str, status: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.body = body


class MissingCredentials(AuthenticationError):
    """Username or password needed but not supplied."""


class UnexpectedResponseCode(GarminConnectError):
    def __init__(self, status: int, body: Optional[str] = None):
        super().__init__(f"Unexpected response code: {status}")
        self.status = status
        self.body = body


class MalformedResponse(GarminConnectError):
    """Response body could not be decoded as the JSON we expected."""


class TransportError(GarminConnectError):
    """Network failure or timeout reported by httpx."""
