from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .params import AUTH_FIELDS, EQUAL, QueryParams

DEFAULT_BASE_URL = "https://connect.garmin.com"
DEFAULT_SSO_URL = "https://sso.garmin.com/sso/login"
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # General
    TZ: str = Field(default="UTC")

    # Garmin Connect credentials
    GARMIN_USERNAME: Optional[str] = None
    GARMIN_PASSWORD: Optional[str] = None

    # Session cookie storage (defaults to the platform temp dir)
    GARMIN_SESSION_DIR: Optional[str] = Field(
        default=None,
        description="Directory holding the GarminCookie_<hash> session files",
    )
    GARMIN_HTTP_TIMEOUT: float = Field(default=30.0, description="Per-request timeout in seconds")

    # Portal endpoints, overridable to point at a mock server
    GARMIN_BASE_URL: str = Field(default=DEFAULT_BASE_URL)
    GARMIN_SSO_URL: str = Field(default=DEFAULT_SSO_URL)

    # Caller-level retries (CLI only, the client itself never retries)
    GARMIN_RETRIES: int = Field(default=3, description="Attempts per CLI data call")
    GARMIN_RETRY_BACKOFF_SECONDS: float = Field(default=1.0, description="Base delay between attempts")


def get_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]


@dataclass(frozen=True)
class PortalConfig:
    """Fixed URLs and form values the portal expects during SSO and data calls."""

    base_url: str = DEFAULT_BASE_URL
    sso_url: str = DEFAULT_SSO_URL
    sso_service: str = "https://connect.garmin.com/modern/"
    sso_webhost: str = "https://connect.garmin.com"
    sso_source: str = "https://connect.garmin.com/en-US/signin"
    sso_client_id: str = "GarminConnect"
    sso_gauth_host: str = "https://sso.garmin.com/sso"
    sso_consume_service_ticket: str = "false"
    auth_fields: Tuple[Tuple[str, str], ...] = AUTH_FIELDS
    user_agent: str = DEFAULT_USER_AGENT
    timezone: str = "UTC"

    @classmethod
    def from_settings(cls, settings: Settings) -> "PortalConfig":
        return cls(
            base_url=settings.GARMIN_BASE_URL.rstrip("/"),
            sso_url=settings.GARMIN_SSO_URL,
            timezone=settings.TZ,
        )

    def url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    @property
    def modern_url(self) -> str:
        return self.url("/modern/")

    @property
    def user_info_url(self) -> str:
        return self.url("/modern/currentuser-service/user/info")

    def sso_params(self) -> QueryParams:
        params = QueryParams()
        params.set("service", EQUAL, self.sso_service)
        params.set("webhost", EQUAL, self.sso_webhost)
        params.set("source", EQUAL, self.sso_source)
        params.set("clientId", EQUAL, self.sso_client_id)
        params.set("gauthHost", EQUAL, self.sso_gauth_host)
        params.set("consumeServiceTicket", EQUAL, self.sso_consume_service_ticket)
        return params
