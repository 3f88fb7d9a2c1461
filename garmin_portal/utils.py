from __future__ import annotations

import datetime as dt
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Callable, Optional, Tuple, Type

import pytz
import structlog
from tenacity import RetryCallState, retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from .errors import TransportError, UnexpectedResponseCode

logger = structlog.get_logger()


def get_tz(name: str) -> pytz.BaseTzInfo:
    return pytz.timezone(name)


def today(tz_name: str = "UTC") -> dt.date:
    """Calendar date right now in the given timezone."""
    return dt.datetime.now(get_tz(tz_name)).date()


def iso_date(d: dt.date | dt.datetime) -> str:
    if isinstance(d, dt.datetime):
        d = d.date()
    return d.isoformat()


def round_2dp(value: Optional[float]) -> Optional[float]:
    if value is None:
        return None
    q = Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return float(q)


def seconds_to_minutes(value_seconds: Optional[float]) -> Optional[int]:
    if value_seconds is None:
        return None
    return int(round(value_seconds / 60))


def meters_to_km(value_meters: Optional[float]) -> Optional[float]:
    if value_meters is None:
        return None
    return round_2dp(value_meters / 1000.0)


def mps_to_speed_and_pace(mps: Optional[float]) -> tuple[Optional[float], Optional[float]]:
    """(km/h, min/km) for a speed in m/s."""
    if mps is None or mps == 0:
        return None, None
    kmh = mps * 3.6
    return round_2dp(kmh), round_2dp(60.0 / kmh)


def redact(value: Optional[str]) -> str:
    if not value:
        return ""
    return value[:4] + "…" if len(value) > 8 else "***"


RETRYABLE: Tuple[Type[BaseException], ...] = (UnexpectedResponseCode, TransportError)


def retry_backoff(
    max_attempts: int = 3,
    base: float = 1.0,
    exceptions: Tuple[Type[BaseException], ...] = RETRYABLE,
) -> Callable[[Callable[..., Any]], Any]:
    """Retry decorator for callers of PortalClient; the client itself never retries."""

    def _before_sleep(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "retrying",
            attempt=retry_state.attempt_number,
            error=str(exc) if exc else None,
        )

    def decorator(fn: Callable[..., Any]) -> Any:
        return retry(
            reraise=True,
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential(multiplier=base, min=base, max=base * 8),
            retry=retry_if_exception_type(exceptions),
            before_sleep=_before_sleep,
        )(fn)

    return decorator
