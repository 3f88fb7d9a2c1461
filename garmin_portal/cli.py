# garmin_portal/cli.py
from __future__ import annotations

import datetime as dt
import json
import logging
from pathlib import Path
from typing import Any, Callable, Optional

import structlog
import typer
from dotenv import find_dotenv, load_dotenv

from .client import DATA_TYPES, PortalClient
from .config import get_settings
from .errors import GarminConnectError, MissingCredentials
from .models import ActivityRow
from .params import ActivityFilter
from .session import HttpSession, identity_key
from .utils import redact, retry_backoff

load_dotenv(find_dotenv(usecwd=True))

app = typer.Typer(no_args_is_help=True, help="Garmin Connect portal CLI")
log = structlog.get_logger()

RESET_OPTION = typer.Option(False, "--reset", help="Discard the stored session and log in again")


# ---------- helpers ----------

def _parse_since(since: str) -> dt.date:
    s = since.strip().lower()
    if s.endswith("d") and s[:-1].isdigit():
        return dt.date.today() - dt.timedelta(days=int(s[:-1]))
    return dt.date.fromisoformat(s)


def _open_client(reset: bool) -> PortalClient:
    """Reuse the stored session, or log in; prompts for the password when needed."""
    settings = get_settings()
    if not settings.GARMIN_USERNAME:
        raise typer.BadParameter("GARMIN_USERNAME is not set (check .env)")
    try:
        return PortalClient.from_settings(settings, reset_session=reset)
    except MissingCredentials:
        password = typer.prompt(f"Garmin password for {redact(settings.GARMIN_USERNAME)}", hide_input=True)
        settings.GARMIN_PASSWORD = password
        return PortalClient.from_settings(settings, reset_session=reset)


def _call(fn: Callable[..., Any], *args: Any) -> Any:
    settings = get_settings()
    wrapped = retry_backoff(settings.GARMIN_RETRIES, settings.GARMIN_RETRY_BACKOFF_SECONDS)(fn)
    return wrapped(*args)


def _fail(e: GarminConnectError) -> None:
    log.error("command_failed", error=str(e), kind=type(e).__name__)
    typer.echo(f"[ERR] {e}", err=True)
    raise typer.Exit(code=1)


def _echo_json(data: Any) -> None:
    typer.echo(json.dumps(data, indent=2, ensure_ascii=False))


def _cell(value: Any) -> str:
    return "" if value is None else str(value)


# ---------- commands ----------

@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Also log every HTTP call")) -> None:
    """Garmin Connect portal CLI."""
    level = logging.DEBUG if verbose else logging.WARNING
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(level))


@app.command()
def whoami(reset: bool = RESET_OPTION) -> None:
    """Print the username of the logged-in account."""
    try:
        with _open_client(reset) as client:
            typer.echo(_call(client.get_username) or "")
    except GarminConnectError as e:
        _fail(e)


@app.command()
def count(reset: bool = RESET_OPTION) -> None:
    """Number of activities on the account."""
    try:
        with _open_client(reset) as client:
            _echo_json(_call(client.get_activity_count))
    except GarminConnectError as e:
        _fail(e)


@app.command()
def activities(
    since: Optional[str] = typer.Option(None, help="ISO date (YYYY-MM-DD) or relative, e.g. 7d"),
    limit: int = typer.Option(20, help="Page size (with --all: size of every page)"),
    activity_type: Optional[str] = typer.Option(None, "--type", help="Activity type key, e.g. running"),
    fetch_all: bool = typer.Option(False, "--all", help="Page through every matching activity"),
    reset: bool = RESET_OPTION,
) -> None:
    """List activities as tab-separated rows."""
    activity_filter = ActivityFilter()
    if since:
        activity_filter.between_dates(_parse_since(since), dt.date.today())
    if activity_type:
        activity_filter.activity_type(activity_type)

    try:
        with _open_client(reset) as client:
            if fetch_all:
                found = _call(client.get_all_activity_list, activity_filter, limit)
            else:
                found = _call(client.get_activity_list, activity_filter.start(0).limit(limit))
    except GarminConnectError as e:
        _fail(e)
        return

    typer.echo("\t".join(ActivityRow.headers()))
    for item in found or []:
        row = ActivityRow.from_activity(item).as_row()
        typer.echo("\t".join(_cell(v) for v in row))


@app.command()
def activity(
    activity_id: int = typer.Argument(..., help="Activity id"),
    details: bool = typer.Option(False, "--details", help="Charts and polyline (100 points)"),
    extended: bool = typer.Option(False, "--extended", help="Full details"),
    reset: bool = RESET_OPTION,
) -> None:
    """Summary (or details) of one activity as JSON."""
    try:
        with _open_client(reset) as client:
            if extended:
                data = _call(client.get_extended_activity_details, activity_id)
            elif details:
                data = _call(client.get_activity_details, activity_id)
            else:
                data = _call(client.get_activity_summary, activity_id)
    except GarminConnectError as e:
        _fail(e)
        return
    _echo_json(data)


@app.command()
def export(
    activity_id: int = typer.Argument(..., help="Activity id"),
    fmt: str = typer.Option("gpx", "--format", help="|".join(sorted(DATA_TYPES))),
    out: Optional[Path] = typer.Option(None, help="Write to this file instead of stdout"),
    reset: bool = RESET_OPTION,
) -> None:
    """Download an activity file."""
    if fmt not in DATA_TYPES:
        raise typer.BadParameter(f"format must be one of: {'|'.join(sorted(DATA_TYPES))}")
    try:
        with _open_client(reset) as client:
            payload = _call(client.get_data_file, fmt, activity_id)
    except GarminConnectError as e:
        _fail(e)
        return

    if out is None:
        typer.echo(payload)
        return
    out.write_text(payload, encoding="utf-8")
    typer.echo(f"OK: {fmt} for activity {activity_id} written to {out}")


@app.command()
def wellness(
    date: Optional[str] = typer.Option(None, help="YYYY-MM-DD (default: today)"),
    reset: bool = RESET_OPTION,
) -> None:
    """Daily wellness summary as JSON."""
    day = dt.date.fromisoformat(date) if date else None
    try:
        with _open_client(reset) as client:
            _echo_json(_call(client.get_wellness_daily_summary, day))
    except GarminConnectError as e:
        _fail(e)


@app.command()
def gear(reset: bool = RESET_OPTION) -> None:
    """All gear registered on the account."""
    try:
        with _open_client(reset) as client:
            _echo_json(_call(client.get_user_gear_list))
    except GarminConnectError as e:
        _fail(e)


@app.command()
def logout() -> None:
    """Delete the stored session for GARMIN_USERNAME."""
    settings = get_settings()
    if not settings.GARMIN_USERNAME:
        raise typer.BadParameter("GARMIN_USERNAME is not set (check .env)")
    HttpSession(identity_key(settings.GARMIN_USERNAME), settings.GARMIN_SESSION_DIR).close()
    typer.echo("OK: session removed.")


if __name__ == "__main__":
    app()
