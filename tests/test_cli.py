import pytest
from typer.testing import CliRunner

from garmin_portal import cli
from garmin_portal.session import COOKIE_PREFIX, identity_key

from .conftest import USERNAME

runner = CliRunner()


@pytest.fixture
def logged_in(client, monkeypatch):
    monkeypatch.setenv("GARMIN_RETRIES", "1")
    monkeypatch.setattr(cli, "_open_client", lambda reset: client)
    return client


def test_whoami(logged_in):
    result = runner.invoke(cli.app, ["whoami"])
    assert result.exit_code == 0
    assert result.output.strip().splitlines()[-1] == "runner"


def test_activities_prints_rows(logged_in, portal):
    portal.activities = [
        {
            "activityId": 11,
            "activityName": "Lunch Ride",
            "startTimeLocal": "2024-05-02 12:00:00",
            "activityType": {"typeKey": "cycling"},
            "distance": 20000.0,
        }
    ]

    result = runner.invoke(cli.app, ["activities", "--limit", "5", "--type", "cycling"])

    assert result.exit_code == 0
    lines = [line for line in result.output.splitlines() if "\t" in line]
    assert lines[0].split("\t")[0] == "activity_id"
    assert lines[1].split("\t")[:5] == ["11", "2024-05-02", "12:00:00", "Lunch Ride", "cycling"]
    request = portal.requests[0]
    assert request.url.params["limit"] == "5"
    assert request.url.params["activityType"] == "cycling"


def test_export_writes_file(logged_in, tmp_path):
    out = tmp_path / "run.gpx"
    result = runner.invoke(cli.app, ["export", "123", "--format", "gpx", "--out", str(out)])

    assert result.exit_code == 0
    assert out.read_text(encoding="utf-8") == "<gpx>track</gpx>"


def test_export_rejects_unknown_format(logged_in, portal):
    result = runner.invoke(cli.app, ["export", "123", "--format", "bmp"])
    assert result.exit_code != 0
    assert portal.requests == []


def test_portal_error_exits_non_zero(logged_in, portal):
    portal.data_status = 500
    result = runner.invoke(cli.app, ["count"])
    assert result.exit_code == 1


def test_logout_removes_session_file(monkeypatch, tmp_path):
    cookie_file = tmp_path / f"{COOKIE_PREFIX}{identity_key(USERNAME)}"
    cookie_file.write_text("#LWP-Cookies-2.0\n")
    monkeypatch.setenv("GARMIN_USERNAME", USERNAME)
    monkeypatch.setenv("GARMIN_SESSION_DIR", str(tmp_path))

    result = runner.invoke(cli.app, ["logout"])

    assert result.exit_code == 0
    assert not cookie_file.exists()
