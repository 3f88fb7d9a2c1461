# scripts/debug_garmin_endpoints.py
from __future__ import annotations

import argparse
import datetime as dt
import json

from garmin_portal import PortalClient


def peek(body: str, n: int = 200) -> str:
    try:
        s = json.dumps(json.loads(body))
    except ValueError:
        s = body
    return (s[:n] + "…") if len(s) > n else s


def main():
    ap = argparse.ArgumentParser(description="Hit raw portal endpoints with the stored session")
    ap.add_argument("--date", default=dt.date.today().isoformat(), help="YYYY-MM-DD")
    ap.add_argument("--reset", action="store_true", help="log in again instead of reusing cookies")
    args = ap.parse_args()

    client = PortalClient.from_settings(reset_session=args.reset)
    username = client.get_username()
    date = args.date
    paths = [
        "/modern/currentuser-service/user/info",
        "/proxy/activitylist-service/activities/count",
        f"/proxy/wellness-service/wellness/dailySummary/{date}/{username}",
        f"/proxy/wellness-service/wellness/dailySleepData/{username}?date={date}",
        "/proxy/userstats-service/gears/all",
    ]

    with client:
        for path in paths:
            body, meta = client.session.get(client.config.url(path))
            print(f"{path}  status={meta.status}  sample={peek(body)}")


if __name__ == "__main__":
    main()
