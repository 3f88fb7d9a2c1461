from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional

from .utils import meters_to_km, mps_to_speed_and_pace, seconds_to_minutes

ACTIVITY_HEADERS: List[str] = [
    "activity_id", "date", "start_time",
    "name", "activity_type",
    "duration_min", "distance_km",
    "avg_speed_kmh", "pace_min_per_km",
    "avg_hr_bpm", "max_hr_bpm",
    "calories",
]


def _int_or_none(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(round(float(value)))
    except (TypeError, ValueError):
        return None


def _float_or_none(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass
class ActivityRow:
    """One entry of the activity search endpoint, flattened for tabular output."""

    activity_id: int
    date: Optional[str] = None
    start_time: Optional[str] = None
    name: Optional[str] = None
    activity_type: Optional[str] = None
    duration_min: Optional[int] = None
    distance_km: Optional[float] = None
    avg_speed_kmh: Optional[float] = None
    pace_min_per_km: Optional[float] = None
    avg_hr_bpm: Optional[int] = None
    max_hr_bpm: Optional[int] = None
    calories: Optional[int] = None

    @classmethod
    def from_activity(cls, activity: dict) -> "ActivityRow":
        # startTimeLocal looks like "2024-05-01 07:12:33"
        start_local = activity.get("startTimeLocal") or ""
        date, _, start_time = start_local.partition(" ")
        type_info = activity.get("activityType") or {}
        speed_kmh, pace = mps_to_speed_and_pace(_float_or_none(activity.get("averageSpeed")))
        return cls(
            activity_id=int(activity["activityId"]),
            date=date or None,
            start_time=start_time or None,
            name=activity.get("activityName"),
            activity_type=type_info.get("typeKey") if isinstance(type_info, dict) else None,
            duration_min=seconds_to_minutes(_float_or_none(activity.get("duration"))),
            distance_km=meters_to_km(_float_or_none(activity.get("distance"))),
            avg_speed_kmh=speed_kmh,
            pace_min_per_km=pace,
            avg_hr_bpm=_int_or_none(activity.get("averageHR")),
            max_hr_bpm=_int_or_none(activity.get("maxHR")),
            calories=_int_or_none(activity.get("calories")),
        )

    @staticmethod
    def headers() -> List[str]:
        return ACTIVITY_HEADERS

    def as_row(self) -> List[Any]:
        # order must match headers()
        return [
            self.activity_id, self.date, self.start_time,
            self.name, self.activity_type,
            self.duration_min, self.distance_km,
            self.avg_speed_kmh, self.pace_min_per_km,
            self.avg_hr_bpm, self.max_hr_bpm,
            self.calories,
        ]
