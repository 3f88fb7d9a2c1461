"""Query-string / form-body builders used by every request to the portal.

The portal accepts ``field<op>value`` pairs where ``op`` may be a comparison,
e.g. ``startDate%3E=2024-01-01``. Parameters keep the order in which a field
was first set; setting it again only replaces operator and value.
"""
from __future__ import annotations

import datetime as dt
from typing import Iterable, Iterator, Tuple, Union
from urllib.parse import quote

from .errors import InvalidParameter

Scalar = Union[str, int, float]

EQUAL = "="
GREATER_THAN = ">"
GREATER_THAN_OR_EQUAL = ">="
LESS_THAN = "<"
LESS_THAN_OR_EQUAL = "<="

# operator -> how it appears in the query string
_ENCODED_OPERATORS = {
    EQUAL: "=",
    GREATER_THAN: "%3E",
    GREATER_THAN_OR_EQUAL: "%3E=",
    LESS_THAN: "%3C",
    LESS_THAN_OR_EQUAL: "%3C=",
}

# hidden fields of the SSO login form
AUTH_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("_eventId", "submit"),
    ("embed", "true"),
    ("displayNameRequired", "false"),
)


class QueryParams:
    def __init__(self) -> None:
        self._parameters: dict[str, tuple[str, Scalar]] = {}

    def set(self, field: str, operator: str, value: Scalar) -> "QueryParams":
        if operator not in _ENCODED_OPERATORS:
            raise InvalidParameter(f"Unsupported operator: {operator!r}")
        # bool is an int subclass, but "True" is never what the portal wants
        if isinstance(value, bool) or not isinstance(value, (str, int, float)):
            raise InvalidParameter(
                f"value must be a string or numeric, {type(value).__name__!r} given"
            )
        self._parameters[field] = (operator, value)
        return self

    def build(self) -> str:
        return "&".join(
            f"{name}{_ENCODED_OPERATORS[op]}{quote(str(value), safe='')}"
            for name, (op, value) in self._parameters.items()
        )

    def items(self) -> Iterator[tuple[str, tuple[str, Scalar]]]:
        return iter(self._parameters.items())

    def copy(self) -> "QueryParams":
        clone = type(self).__new__(type(self))
        clone._parameters = dict(self._parameters)
        return clone

    def __contains__(self, field: object) -> bool:
        return field in self._parameters

    def __len__(self) -> int:
        return len(self._parameters)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.build()!r})"


class ActivityFilter(QueryParams):
    """Filters understood by the activity search endpoint."""

    def start(self, start: int) -> "ActivityFilter":
        if start < 0:
            raise InvalidParameter("ActivityFilter start must be greater than or equal to zero")
        self.set("start", EQUAL, start)
        return self

    def limit(self, limit: int) -> "ActivityFilter":
        if limit <= 0:
            raise InvalidParameter("ActivityFilter limit must be greater than zero")
        self.set("limit", EQUAL, limit)
        return self

    def activity_type(self, type_key: str) -> "ActivityFilter":
        self.set("activityType", EQUAL, type_key)
        return self

    def event_type(self, type_key: str) -> "ActivityFilter":
        self.set("eventType", EQUAL, type_key)
        return self

    def start_date(self, day: dt.date) -> "ActivityFilter":
        self.set("startDate", EQUAL, day.strftime("%Y-%m-%d"))
        return self

    def end_date(self, day: dt.date) -> "ActivityFilter":
        self.set("endDate", EQUAL, day.strftime("%Y-%m-%d"))
        return self

    def between_dates(self, start: dt.date, end: dt.date) -> "ActivityFilter":
        return self.start_date(start).end_date(end)

    def min_distance(self, meters: int) -> "ActivityFilter":
        if meters <= 0:
            raise InvalidParameter("ActivityFilter minDistance must be greater than zero")
        self.set("minDistance", EQUAL, meters)
        return self

    def max_distance(self, meters: int) -> "ActivityFilter":
        if meters <= 0:
            raise InvalidParameter("ActivityFilter maxDistance must be greater than zero")
        self.set("maxDistance", EQUAL, meters)
        return self

    def between_distance(self, min_meters: int, max_meters: int) -> "ActivityFilter":
        return self.min_distance(min_meters).max_distance(max_meters)


class AuthParameters(QueryParams):
    """Form body of the SSO login POST."""

    def __init__(self, fixed_fields: Iterable[tuple[str, str]] = AUTH_FIELDS) -> None:
        super().__init__()
        for name, value in fixed_fields:
            self.set(name, EQUAL, value)

    def username(self, username: str) -> "AuthParameters":
        self.set("username", EQUAL, username)
        return self

    def password(self, password: str) -> "AuthParameters":
        self.set("password", EQUAL, password)
        return self

    def csrf(self, token: str) -> "AuthParameters":
        self.set("_csrf", EQUAL, token)
        return self

    def __repr__(self) -> str:
        # never echo the password
        return f"AuthParameters(fields={[name for name, _ in self.items()]!r})"
