from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the DateTime(timezone=False) columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class _Unset:
    """Marker for a field that was not supplied in a partial update."""

    _instance: "_Unset | None" = None

    def __new__(cls) -> "_Unset":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()


def is_set(value: Any) -> bool:
    return value is not UNSET


def parse_date(s: str | date | None) -> date | None:
    """Parse YYYY-MM-DD date string (or an ISO datetime prefix)."""
    if s is None:
        return None
    if isinstance(s, datetime):
        return s.date()
    if isinstance(s, date):
        return s
    s = s.strip()
    if not s:
        return None
    return date.fromisoformat(s[:10])


_TRUE = {"true", "1", "on", "yes"}
_FALSE = {"false", "0", "off", "no", ""}


def parse_bool(value: Any) -> bool | None:
    """Coerce form/JSON values to bool; None when the value is not recognisable."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value == 1
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in _TRUE:
            return True
        if normalized in _FALSE:
            return False
    return None


def isoformat(value: date | datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat()
