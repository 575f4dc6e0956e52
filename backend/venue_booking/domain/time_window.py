from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, time, timedelta

from .errors import InvalidWindowError

_HHMM = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def parse_hhmm(value: str) -> time:
    """Parse a zero-padded 24-hour ``HH:MM`` string (00:00 through 23:59)."""
    if not isinstance(value, str):
        raise InvalidWindowError(f"time must be a HH:MM string, got {value!r}")
    match = _HHMM.fullmatch(value)
    if match is None:
        raise InvalidWindowError(f"invalid time {value!r}, expected HH:MM")
    return time(int(match.group(1)), int(match.group(2)))


def format_hhmm(value: time) -> str:
    return f"{value.hour:02d}:{value.minute:02d}"


@dataclass(frozen=True)
class TimeWindow:
    """A half-open ``[start, end)`` time-of-day range on a single calendar day."""

    day: date
    start: time
    end: time

    def __post_init__(self) -> None:
        for value in (self.start, self.end):
            if value.second or value.microsecond:
                raise InvalidWindowError("times must have minute granularity")
            if value.tzinfo is not None:
                raise InvalidWindowError("times must be naive time-of-day values")
        if self.start >= self.end:
            raise InvalidWindowError(
                f"start {format_hhmm(self.start)} must be earlier than end {format_hhmm(self.end)}"
            )

    @classmethod
    def parse(cls, day: date, start: str, end: str) -> "TimeWindow":
        return cls(day=day, start=parse_hhmm(start), end=parse_hhmm(end))

    def overlaps(self, other: "TimeWindow") -> bool:
        return overlaps(self, other)

    def shifted(self, days: int) -> "TimeWindow":
        return TimeWindow(day=self.day + timedelta(days=days), start=self.start, end=self.end)

    def __str__(self) -> str:
        return f"{self.day.isoformat()} {format_hhmm(self.start)}-{format_hhmm(self.end)}"


def overlaps(a: TimeWindow, b: TimeWindow) -> bool:
    # Touching endpoints (a.end == b.start) do not overlap.
    if a.day != b.day:
        return False
    return a.start < b.end and b.start < a.end
