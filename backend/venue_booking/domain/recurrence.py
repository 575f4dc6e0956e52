from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from ..models import RecurrenceKind
from .errors import InvalidRecurrenceError
from .time_window import TimeWindow

DAYS_PER_WEEK = 7


@dataclass(frozen=True)
class Once:
    window: TimeWindow

    @property
    def kind(self) -> RecurrenceKind:
        return RecurrenceKind.ONCE


@dataclass(frozen=True)
class Weekly:
    window: TimeWindow
    count: int

    def __post_init__(self) -> None:
        if isinstance(self.count, bool) or not isinstance(self.count, int) or self.count < 1:
            raise InvalidRecurrenceError("weekly recurrence needs a positive occurrence count")

    @property
    def kind(self) -> RecurrenceKind:
        return RecurrenceKind.WEEKLY


CreateRequest = Union[Once, Weekly]


def build_request(
    window: TimeWindow,
    kind: RecurrenceKind | str,
    count: int | None = None,
    *,
    max_count: int | None = None,
) -> CreateRequest:
    """Resolve raw recurrence input into a ``Once`` or ``Weekly`` request."""
    try:
        kind = RecurrenceKind(kind)
    except ValueError as exc:
        raise InvalidRecurrenceError(f"unknown recurrence kind {kind!r}") from exc

    if kind == RecurrenceKind.ONCE:
        if count is not None:
            raise InvalidRecurrenceError("count is not allowed for a one-off booking")
        return Once(window)

    if count is None:
        raise InvalidRecurrenceError("weekly recurrence requires a count")
    request = Weekly(window, count)
    if max_count is not None and count > max_count:
        raise InvalidRecurrenceError(f"weekly recurrence is limited to {max_count} occurrences")
    return request


def expand(request: CreateRequest) -> list[TimeWindow]:
    """
    Turn a request into its ordered occurrences.
    The first element is the requested window; each following one is a week later.
    """
    if isinstance(request, Once):
        return [request.window]
    return [request.window.shifted(DAYS_PER_WEEK * i) for i in range(request.count)]


def expand_occurrences(
    window: TimeWindow,
    kind: RecurrenceKind | str,
    count: int | None = None,
) -> list[TimeWindow]:
    return expand(build_request(window, kind, count))
