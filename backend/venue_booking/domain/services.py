from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, time, timedelta
from typing import Iterable, Optional, Sequence

from ..models import ReservationStatus, Venue
from .errors import BookingValidationError, SlotConflictError
from .time_window import TimeWindow, format_hhmm

SLOT_HOLDING: frozenset[ReservationStatus] = frozenset({ReservationStatus.APPROVED})
NON_TERMINAL: frozenset[ReservationStatus] = frozenset({ReservationStatus.PENDING, ReservationStatus.APPROVED})


@dataclass(frozen=True)
class VenueSnapshot:
    venue_id: int
    opens_at: time
    closes_at: time
    is_active: bool

    @classmethod
    def from_venue(cls, venue: Venue) -> "VenueSnapshot":
        return cls(venue_id=venue.id, opens_at=venue.opens_at, closes_at=venue.closes_at, is_active=venue.is_active)


@dataclass(frozen=True)
class BookedWindow:
    reservation_id: int
    window: TimeWindow


@dataclass(frozen=True)
class CandidateAvailability:
    window: TimeWindow
    blocking_ids: tuple[int, ...] = ()
    pending_ids: tuple[int, ...] = ()

    @property
    def available(self) -> bool:
        return not self.blocking_ids and not self.pending_ids


@dataclass(frozen=True)
class DayAvailability:
    day: date
    occupied: tuple[BookedWindow, ...]


def ensure_bookable(venue: VenueSnapshot, windows: Sequence[TimeWindow]) -> None:
    """Reject inactive venues and windows outside the venue's operating hours."""
    if not venue.is_active:
        raise BookingValidationError("venue is not accepting reservations")
    for window in windows:
        if window.start < venue.opens_at or window.end > venue.closes_at:
            raise BookingValidationError(
                f"{window} is outside operating hours "
                f"{format_hhmm(venue.opens_at)}-{format_hhmm(venue.closes_at)}"
            )


def evaluate_candidates(
    candidates: Sequence[TimeWindow],
    existing: Iterable[BookedWindow],
) -> list[CandidateAvailability]:
    """
    Pure conflict evaluation: for every candidate (in input order) collect the
    ids of existing windows on the same day that overlap it.
    """
    by_day: dict[date, list[BookedWindow]] = defaultdict(list)
    for booked in existing:
        by_day[booked.window.day].append(booked)

    results: list[CandidateAvailability] = []
    for candidate in candidates:
        blocking = sorted(
            {b.reservation_id for b in by_day.get(candidate.day, ()) if b.window.overlaps(candidate)}
        )
        results.append(CandidateAvailability(window=candidate, blocking_ids=tuple(blocking)))
    return results


def first_conflict(results: Iterable[CandidateAvailability]) -> Optional[CandidateAvailability]:
    return next((r for r in results if not r.available), None)


def raise_on_conflict(results: Iterable[CandidateAvailability]) -> None:
    conflict = first_conflict(results)
    if conflict is not None:
        raise SlotConflictError(conflict.window.day, conflict.blocking_ids)


def group_by_day(start: date, end: date, booked: Iterable[BookedWindow]) -> list[DayAvailability]:
    by_day: dict[date, list[BookedWindow]] = defaultdict(list)
    for item in booked:
        by_day[item.window.day].append(item)

    days: list[DayAvailability] = []
    for offset in range((end - start).days + 1):
        day = start + timedelta(days=offset)
        occupied = sorted(by_day.get(day, ()), key=lambda b: (b.window.start, b.window.end, b.reservation_id))
        days.append(DayAvailability(day=day, occupied=tuple(occupied)))
    return days
