from dataclasses import replace
from datetime import date
from typing import Iterable, List, Sequence

from ..domain.errors import BookingValidationError, VenueNotFoundError
from ..domain.recurrence import CreateRequest, expand
from ..domain.repositories import ReservationRepository, VenueRepository
from ..domain.services import (
    NON_TERMINAL,
    SLOT_HOLDING,
    CandidateAvailability,
    DayAvailability,
    VenueSnapshot,
    ensure_bookable,
    evaluate_candidates,
    group_by_day,
)
from ..domain.time_window import TimeWindow
from ..models import ReservationStatus


async def check_availability(
    res_repo: ReservationRepository,
    *,
    venue_id: int,
    windows: Sequence[TimeWindow],
    statuses: Iterable[ReservationStatus] = SLOT_HOLDING,
    for_update: bool = False,
) -> List[CandidateAvailability]:
    """Report, per candidate window and in order, the reservations that block it."""
    if not windows:
        return []
    days = sorted({w.day for w in windows})
    existing = await res_repo.list_windows(venue_id, days, frozenset(statuses), for_update=for_update)
    return evaluate_candidates(windows, existing)


async def query_availability(
    venue_repo: VenueRepository,
    res_repo: ReservationRepository,
    *,
    venue_id: int,
    start: date,
    end: date,
    max_days: int,
) -> List[DayAvailability]:
    if end < start:
        raise BookingValidationError("end date must not be before start date")
    if (end - start).days + 1 > max_days:
        raise BookingValidationError(f"date range is limited to {max_days} days")

    venue = await venue_repo.get(venue_id)
    if venue is None:
        raise VenueNotFoundError(f"venue {venue_id} not found")

    booked = await res_repo.list_in_range(venue_id, start, end, SLOT_HOLDING)
    return group_by_day(start, end, booked)


async def check_request(
    venue_repo: VenueRepository,
    res_repo: ReservationRepository,
    *,
    venue_id: int,
    request: CreateRequest,
    commit_statuses: Iterable[ReservationStatus] = NON_TERMINAL,
) -> List[CandidateAvailability]:
    """
    Dry run of a booking request: expand it and report each occurrence without writing.

    Approved holders land in ``blocking_ids``; other reservations that would block the
    commit (pending ones by default) land in ``pending_ids``, so ``available`` matches
    what a real booking attempt would do at that moment.
    """
    venue = await venue_repo.get(venue_id)
    if venue is None:
        raise VenueNotFoundError(f"venue {venue_id} not found")
    occurrences = expand(request)
    ensure_bookable(VenueSnapshot.from_venue(venue), occurrences)
    held = await check_availability(res_repo, venue_id=venue_id, windows=occurrences)
    waiting = frozenset(commit_statuses) - SLOT_HOLDING
    if not waiting:
        return held
    queued = await check_availability(res_repo, venue_id=venue_id, windows=occurrences, statuses=waiting)
    return [replace(h, pending_ids=q.blocking_ids) for h, q in zip(held, queued)]
