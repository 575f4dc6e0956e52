import logging
import uuid
from datetime import date, datetime
from enum import StrEnum
from typing import Iterable, List, Optional

from ..domain import lifecycle
from ..domain.errors import (
    BookingValidationError,
    ReservationNotFoundError,
    SlotConflictError,
    VenueNotFoundError,
    VersionConflictError,
)
from ..domain.lifecycle import Actor
from ..domain.recurrence import CreateRequest, Weekly, expand
from ..domain.repositories import ReservationRepository, VenueRepository
from ..domain.services import (
    NON_TERMINAL,
    SLOT_HOLDING,
    VenueSnapshot,
    ensure_bookable,
    evaluate_candidates,
    raise_on_conflict,
)
from ..domain.time_window import TimeWindow
from ..models import Reservation, ReservationStatus
from .availability import check_availability

logger = logging.getLogger(__name__)

MAX_PURPOSE_LENGTH = lifecycle.MAX_TEXT_LENGTH


class Decision(StrEnum):
    APPROVE = "approve"
    DECLINE = "decline"


def commit_blocking_statuses(pending_blocks_slot: bool) -> frozenset[ReservationStatus]:
    return NON_TERMINAL if pending_blocks_slot else SLOT_HOLDING


def _normalize_purpose(purpose: Optional[str]) -> str:
    cleaned = (purpose or "").strip()
    if not cleaned:
        raise BookingValidationError("purpose must not be empty")
    if len(cleaned) > MAX_PURPOSE_LENGTH:
        raise BookingValidationError(f"purpose is limited to {MAX_PURPOSE_LENGTH} characters")
    return cleaned


def _window(reservation: Reservation) -> TimeWindow:
    return TimeWindow(day=reservation.booking_date, start=reservation.start_time, end=reservation.end_time)


async def create_reservation(
    venue_repo: VenueRepository,
    res_repo: ReservationRepository,
    *,
    venue_id: int,
    request: CreateRequest,
    purpose: str,
    requester_id: int,
    today: date,
    commit_statuses: Iterable[ReservationStatus] = NON_TERMINAL,
) -> List[Reservation]:
    """
    Create every occurrence of ``request`` as a pending reservation, or none.

    Must run inside a transaction owned by the caller: the venue row lock taken
    here is what serializes competing commits, and any raised error is expected
    to roll the whole batch back.
    """
    cleaned_purpose = _normalize_purpose(purpose)
    lifecycle.validate_actor(requester_id, role="requester")
    occurrences = expand(request)
    if occurrences[0].day < today:
        raise BookingValidationError(f"cannot book {occurrences[0].day.isoformat()}, it is in the past")

    venue = await venue_repo.get(venue_id)
    if venue is None:
        raise VenueNotFoundError(f"venue {venue_id} not found")
    ensure_bookable(VenueSnapshot.from_venue(venue), occurrences)

    precheck = await check_availability(res_repo, venue_id=venue_id, windows=occurrences)
    raise_on_conflict(precheck)

    locked = await venue_repo.get_for_update(venue_id)
    if locked is None:
        raise VenueNotFoundError(f"venue {venue_id} not found")
    recheck = await check_availability(
        res_repo,
        venue_id=venue_id,
        windows=occurrences,
        statuses=commit_statuses,
        for_update=True,
    )
    try:
        raise_on_conflict(recheck)
    except SlotConflictError as exc:
        logger.info("commit-time conflict for venue %s on %s: %s", venue_id, exc.conflict_date, list(exc.blocking_ids))
        raise

    series_id = uuid.uuid4().hex if isinstance(request, Weekly) else None
    created = await res_repo.create_many(
        venue_id=venue_id,
        requester_id=requester_id,
        windows=occurrences,
        purpose=cleaned_purpose,
        recurrence=request.kind,
        series_id=series_id,
    )
    logger.info(
        "created %d pending reservation(s) for venue %s starting %s",
        len(created),
        venue_id,
        occurrences[0],
    )
    return created


async def _load_locked(
    venue_repo: VenueRepository,
    res_repo: ReservationRepository,
    reservation_id: int,
    expected_version: Optional[int],
) -> Reservation:
    # Lock order is venue first, then reservation rows, same as create_reservation.
    current = await res_repo.get(reservation_id)
    if current is None:
        raise ReservationNotFoundError(f"reservation {reservation_id} not found")
    await venue_repo.get_for_update(current.venue_id)
    reservation = await res_repo.get_for_update(reservation_id)
    if reservation is None:
        raise ReservationNotFoundError(f"reservation {reservation_id} not found")
    if expected_version is not None and reservation.version != expected_version:
        raise VersionConflictError("version mismatch")
    return reservation


async def decide_reservation(
    venue_repo: VenueRepository,
    res_repo: ReservationRepository,
    *,
    reservation_id: int,
    decision: Decision,
    approver: Actor,
    reason: Optional[str] = None,
    expected_version: Optional[int] = None,
    now: Optional[datetime] = None,
) -> tuple[Reservation, ReservationStatus]:
    """Approve or decline a pending reservation. Returns it with its previous status."""
    reservation = await _load_locked(venue_repo, res_repo, reservation_id, expected_version)
    status_from = reservation.status
    lifecycle.ensure_can_decide(reservation, approver)

    if Decision(decision) == Decision.APPROVE:
        lifecycle.ensure_transition(status_from, ReservationStatus.APPROVED)
        window = _window(reservation)
        existing = await res_repo.list_windows(
            reservation.venue_id,
            [window.day],
            SLOT_HOLDING,
            for_update=True,
            exclude_id=reservation.id,
        )
        raise_on_conflict(evaluate_candidates([window], existing))
        lifecycle.approve(reservation, approver_id=approver.actor_id, now=now)
    else:
        lifecycle.decline(reservation, approver_id=approver.actor_id, reason=reason, now=now)

    updated = await res_repo.save(reservation)
    logger.info("reservation %s %s -> %s by %s", reservation_id, status_from, updated.status, approver.actor_id)
    return updated, status_from


async def cancel_reservation(
    venue_repo: VenueRepository,
    res_repo: ReservationRepository,
    *,
    reservation_id: int,
    actor: Actor,
    reason: Optional[str] = None,
    expected_version: Optional[int] = None,
    now: Optional[datetime] = None,
) -> tuple[Reservation, ReservationStatus]:
    reservation = await _load_locked(venue_repo, res_repo, reservation_id, expected_version)
    status_from = reservation.status
    lifecycle.ensure_can_cancel(reservation, actor)
    lifecycle.cancel(reservation, actor_id=actor.actor_id, reason=reason, now=now)
    updated = await res_repo.save(reservation)
    logger.info("reservation %s cancelled by %s", reservation_id, actor.actor_id)
    return updated, status_from


async def get_reservation(res_repo: ReservationRepository, *, reservation_id: int) -> Reservation:
    reservation = await res_repo.get(reservation_id)
    if reservation is None:
        raise ReservationNotFoundError(f"reservation {reservation_id} not found")
    return reservation


async def list_user_reservations(
    res_repo: ReservationRepository,
    *,
    user_id: int,
    status: ReservationStatus | None = None,
) -> List[Reservation]:
    return await res_repo.list_by_requester(user_id, status)


async def list_venue_reservations(
    venue_repo: VenueRepository,
    res_repo: ReservationRepository,
    *,
    venue_id: int,
    status: ReservationStatus | None = None,
) -> List[Reservation]:
    if await venue_repo.get(venue_id) is None:
        raise VenueNotFoundError(f"venue {venue_id} not found")
    return await res_repo.list_by_venue(venue_id, status)
