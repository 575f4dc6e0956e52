from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Optional

from ..models import Reservation, ReservationStatus
from ..utils.time import utc_now_naive
from .errors import BookingValidationError, ForbiddenActionError, InvalidTransitionError

MAX_TEXT_LENGTH = 500


class Role(StrEnum):
    REQUESTER = "requester"
    MANAGER = "manager"
    ADMIN = "admin"


REVIEWER_ROLES = frozenset({Role.MANAGER, Role.ADMIN})


@dataclass(frozen=True)
class Actor:
    actor_id: int
    role: Role = Role.REQUESTER


_TRANSITIONS: dict[ReservationStatus, frozenset[ReservationStatus]] = {
    ReservationStatus.PENDING: frozenset(
        {ReservationStatus.APPROVED, ReservationStatus.DECLINED, ReservationStatus.CANCELLED}
    ),
    ReservationStatus.APPROVED: frozenset({ReservationStatus.CANCELLED}),
    ReservationStatus.DECLINED: frozenset(),
    ReservationStatus.CANCELLED: frozenset(),
}


def allowed_transitions(status: ReservationStatus) -> frozenset[ReservationStatus]:
    return _TRANSITIONS[ReservationStatus(status)]


def ensure_transition(current: ReservationStatus, target: ReservationStatus) -> None:
    if ReservationStatus(target) not in allowed_transitions(current):
        raise InvalidTransitionError(str(current), str(target))


def validate_actor(actor_id: Optional[int], *, role: str = "actor") -> int:
    if isinstance(actor_id, bool) or not isinstance(actor_id, int) or actor_id < 1:
        raise BookingValidationError(f"{role} must be a valid actor id")
    return actor_id


def _clean_reason(reason: Optional[str]) -> Optional[str]:
    if reason is None:
        return None
    stripped = reason.strip()
    if len(stripped) > MAX_TEXT_LENGTH:
        raise BookingValidationError(f"reason is limited to {MAX_TEXT_LENGTH} characters")
    return stripped or None


def ensure_can_decide(reservation: Reservation, approver: Actor) -> None:
    """Only managers and admins review, and never their own request."""
    if approver.role not in REVIEWER_ROLES or approver.actor_id == reservation.requester_id:
        raise ForbiddenActionError(approver.actor_id, "review")


def ensure_can_cancel(reservation: Reservation, actor: Actor) -> None:
    if actor.role != Role.ADMIN and actor.actor_id != reservation.requester_id:
        raise ForbiddenActionError(actor.actor_id, "cancel")


def _apply(reservation: Reservation, target: ReservationStatus, now: Optional[datetime]) -> None:
    stamp = now or utc_now_naive()
    reservation.status = target
    reservation.status_changed_at = stamp
    reservation.updated_at = stamp
    reservation.version += 1


def approve(reservation: Reservation, *, approver_id: int, now: Optional[datetime] = None) -> Reservation:
    ensure_transition(reservation.status, ReservationStatus.APPROVED)
    reservation.approver_id = validate_actor(approver_id, role="approver")
    reservation.decline_reason = None
    _apply(reservation, ReservationStatus.APPROVED, now)
    return reservation


def decline(
    reservation: Reservation,
    *,
    approver_id: int,
    reason: Optional[str],
    now: Optional[datetime] = None,
) -> Reservation:
    ensure_transition(reservation.status, ReservationStatus.DECLINED)
    approver = validate_actor(approver_id, role="approver")
    cleaned = _clean_reason(reason)
    if cleaned is None:
        raise BookingValidationError("a reason is required to decline a reservation")
    reservation.approver_id = approver
    reservation.decline_reason = cleaned
    _apply(reservation, ReservationStatus.DECLINED, now)
    return reservation


def cancel(
    reservation: Reservation,
    *,
    actor_id: int,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Reservation:
    ensure_transition(reservation.status, ReservationStatus.CANCELLED)
    reservation.cancelled_by = validate_actor(actor_id)
    reservation.cancel_reason = _clean_reason(reason)
    _apply(reservation, ReservationStatus.CANCELLED, now)
    return reservation
