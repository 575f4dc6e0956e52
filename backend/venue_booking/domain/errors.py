from __future__ import annotations

from datetime import date
from typing import Sequence


class BookingError(Exception):
    """Base class for every error raised by the booking engine."""


class BookingValidationError(BookingError):
    pass


class InvalidWindowError(BookingValidationError):
    pass


class InvalidRecurrenceError(BookingValidationError):
    pass


class SlotConflictError(BookingError):
    def __init__(self, conflict_date: date, blocking_ids: Sequence[int], message: str | None = None) -> None:
        self.conflict_date = conflict_date
        self.blocking_ids = tuple(blocking_ids)
        super().__init__(message or f"slot on {conflict_date.isoformat()} conflicts with reservation(s) {list(self.blocking_ids)}")


class InvalidTransitionError(BookingError):
    def __init__(self, current: str, target: str) -> None:
        self.current = current
        self.target = target
        super().__init__(f"cannot move reservation from {current} to {target}")


class VersionConflictError(BookingError):
    pass


class NotFoundError(BookingError):
    pass


class ReservationNotFoundError(NotFoundError):
    pass


class VenueNotFoundError(NotFoundError):
    pass


class StorageError(BookingError):
    pass


class ForbiddenActionError(BookingError):
    def __init__(self, actor_id: int, action: str) -> None:
        self.actor_id = actor_id
        self.action = action
        super().__init__(f"actor {actor_id} may not {action} this reservation")
