from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Literal, Optional

from ..models import Reservation, ReservationStatus
from ..utils.time import utc_now_naive

LifecycleAction = Literal[
    "reservation.created",
    "reservation.approved",
    "reservation.declined",
    "reservation.cancelled",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LifecycleEvent:
    action: LifecycleAction
    reservation_id: int
    venue_id: int
    status: ReservationStatus
    actor_id: int
    occurred_at: datetime = field(default_factory=utc_now_naive)
    status_from: Optional[ReservationStatus] = None
    reason: Optional[str] = None
    series_id: Optional[str] = None

    @classmethod
    def from_reservation(
        cls,
        action: LifecycleAction,
        reservation: Reservation,
        *,
        actor_id: int,
        status_from: Optional[ReservationStatus] = None,
        reason: Optional[str] = None,
    ) -> "LifecycleEvent":
        return cls(
            action=action,
            reservation_id=reservation.id,
            venue_id=reservation.venue_id,
            status=reservation.status,
            actor_id=actor_id,
            occurred_at=reservation.status_changed_at or utc_now_naive(),
            status_from=status_from,
            reason=reason,
            series_id=reservation.series_id,
        )


Subscriber = Callable[[LifecycleEvent], None]


class LifecycleEventBus:
    """In-process fan-out of lifecycle events to whoever subscribed (audit log, notifications)."""

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []

    def subscribe(self, subscriber: Subscriber) -> Subscriber:
        if subscriber not in self._subscribers:
            self._subscribers.append(subscriber)
        return subscriber

    def unsubscribe(self, subscriber: Subscriber) -> None:
        if subscriber in self._subscribers:
            self._subscribers.remove(subscriber)

    def publish(self, event: LifecycleEvent) -> int:
        """
        Deliver ``event`` to every subscriber in subscription order.

        Publishing happens after the reservation change is committed, so a failing
        subscriber is logged and skipped; the others still receive the event.
        Returns the number of subscribers that failed.
        """
        logger.debug("publishing %s for reservation %s", event.action, event.reservation_id)
        failures = 0
        for subscriber in list(self._subscribers):
            try:
                subscriber(event)
            except Exception:
                failures += 1
                logger.exception(
                    "subscriber %r failed on %s for reservation %s",
                    subscriber,
                    event.action,
                    event.reservation_id,
                )
        return failures


event_bus = LifecycleEventBus()
