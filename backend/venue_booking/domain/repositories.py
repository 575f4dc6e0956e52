from __future__ import annotations

from datetime import date
from typing import Iterable, Protocol, Sequence

from ..models import RecurrenceKind, Reservation, ReservationStatus, Venue
from .services import BookedWindow
from .time_window import TimeWindow


class VenueRepository(Protocol):
    async def get(self, venue_id: int) -> Venue | None: ...

    async def get_for_update(self, venue_id: int) -> Venue | None:
        """Lock the venue row until the surrounding transaction ends."""
        ...


class ReservationRepository(Protocol):
    async def list_windows(
        self,
        venue_id: int,
        days: Sequence[date],
        statuses: Iterable[ReservationStatus],
        *,
        for_update: bool = False,
        exclude_id: int | None = None,
    ) -> list[BookedWindow]:
        """
        Windows of the venue's reservations on the given days in the given statuses.
        ``for_update`` must be a locking read so that rows committed by a
        concurrent transaction are visible.
        """
        ...

    async def list_in_range(
        self,
        venue_id: int,
        start: date,
        end: date,
        statuses: Iterable[ReservationStatus],
    ) -> list[BookedWindow]: ...

    async def create_many(
        self,
        *,
        venue_id: int,
        requester_id: int,
        windows: Sequence[TimeWindow],
        purpose: str,
        recurrence: RecurrenceKind,
        series_id: str | None,
    ) -> list[Reservation]: ...

    async def get(self, reservation_id: int) -> Reservation | None: ...

    async def get_for_update(self, reservation_id: int) -> Reservation | None: ...

    async def save(self, reservation: Reservation) -> Reservation: ...

    async def list_by_requester(
        self,
        requester_id: int,
        status: ReservationStatus | None = None,
    ) -> list[Reservation]: ...

    async def list_by_venue(
        self,
        venue_id: int,
        status: ReservationStatus | None = None,
    ) -> list[Reservation]: ...
