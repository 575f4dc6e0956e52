import asyncio
import itertools
from collections import defaultdict
from contextlib import asynccontextmanager
from datetime import date, datetime, time
from typing import AsyncIterator, Dict, Iterable, List, Optional, Sequence

import pytest
from venue_booking.domain.errors import StorageError
from venue_booking.domain.services import BookedWindow
from venue_booking.domain.time_window import TimeWindow
from venue_booking.models import RecurrenceKind, Reservation, ReservationStatus, Venue

NOW = datetime(2024, 6, 1, 9, 0)


class FakeVenueRepo:
    def __init__(self, tx: "FakeTransaction") -> None:
        self.tx = tx

    async def get(self, venue_id: int) -> Optional[Venue]:
        await asyncio.sleep(0)
        return self.tx.store.venues.get(venue_id)

    async def get_for_update(self, venue_id: int) -> Optional[Venue]:
        await self.tx.lock_venue(venue_id)
        return await self.get(venue_id)


class FakeReservationRepo:
    """Sees committed rows plus rows staged by its own transaction, like a real session would."""

    def __init__(self, tx: "FakeTransaction") -> None:
        self.tx = tx
        self.saved: List[Reservation] = []

    def _visible(self) -> List[Reservation]:
        return list(self.tx.store.reservations.values()) + self.tx.staged

    async def list_windows(
        self,
        venue_id: int,
        days: Sequence[date],
        statuses: Iterable[ReservationStatus],
        *,
        for_update: bool = False,
        exclude_id: Optional[int] = None,
    ) -> List[BookedWindow]:
        await asyncio.sleep(0)
        wanted = set(statuses)
        self.tx.store.window_queries.append((venue_id, tuple(days), frozenset(wanted), for_update))
        return [
            BookedWindow(r.id, TimeWindow(r.booking_date, r.start_time, r.end_time))
            for r in self._visible()
            if r.venue_id == venue_id and r.booking_date in days and r.status in wanted and r.id != exclude_id
        ]

    async def list_in_range(
        self,
        venue_id: int,
        start: date,
        end: date,
        statuses: Iterable[ReservationStatus],
    ) -> List[BookedWindow]:
        await asyncio.sleep(0)
        wanted = set(statuses)
        return [
            BookedWindow(r.id, TimeWindow(r.booking_date, r.start_time, r.end_time))
            for r in self._visible()
            if r.venue_id == venue_id and start <= r.booking_date <= end and r.status in wanted
        ]

    async def create_many(
        self,
        *,
        venue_id: int,
        requester_id: int,
        windows: Sequence[TimeWindow],
        purpose: str,
        recurrence: RecurrenceKind,
        series_id: Optional[str],
    ) -> List[Reservation]:
        await asyncio.sleep(0)
        if self.tx.store.fail_on_create:
            raise StorageError("failed to create reservations")
        created = [
            self.tx.store.build_reservation(
                venue_id=venue_id,
                requester_id=requester_id,
                window=w,
                purpose=purpose,
                status=ReservationStatus.PENDING,
                recurrence=recurrence,
                series_id=series_id,
            )
            for w in windows
        ]
        self.tx.staged.extend(created)
        return created

    async def get(self, reservation_id: int) -> Optional[Reservation]:
        await asyncio.sleep(0)
        return self.tx.store.reservations.get(reservation_id)

    async def get_for_update(self, reservation_id: int) -> Optional[Reservation]:
        return await self.get(reservation_id)

    async def save(self, reservation: Reservation) -> Reservation:
        self.saved.append(reservation)
        return reservation

    async def list_by_requester(self, requester_id: int, status: Optional[ReservationStatus] = None) -> List[Reservation]:
        return [
            r
            for r in self.tx.store.reservations.values()
            if r.requester_id == requester_id and (status is None or r.status == status)
        ]

    async def list_by_venue(self, venue_id: int, status: Optional[ReservationStatus] = None) -> List[Reservation]:
        return [
            r
            for r in self.tx.store.reservations.values()
            if r.venue_id == venue_id and (status is None or r.status == status)
        ]


class FakeTransaction:
    def __init__(self, store: "InMemoryStore") -> None:
        self.store = store
        self.staged: List[Reservation] = []
        self.held: List[asyncio.Lock] = []
        self.venue_repo = FakeVenueRepo(self)
        self.reservation_repo = FakeReservationRepo(self)

    async def lock_venue(self, venue_id: int) -> None:
        lock = self.store.venue_locks[venue_id]
        if lock not in self.held:
            await lock.acquire()
            self.held.append(lock)

    def commit(self) -> None:
        for reservation in self.staged:
            self.store.reservations[reservation.id] = reservation
        self.staged = []

    def release(self) -> None:
        for lock in self.held:
            lock.release()
        self.held = []


class InMemoryStore:
    """Reservation store with per-venue row-lock emulation and commit/rollback of staged inserts."""

    def __init__(self) -> None:
        self.venues: Dict[int, Venue] = {}
        self.reservations: Dict[int, Reservation] = {}
        self.venue_locks: Dict[int, asyncio.Lock] = defaultdict(asyncio.Lock)
        self.window_queries: list[tuple] = []
        self.fail_on_create = False
        self._ids = itertools.count(1)

    def add_venue(
        self,
        venue_id: int = 1,
        *,
        opens_at: time = time(8, 0),
        closes_at: time = time(22, 0),
        is_active: bool = True,
    ) -> Venue:
        venue = Venue(
            id=venue_id,
            name=f"Hall {venue_id}",
            capacity=40,
            opens_at=opens_at,
            closes_at=closes_at,
            is_active=is_active,
            created_at=NOW,
            updated_at=NOW,
        )
        self.venues[venue_id] = venue
        return venue

    def build_reservation(
        self,
        *,
        venue_id: int,
        requester_id: int,
        window: TimeWindow,
        purpose: str,
        status: ReservationStatus,
        recurrence: RecurrenceKind = RecurrenceKind.ONCE,
        series_id: Optional[str] = None,
    ) -> Reservation:
        return Reservation(
            id=next(self._ids),
            venue_id=venue_id,
            requester_id=requester_id,
            approver_id=None,
            cancelled_by=None,
            booking_date=window.day,
            start_time=window.start,
            end_time=window.end,
            purpose=purpose,
            status=status,
            decline_reason=None,
            cancel_reason=None,
            recurrence=recurrence,
            series_id=series_id,
            version=1,
            created_at=NOW,
            status_changed_at=NOW,
            updated_at=NOW,
        )

    def add_reservation(
        self,
        window: TimeWindow,
        *,
        venue_id: int = 1,
        status: ReservationStatus = ReservationStatus.APPROVED,
        requester_id: int = 50,
    ) -> Reservation:
        reservation = self.build_reservation(
            venue_id=venue_id,
            requester_id=requester_id,
            window=window,
            purpose="existing booking",
            status=status,
        )
        self.reservations[reservation.id] = reservation
        return reservation

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[FakeTransaction]:
        tx = FakeTransaction(self)
        try:
            yield tx
            tx.commit()
        finally:
            tx.release()


@pytest.fixture
def store() -> InMemoryStore:
    s = InMemoryStore()
    s.add_venue(1)
    return s
