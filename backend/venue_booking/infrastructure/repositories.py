from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import date
from typing import AsyncIterator, Iterable, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.errors import StorageError
from ..domain.repositories import ReservationRepository, VenueRepository
from ..domain.services import BookedWindow
from ..domain.time_window import TimeWindow
from ..models import RecurrenceKind, Reservation, ReservationStatus, Venue
from ..utils.time import utc_now_naive


@asynccontextmanager
async def _storage_errors(action: str) -> AsyncIterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        raise StorageError(f"failed to {action}") from exc


class SqlAlchemyVenueRepository(VenueRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, venue_id: int) -> Venue | None:
        return await self.session.get(Venue, venue_id)

    async def get_for_update(self, venue_id: int) -> Venue | None:
        async with _storage_errors("lock venue"):
            result = await self.session.scalar(
                select(Venue).where(Venue.id == venue_id).with_for_update().execution_options(populate_existing=True)
            )
        return result if isinstance(result, Venue) else None


class SqlAlchemyReservationRepository(ReservationRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_windows(
        self,
        venue_id: int,
        days: Sequence[date],
        statuses: Iterable[ReservationStatus],
        *,
        for_update: bool = False,
        exclude_id: int | None = None,
    ) -> List[BookedWindow]:
        if not days:
            return []
        stmt = select(
            Reservation.id,
            Reservation.booking_date,
            Reservation.start_time,
            Reservation.end_time,
        ).where(
            Reservation.venue_id == venue_id,
            Reservation.booking_date.in_(list(days)),
            Reservation.status.in_(list(statuses)),
        )
        if exclude_id is not None:
            stmt = stmt.where(Reservation.id != exclude_id)
        if for_update:
            stmt = stmt.with_for_update()
        rows = await self.session.execute(stmt)
        return [
            BookedWindow(reservation_id=rid, window=TimeWindow(day=day, start=start, end=end))
            for rid, day, start, end in rows.all()
        ]

    async def list_in_range(
        self,
        venue_id: int,
        start: date,
        end: date,
        statuses: Iterable[ReservationStatus],
    ) -> List[BookedWindow]:
        stmt = (
            select(
                Reservation.id,
                Reservation.booking_date,
                Reservation.start_time,
                Reservation.end_time,
            )
            .where(
                Reservation.venue_id == venue_id,
                Reservation.booking_date >= start,
                Reservation.booking_date <= end,
                Reservation.status.in_(list(statuses)),
            )
            .order_by(Reservation.booking_date, Reservation.start_time, Reservation.id)
        )
        rows = await self.session.execute(stmt)
        return [
            BookedWindow(reservation_id=rid, window=TimeWindow(day=day, start=s, end=e))
            for rid, day, s, e in rows.all()
        ]

    async def create_many(
        self,
        *,
        venue_id: int,
        requester_id: int,
        windows: Sequence[TimeWindow],
        purpose: str,
        recurrence: RecurrenceKind,
        series_id: str | None,
    ) -> List[Reservation]:
        now = utc_now_naive()
        reservations = [
            Reservation(
                venue_id=venue_id,
                requester_id=requester_id,
                booking_date=window.day,
                start_time=window.start,
                end_time=window.end,
                purpose=purpose,
                status=ReservationStatus.PENDING,
                recurrence=recurrence,
                series_id=series_id,
                version=1,
                created_at=now,
                status_changed_at=now,
                updated_at=now,
            )
            for window in windows
        ]
        async with _storage_errors("create reservations"):
            self.session.add_all(reservations)
            await self.session.flush()
        return reservations

    async def get(self, reservation_id: int) -> Optional[Reservation]:
        return await self.session.get(Reservation, reservation_id)

    async def get_for_update(self, reservation_id: int) -> Optional[Reservation]:
        async with _storage_errors("lock reservation"):
            result = await self.session.scalar(
                select(Reservation)
                .where(Reservation.id == reservation_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
        return result if isinstance(result, Reservation) else None

    async def save(self, reservation: Reservation) -> Reservation:
        async with _storage_errors("update reservation"):
            self.session.add(reservation)
            await self.session.flush()
        return reservation

    async def list_by_requester(
        self,
        requester_id: int,
        status: ReservationStatus | None = None,
    ) -> List[Reservation]:
        stmt = select(Reservation).where(Reservation.requester_id == requester_id)
        if status is not None:
            stmt = stmt.where(Reservation.status == status)
        stmt = stmt.order_by(Reservation.booking_date, Reservation.start_time, Reservation.id)
        return list((await self.session.scalars(stmt)).all())

    async def list_by_venue(
        self,
        venue_id: int,
        status: ReservationStatus | None = None,
    ) -> List[Reservation]:
        stmt = select(Reservation).where(Reservation.venue_id == venue_id)
        if status is not None:
            stmt = stmt.where(Reservation.status == status)
        stmt = stmt.order_by(Reservation.booking_date, Reservation.start_time, Reservation.id)
        return list((await self.session.scalars(stmt)).all())
