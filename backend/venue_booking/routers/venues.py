from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import Settings, get_settings
from ..deps import get_current_user_id, get_session
from ..domain.errors import BookingError
from ..infrastructure.repositories import SqlAlchemyReservationRepository, SqlAlchemyVenueRepository
from ..models import ReservationStatus
from ..schemas import CandidateRead, DayAvailabilityRead, ReservationRead, WindowRequest
from ..usecases import availability as availability_usecase
from ..usecases import reservations as reservation_usecase
from .errors import http_error

router = APIRouter(prefix="/venues", tags=["venues"], dependencies=[Depends(get_current_user_id)])


@router.get("/{venue_id}/availability", response_model=List[DayAvailabilityRead])
async def query_availability(
    venue_id: int,
    start: date = Query(..., description="first date of the range (inclusive)"),
    end: date = Query(..., description="last date of the range (inclusive)"),
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> list[DayAvailabilityRead]:
    venue_repo = SqlAlchemyVenueRepository(session)
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        days = await availability_usecase.query_availability(
            venue_repo,
            res_repo,
            venue_id=venue_id,
            start=start,
            end=end,
            max_days=settings.max_query_days,
        )
    except (BookingError, SQLAlchemyError) as exc:
        raise http_error(exc) from exc
    return [DayAvailabilityRead.from_domain(day) for day in days]


@router.post(
    "/{venue_id}/availability/check",
    response_model=List[CandidateRead],
    description=(
        "Dry run of a booking request. `blocking_reservation_ids` are approved holders; "
        "`pending_reservation_ids` are pending requests that would also reject the booking "
        "while PENDING_BLOCKS_SLOT is on. `available` is true only when both are empty."
    ),
)
async def check_availability(
    venue_id: int,
    payload: WindowRequest,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> list[CandidateRead]:
    venue_repo = SqlAlchemyVenueRepository(session)
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        request = payload.to_request(max_count=settings.max_weekly_occurrences)
        candidates = await availability_usecase.check_request(
            venue_repo,
            res_repo,
            venue_id=venue_id,
            request=request,
            commit_statuses=reservation_usecase.commit_blocking_statuses(settings.pending_blocks_slot),
        )
    except (BookingError, SQLAlchemyError) as exc:
        raise http_error(exc) from exc
    return [CandidateRead.from_domain(c) for c in candidates]


@router.get("/{venue_id}/reservations", response_model=List[ReservationRead])
async def list_venue_reservations(
    venue_id: int,
    status_filter: Optional[ReservationStatus] = Query(default=None, alias="status"),
    session: AsyncSession = Depends(get_session),
) -> list[ReservationRead]:
    venue_repo = SqlAlchemyVenueRepository(session)
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        rows = await reservation_usecase.list_venue_reservations(
            venue_repo,
            res_repo,
            venue_id=venue_id,
            status=status_filter,
        )
    except (BookingError, SQLAlchemyError) as exc:
        raise http_error(exc) from exc
    return [ReservationRead.from_db(reservation=r) for r in rows]
