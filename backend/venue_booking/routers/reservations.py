import logging
import re
from typing import Iterable, List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Path, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import Settings, get_settings
from ..deps import get_current_actor, get_current_user_id, get_session
from ..domain.errors import BookingError
from ..domain.events import LifecycleAction, LifecycleEvent, event_bus
from ..domain.lifecycle import Actor
from ..infrastructure.repositories import SqlAlchemyReservationRepository, SqlAlchemyVenueRepository
from ..models import ReservationStatus
from ..schemas import (
    ReservationBatchRead,
    ReservationCancel,
    ReservationCreate,
    ReservationDecision,
    ReservationRead,
)
from ..usecases import reservations as reservation_usecase
from ..utils.time import local_today
from .errors import http_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["reservations"])

_ETAG = re.compile(r'^(?:W/)?"?(\d+)"?$')


def _extract_version(
    if_match: Optional[str],
    payload: Optional[ReservationDecision | ReservationCancel],
) -> Optional[int]:
    """Expected version from If-Match (preferred) or the body; None when neither is given."""
    if if_match is not None:
        match = _ETAG.match(if_match.strip())
        if match is None or int(match.group(1)) < 1:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid If-Match header")
        return int(match.group(1))
    version = getattr(payload, "version", None)
    if version is None:
        return None
    if version < 1:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="version must be >= 1")
    return version


def _publish(events: Iterable[LifecycleEvent]) -> None:
    # The change is already committed; delivery problems never alter the response.
    failed = sum(event_bus.publish(event) for event in events)
    if failed:
        logger.warning("%d lifecycle event deliveries failed", failed)


@router.post("/reservations", response_model=ReservationBatchRead, status_code=status.HTTP_201_CREATED)
async def create_reservation(
    payload: ReservationCreate,
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
    settings: Settings = Depends(get_settings),
) -> ReservationBatchRead:
    venue_repo = SqlAlchemyVenueRepository(session)
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        request = payload.to_request(max_count=settings.max_weekly_occurrences)
        async with session.begin():
            created = await reservation_usecase.create_reservation(
                venue_repo,
                res_repo,
                venue_id=payload.venue_id,
                request=request,
                purpose=payload.purpose,
                requester_id=user_id,
                today=local_today(settings.booking_timezone),
                commit_statuses=reservation_usecase.commit_blocking_statuses(settings.pending_blocks_slot),
            )
    except (BookingError, SQLAlchemyError) as exc:
        raise http_error(exc) from exc

    _publish(LifecycleEvent.from_reservation("reservation.created", r, actor_id=user_id) for r in created)
    return ReservationBatchRead.from_db(reservations=created)


@router.get("/reservations/{reservation_id}", response_model=ReservationRead)
async def get_reservation(
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> ReservationRead:
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        reservation = await reservation_usecase.get_reservation(res_repo, reservation_id=reservation_id)
    except (BookingError, SQLAlchemyError) as exc:
        raise http_error(exc) from exc
    return ReservationRead.from_db(reservation=reservation)


@router.post("/reservations/{reservation_id}/decision", response_model=ReservationRead)
async def decide_reservation(
    payload: ReservationDecision,
    reservation_id: int = Path(..., ge=1),
    if_match: Optional[str] = Header(default=None),
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_current_actor),
) -> ReservationRead:
    expected_version = _extract_version(if_match, payload)
    venue_repo = SqlAlchemyVenueRepository(session)
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        async with session.begin():
            updated, status_from = await reservation_usecase.decide_reservation(
                venue_repo,
                res_repo,
                reservation_id=reservation_id,
                decision=payload.decision,
                approver=actor,
                reason=payload.reason,
                expected_version=expected_version,
            )
    except (BookingError, SQLAlchemyError) as exc:
        raise http_error(exc) from exc

    action: LifecycleAction = (
        "reservation.approved" if updated.status == ReservationStatus.APPROVED else "reservation.declined"
    )
    _publish(
        [
            LifecycleEvent.from_reservation(
                action,
                updated,
                actor_id=actor.actor_id,
                status_from=status_from,
                reason=updated.decline_reason,
            )
        ]
    )
    return ReservationRead.from_db(reservation=updated)


@router.post("/reservations/{reservation_id}/cancel", response_model=ReservationRead)
async def cancel_reservation(
    reservation_id: int = Path(..., ge=1),
    payload: Optional[ReservationCancel] = None,
    if_match: Optional[str] = Header(default=None),
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_current_actor),
) -> ReservationRead:
    expected_version = _extract_version(if_match, payload)
    venue_repo = SqlAlchemyVenueRepository(session)
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        async with session.begin():
            updated, status_from = await reservation_usecase.cancel_reservation(
                venue_repo,
                res_repo,
                reservation_id=reservation_id,
                actor=actor,
                reason=payload.reason if payload else None,
                expected_version=expected_version,
            )
    except (BookingError, SQLAlchemyError) as exc:
        raise http_error(exc) from exc

    _publish(
        [
            LifecycleEvent.from_reservation(
                "reservation.cancelled",
                updated,
                actor_id=actor.actor_id,
                status_from=status_from,
                reason=updated.cancel_reason,
            )
        ]
    )
    return ReservationRead.from_db(reservation=updated)


@router.get("/me/reservations", response_model=List[ReservationRead])
async def list_my_reservations(
    status_filter: Optional[ReservationStatus] = Query(default=None, alias="status"),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> list[ReservationRead]:
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        rows = await reservation_usecase.list_user_reservations(res_repo, user_id=user_id, status=status_filter)
    except (BookingError, SQLAlchemyError) as exc:
        raise http_error(exc) from exc
    return [ReservationRead.from_db(reservation=r) for r in rows]
