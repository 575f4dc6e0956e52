import logging

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError

from ..domain.errors import (
    BookingValidationError,
    ForbiddenActionError,
    InvalidTransitionError,
    NotFoundError,
    SlotConflictError,
    StorageError,
    VersionConflictError,
)

logger = logging.getLogger(__name__)


def http_error(exc: Exception) -> HTTPException:
    """Translate a booking-engine (or storage) error into the HTTP response the API promises."""
    if isinstance(exc, SlotConflictError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": str(exc),
                "conflict_date": exc.conflict_date.isoformat(),
                "blocking_reservation_ids": list(exc.blocking_ids),
            },
        )
    if isinstance(exc, (InvalidTransitionError, VersionConflictError)):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, ForbiddenActionError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, BookingValidationError):
        return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    if isinstance(exc, (StorageError, SQLAlchemyError)):
        logger.error("storage failure: %s", exc, exc_info=exc)
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="storage unavailable")
    logger.error("unexpected error: %s", exc, exc_info=exc)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="internal error")
