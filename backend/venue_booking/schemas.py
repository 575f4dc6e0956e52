import datetime as dt
from typing import List, Optional

from pydantic import BaseModel, Field

from .domain.recurrence import CreateRequest, build_request
from .domain.services import BookedWindow, CandidateAvailability, DayAvailability
from .domain.time_window import TimeWindow, format_hhmm
from .models import RecurrenceKind, Reservation, ReservationStatus
from .usecases.reservations import Decision


class WindowRequest(BaseModel):
    date: dt.date
    start: str = Field(description="HH:MM, 24-hour")
    end: str = Field(description="HH:MM, 24-hour")
    recurrence: RecurrenceKind = RecurrenceKind.ONCE
    count: Optional[int] = Field(default=None, description="occurrences, weekly only")

    def to_request(self, *, max_count: Optional[int] = None) -> CreateRequest:
        window = TimeWindow.parse(self.date, self.start, self.end)
        return build_request(window, self.recurrence, self.count, max_count=max_count)


class ReservationCreate(WindowRequest):
    venue_id: int = Field(ge=1)
    purpose: str


class ReservationDecision(BaseModel):
    decision: Decision
    reason: Optional[str] = None
    version: Optional[int] = Field(default=None, ge=1)


class ReservationCancel(BaseModel):
    reason: Optional[str] = None
    version: Optional[int] = Field(default=None, ge=1)


class ReservationRead(BaseModel):
    reservation_id: int
    venue_id: int
    requester_id: int
    approver_id: Optional[int]
    cancelled_by: Optional[int]
    date: dt.date
    start: str
    end: str
    purpose: str
    status: ReservationStatus
    decline_reason: Optional[str]
    cancel_reason: Optional[str]
    recurrence: RecurrenceKind
    series_id: Optional[str]
    version: int
    created_at: dt.datetime
    status_changed_at: dt.datetime
    updated_at: dt.datetime

    @classmethod
    def from_db(cls, *, reservation: Reservation) -> "ReservationRead":
        return cls(
            reservation_id=reservation.id,
            venue_id=reservation.venue_id,
            requester_id=reservation.requester_id,
            approver_id=reservation.approver_id,
            cancelled_by=reservation.cancelled_by,
            date=reservation.booking_date,
            start=format_hhmm(reservation.start_time),
            end=format_hhmm(reservation.end_time),
            purpose=reservation.purpose,
            status=reservation.status,
            decline_reason=reservation.decline_reason,
            cancel_reason=reservation.cancel_reason,
            recurrence=reservation.recurrence,
            series_id=reservation.series_id,
            version=reservation.version,
            created_at=reservation.created_at,
            status_changed_at=reservation.status_changed_at,
            updated_at=reservation.updated_at,
        )


class ReservationBatchRead(BaseModel):
    reservation_ids: List[int]
    series_id: Optional[str]
    reservations: List[ReservationRead]

    @classmethod
    def from_db(cls, *, reservations: List[Reservation]) -> "ReservationBatchRead":
        return cls(
            reservation_ids=[r.id for r in reservations],
            series_id=reservations[0].series_id if reservations else None,
            reservations=[ReservationRead.from_db(reservation=r) for r in reservations],
        )


class OccupiedWindowRead(BaseModel):
    reservation_id: int
    start: str
    end: str

    @classmethod
    def from_domain(cls, booked: BookedWindow) -> "OccupiedWindowRead":
        return cls(
            reservation_id=booked.reservation_id,
            start=format_hhmm(booked.window.start),
            end=format_hhmm(booked.window.end),
        )


class DayAvailabilityRead(BaseModel):
    date: dt.date
    occupied: List[OccupiedWindowRead]

    @classmethod
    def from_domain(cls, day: DayAvailability) -> "DayAvailabilityRead":
        return cls(date=day.day, occupied=[OccupiedWindowRead.from_domain(b) for b in day.occupied])


class CandidateRead(BaseModel):
    date: dt.date
    start: str
    end: str
    available: bool
    blocking_reservation_ids: List[int]
    pending_reservation_ids: List[int]

    @classmethod
    def from_domain(cls, candidate: CandidateAvailability) -> "CandidateRead":
        return cls(
            date=candidate.window.day,
            start=format_hhmm(candidate.window.start),
            end=format_hhmm(candidate.window.end),
            available=candidate.available,
            blocking_reservation_ids=list(candidate.blocking_ids),
            pending_reservation_ids=list(candidate.pending_ids),
        )
