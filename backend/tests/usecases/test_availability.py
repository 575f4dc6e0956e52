from datetime import date, time

import pytest
from venue_booking.domain.errors import BookingValidationError, VenueNotFoundError
from venue_booking.domain.recurrence import Once, Weekly
from venue_booking.domain.services import SLOT_HOLDING
from venue_booking.domain.time_window import TimeWindow
from venue_booking.models import ReservationStatus
from venue_booking.usecases import availability as uc


@pytest.mark.asyncio
async def test_query_lists_every_day_with_approved_windows_sorted(store) -> None:
    late = store.add_reservation(TimeWindow.parse(date(2024, 6, 10), "14:00", "15:00"))
    early = store.add_reservation(TimeWindow.parse(date(2024, 6, 10), "09:00", "10:00"))
    store.add_reservation(TimeWindow.parse(date(2024, 6, 11), "09:00", "10:00"), status=ReservationStatus.PENDING)
    store.add_reservation(TimeWindow.parse(date(2024, 6, 12), "09:00", "10:00"), venue_id=2)

    async with store.transaction() as tx:
        days = await uc.query_availability(
            tx.venue_repo,
            tx.reservation_repo,
            venue_id=1,
            start=date(2024, 6, 10),
            end=date(2024, 6, 12),
            max_days=31,
        )

    assert [d.day for d in days] == [date(2024, 6, 10), date(2024, 6, 11), date(2024, 6, 12)]
    assert [b.reservation_id for b in days[0].occupied] == [early.id, late.id]
    assert days[1].occupied == ()
    assert days[2].occupied == ()


@pytest.mark.asyncio
async def test_query_is_repeatable_without_writes(store) -> None:
    store.add_reservation(TimeWindow.parse(date(2024, 6, 10), "09:00", "10:00"))

    async with store.transaction() as tx:
        first = await uc.query_availability(
            tx.venue_repo, tx.reservation_repo, venue_id=1, start=date(2024, 6, 9), end=date(2024, 6, 11), max_days=31
        )
        second = await uc.query_availability(
            tx.venue_repo, tx.reservation_repo, venue_id=1, start=date(2024, 6, 9), end=date(2024, 6, 11), max_days=31
        )
    assert first == second


@pytest.mark.asyncio
async def test_query_rejects_reversed_or_oversized_range(store) -> None:
    async with store.transaction() as tx:
        with pytest.raises(BookingValidationError):
            await uc.query_availability(
                tx.venue_repo, tx.reservation_repo, venue_id=1, start=date(2024, 6, 10), end=date(2024, 6, 9), max_days=31
            )
        with pytest.raises(BookingValidationError):
            await uc.query_availability(
                tx.venue_repo, tx.reservation_repo, venue_id=1, start=date(2024, 6, 1), end=date(2024, 7, 31), max_days=31
            )


@pytest.mark.asyncio
async def test_query_unknown_venue(store) -> None:
    async with store.transaction() as tx:
        with pytest.raises(VenueNotFoundError):
            await uc.query_availability(
                tx.venue_repo, tx.reservation_repo, venue_id=9, start=date(2024, 6, 1), end=date(2024, 6, 2), max_days=31
            )


@pytest.mark.asyncio
async def test_check_availability_ignores_pending_by_default(store) -> None:
    window = TimeWindow.parse(date(2024, 6, 10), "09:00", "10:00")
    store.add_reservation(window, status=ReservationStatus.PENDING)

    async with store.transaction() as tx:
        results = await uc.check_availability(tx.reservation_repo, venue_id=1, windows=[window])
    assert results[0].available


@pytest.mark.asyncio
async def test_check_availability_with_no_windows_skips_store(store) -> None:
    async with store.transaction() as tx:
        assert await uc.check_availability(tx.reservation_repo, venue_id=1, windows=[]) == []
    assert store.window_queries == []


@pytest.mark.asyncio
async def test_check_request_reports_each_occurrence(store) -> None:
    blocker = store.add_reservation(TimeWindow.parse(date(2024, 6, 17), "09:00", "09:30"))
    window = TimeWindow.parse(date(2024, 6, 3), "09:00", "10:00")

    async with store.transaction() as tx:
        results = await uc.check_request(tx.venue_repo, tx.reservation_repo, venue_id=1, request=Weekly(window, 3))

    assert [r.available for r in results] == [True, True, False]
    assert results[2].blocking_ids == (blocker.id,)
    assert results[2].window.start == time(9, 0)
    assert store.reservations.keys() == {blocker.id}


@pytest.mark.asyncio
async def test_check_request_validates_operating_hours(store) -> None:
    window = TimeWindow.parse(date(2024, 6, 3), "07:00", "09:00")
    async with store.transaction() as tx:
        with pytest.raises(BookingValidationError):
            await uc.check_request(tx.venue_repo, tx.reservation_repo, venue_id=1, request=Once(window))


@pytest.mark.asyncio
async def test_check_request_reports_pending_holders_separately(store) -> None:
    window = TimeWindow.parse(date(2024, 6, 3), "09:00", "10:00")
    queued = store.add_reservation(window, status=ReservationStatus.PENDING)

    async with store.transaction() as tx:
        strict = await uc.check_request(tx.venue_repo, tx.reservation_repo, venue_id=1, request=Once(window))
        relaxed = await uc.check_request(
            tx.venue_repo, tx.reservation_repo, venue_id=1, request=Once(window), commit_statuses=SLOT_HOLDING
        )

    assert not strict[0].available
    assert strict[0].blocking_ids == ()
    assert strict[0].pending_ids == (queued.id,)
    assert relaxed[0].available
    assert relaxed[0].pending_ids == ()
