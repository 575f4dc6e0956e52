from datetime import date, time

import pytest
from venue_booking.domain.errors import BookingValidationError, InvalidWindowError
from venue_booking.domain.time_window import TimeWindow, format_hhmm, overlaps, parse_hhmm

DAY = date(2024, 6, 10)


@pytest.mark.parametrize("value, expected", [("00:00", time(0, 0)), ("09:05", time(9, 5)), ("23:59", time(23, 59))])
def test_parse_hhmm_accepts_valid_times(value: str, expected: time) -> None:
    assert parse_hhmm(value) == expected
    assert format_hhmm(expected) == value


@pytest.mark.parametrize("value", ["24:00", "9:00", "09:60", "0900", "09:00:00", "", " 09:00", "ab:cd"])
def test_parse_hhmm_rejects_malformed_times(value: str) -> None:
    with pytest.raises(InvalidWindowError):
        parse_hhmm(value)


def test_invalid_window_is_a_validation_error() -> None:
    with pytest.raises(BookingValidationError):
        TimeWindow.parse(DAY, "12:00", "11:00")


@pytest.mark.parametrize("start, end", [("10:00", "10:00"), ("11:00", "10:00")])
def test_window_requires_start_before_end(start: str, end: str) -> None:
    with pytest.raises(InvalidWindowError):
        TimeWindow.parse(DAY, start, end)


def test_window_requires_minute_granularity() -> None:
    with pytest.raises(InvalidWindowError):
        TimeWindow(DAY, time(9, 0, 30), time(10, 0))


def test_window_overlaps_itself() -> None:
    window = TimeWindow.parse(DAY, "10:00", "12:00")
    assert overlaps(window, window)


@pytest.mark.parametrize(
    "a, b",
    [
        (("10:00", "12:00"), ("11:00", "13:00")),
        (("10:00", "12:00"), ("09:00", "10:30")),
        (("10:00", "12:00"), ("10:30", "11:30")),
        (("10:00", "12:00"), ("12:00", "13:00")),
        (("10:00", "12:00"), ("08:00", "09:00")),
    ],
)
def test_overlap_is_symmetric(a: tuple[str, str], b: tuple[str, str]) -> None:
    first = TimeWindow.parse(DAY, *a)
    second = TimeWindow.parse(DAY, *b)
    assert overlaps(first, second) == overlaps(second, first)


def test_back_to_back_windows_do_not_overlap() -> None:
    morning = TimeWindow.parse(DAY, "10:00", "12:00")
    noon = TimeWindow.parse(DAY, "12:00", "13:00")
    assert not morning.overlaps(noon)
    assert not noon.overlaps(morning)


def test_partial_and_enclosing_windows_overlap() -> None:
    base = TimeWindow.parse(DAY, "10:00", "12:00")
    assert base.overlaps(TimeWindow.parse(DAY, "11:00", "13:00"))
    assert base.overlaps(TimeWindow.parse(DAY, "09:00", "10:01"))
    assert base.overlaps(TimeWindow.parse(DAY, "08:00", "18:00"))


def test_windows_on_different_days_never_overlap() -> None:
    a = TimeWindow.parse(DAY, "10:00", "12:00")
    b = TimeWindow.parse(date(2024, 6, 11), "10:00", "12:00")
    assert not overlaps(a, b)


def test_shifted_keeps_time_of_day() -> None:
    window = TimeWindow.parse(DAY, "10:00", "12:00")
    moved = window.shifted(7)
    assert moved.day == date(2024, 6, 17)
    assert (moved.start, moved.end) == (window.start, window.end)
    assert str(moved) == "2024-06-17 10:00-12:00"
