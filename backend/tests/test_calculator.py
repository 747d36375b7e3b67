from datetime import date, datetime, time

import pytest

from salon_booking.services.slots import (
    BookingConfig,
    BusyInterval,
    TimeWindow,
    WorkingWindow,
    calculate_candidates,
)

D = date(2030, 1, 7)


def dt(hh_mm):
    return datetime.combine(D, time.fromisoformat(hh_mm))


def starts(candidates):
    return [c.start.strftime("%H:%M") for c in candidates]


def test_morning_window_gives_starts_that_fit_duration():
    working = [WorkingWindow(1, time(9), time(12))]

    result = calculate_candidates(D, 60, working, [], step_minutes=30)

    assert starts(result) == ["09:00", "09:30", "10:00", "10:30", "11:00"]
    assert all(c.end - c.start == dt("10:00") - dt("09:00") for c in result)


def test_busy_interval_removes_overlapping_starts_only():
    working = [WorkingWindow(1, time(9), time(12))]
    busy = [BusyInterval(1, TimeWindow(dt("10:00"), dt("11:00")))]

    result = calculate_candidates(D, 60, working, busy, step_minutes=30)

    # back-to-back with the busy interval on both sides
    assert starts(result) == ["09:00", "11:00"]


def test_candidate_may_start_when_busy_interval_ends():
    working = [WorkingWindow(1, time(9), time(12))]
    busy = [BusyInterval(1, TimeWindow(dt("09:00"), dt("10:00")))]

    result = calculate_candidates(D, 60, working, busy, step_minutes=30)

    assert starts(result) == ["10:00", "10:30", "11:00"]


def test_busy_interval_of_other_specialist_is_ignored():
    working = [WorkingWindow(1, time(9), time(11))]
    busy = [BusyInterval(2, TimeWindow(dt("09:00"), dt("11:00")))]

    assert starts(calculate_candidates(D, 60, working, busy)) == ["09:00", "09:30", "10:00"]


def test_window_shorter_than_duration_yields_nothing():
    working = [WorkingWindow(1, time(9), time(9, 45))]

    assert calculate_candidates(D, 60, working, []) == []


def test_no_specialists_yields_nothing():
    assert calculate_candidates(D, 60, [], []) == []


@pytest.mark.parametrize("duration", [0, -30])
def test_non_positive_duration_yields_nothing(duration):
    working = [WorkingWindow(1, time(9), time(12))]
    assert calculate_candidates(D, duration, working, []) == []


def test_ordered_by_start_then_specialist():
    working = [
        WorkingWindow(2, time(9), time(10)),
        WorkingWindow(1, time(9, 30), time(10, 30)),
        WorkingWindow(1, time(9), time(10)),
    ]

    result = calculate_candidates(D, 30, working, [], step_minutes=30)

    assert [(c.start.strftime("%H:%M"), c.specialist_id) for c in result] == [
        ("09:00", 1),
        ("09:00", 2),
        ("09:30", 1),
        ("09:30", 2),
        ("10:00", 1),
    ]


def test_overlapping_working_rows_do_not_duplicate_candidates():
    working = [
        WorkingWindow(1, time(9), time(11)),
        WorkingWindow(1, time(10), time(12)),
    ]

    result = calculate_candidates(D, 60, working, [], step_minutes=60)

    assert starts(result) == ["09:00", "10:00", "11:00"]


def test_step_controls_grid():
    working = [WorkingWindow(1, time(9), time(10))]

    assert starts(calculate_candidates(D, 30, working, [], step_minutes=15)) == [
        "09:00", "09:15", "09:30",
    ]


def test_not_before_drops_early_starts():
    working = [WorkingWindow(1, time(9), time(12))]

    result = calculate_candidates(D, 60, working, [], step_minutes=30, not_before=dt("09:45"))

    assert starts(result) == ["10:00", "10:30", "11:00"]


def test_booking_config_rejects_odd_step():
    with pytest.raises(ValueError):
        BookingConfig(slot_step_minutes=20)


def test_time_window_is_half_open():
    a = TimeWindow(dt("09:00"), dt("10:00"))
    b = TimeWindow(dt("10:00"), dt("11:00"))
    c = TimeWindow(dt("09:30"), dt("10:30"))

    assert not a.overlaps(b)
    assert a.overlaps(c) and c.overlaps(b)


def test_time_window_rejects_empty_window():
    with pytest.raises(ValueError):
        TimeWindow(dt("10:00"), dt("10:00"))


def test_window_past_midnight_is_not_within_one_day():
    late = TimeWindow.from_duration(dt("23:30"), 60)
    assert not late.within_one_day()
    assert TimeWindow.from_duration(dt("23:00"), 60).within_one_day()
