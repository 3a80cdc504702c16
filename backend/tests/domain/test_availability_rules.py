from datetime import date, datetime, timedelta

from wellness.domain.availability import (
    AvailableSlot,
    booking_window,
    compute_available_slots,
    is_date_eligible,
)
from wellness.models import Program, ScheduleType


def _program(**overrides: object) -> Program:
    fields: dict[str, object] = {
        "id": 1,
        "company_id": 1,
        "name": "Yoga",
        "schedule_type": ScheduleType.RECURRING,
        "weekdays": [1, 3, 5],
        "start_date": None,
        "end_date": None,
        "slots": [
            {"time": "14:00", "enabled": True},
            {"time": "09:00", "enabled": True},
            {"time": "11:00", "enabled": False},
        ],
        "seats_per_slot": 3,
        "booking_horizon_days": 30,
        "created_at": datetime(2024, 1, 1),
        "updated_at": datetime(2024, 1, 1),
    }
    fields.update(overrides)
    return Program(**fields)


def test_recurring_mon_wed_fri_over_sixty_days() -> None:
    program = _program()
    start = date(2024, 6, 1)
    for offset in range(60):
        day = start + timedelta(days=offset)
        # date.weekday(): Monday=0, Wednesday=2, Friday=4
        assert is_date_eligible(program, day) is (day.weekday() in (0, 2, 4)), day


def test_recurring_sunday_is_zero() -> None:
    program = _program(weekdays=[0])
    assert is_date_eligible(program, date(2024, 6, 2))  # Sunday
    assert not is_date_eligible(program, date(2024, 6, 1))  # Saturday


def test_date_range_is_inclusive() -> None:
    program = _program(
        schedule_type=ScheduleType.DATE_RANGE,
        weekdays=[],
        start_date=date(2024, 6, 1),
        end_date=date(2024, 6, 5),
    )
    assert not is_date_eligible(program, date(2024, 5, 31))
    assert not is_date_eligible(program, date(2024, 6, 6))
    for day in range(1, 6):
        assert is_date_eligible(program, date(2024, 6, day))


def test_date_range_without_bounds_is_never_eligible() -> None:
    program = _program(schedule_type=ScheduleType.DATE_RANGE, start_date=date(2024, 6, 1), end_date=None)
    assert not is_date_eligible(program, date(2024, 6, 1))


def test_seats_remaining_counts_down_and_full_slots_drop_out() -> None:
    program = _program(slots=[{"time": "09:00", "enabled": True}])
    assert compute_available_slots(program, {}) == [AvailableSlot(slot="09:00", seats_remaining=3, seats_total=3)]
    assert compute_available_slots(program, {"09:00": 2})[0].seats_remaining == 1
    assert compute_available_slots(program, {"09:00": 3}) == []


def test_only_enabled_slots_in_time_order() -> None:
    slots = compute_available_slots(_program(), {"14:00": 1})
    assert [s.slot for s in slots] == ["09:00", "14:00"]
    assert slots[1].seats_remaining == 2


def test_no_enabled_slots_gives_empty_list() -> None:
    program = _program(slots=[{"time": "09:00", "enabled": False}])
    assert compute_available_slots(program, {}) == []


def test_booking_window_covers_horizon_days() -> None:
    days = list(booking_window(date(2024, 6, 1), 7))
    assert days[0] == date(2024, 6, 1)
    assert days[-1] == date(2024, 6, 7)
    assert len(days) == 7
