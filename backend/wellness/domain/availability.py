from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterator, Mapping

from ..models import Program, ScheduleType
from ..utils.time import sunday_weekday


@dataclass(frozen=True)
class AvailableSlot:
    slot: str
    seats_remaining: int
    seats_total: int


@dataclass(frozen=True)
class AvailableDate:
    day: date
    seats_total_remaining: int


def is_date_eligible(program: Program, day: date) -> bool:
    if program.schedule_type == ScheduleType.RECURRING:
        return sunday_weekday(day) in (program.weekdays or [])
    if program.start_date is None or program.end_date is None:
        return False
    return program.start_date <= day <= program.end_date


def compute_available_slots(program: Program, confirmed_by_slot: Mapping[str, int]) -> list[AvailableSlot]:
    """
    Seats left per enabled slot, in time order, given confirmed counts for one date.
    Full slots are left out.
    """
    total = program.seats_per_slot
    items: list[AvailableSlot] = []
    for slot in program.enabled_slot_times():
        remaining = total - int(confirmed_by_slot.get(slot, 0))
        if remaining <= 0:
            continue
        items.append(AvailableSlot(slot=slot, seats_remaining=remaining, seats_total=total))
    return items


def booking_window(today: date, horizon_days: int) -> Iterator[date]:
    for offset in range(max(horizon_days, 0)):
        yield today + timedelta(days=offset)
