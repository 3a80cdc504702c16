from datetime import date
from typing import List, Optional

from ..domain.availability import (
    AvailableDate,
    AvailableSlot,
    booking_window,
    compute_available_slots,
    is_date_eligible,
)
from ..domain.repositories import BookingRepository, ProgramRepository
from ..models import Program
from ..utils.deadline import storage_deadline


async def _slots_for(booking_repo: BookingRepository, program: Program, day: date) -> List[AvailableSlot]:
    # Always a fresh read: the same path feeds the final slot picker before booking.
    counts = await booking_repo.count_confirmed_by_slot(program.id, day)
    return compute_available_slots(program, counts)


async def get_available_slots(
    program_repo: ProgramRepository,
    booking_repo: BookingRepository,
    *,
    program_id: int,
    company_id: int,
    day: date,
    timeout: float | None = None,
) -> Optional[List[AvailableSlot]]:
    """Slots with free seats on `day`; None if the program is unknown to the company."""
    async with storage_deadline(timeout, operation="slot availability query"):
        program = await program_repo.get(program_id, company_id)
        if program is None:
            return None
        return await _slots_for(booking_repo, program, day)


async def get_available_dates(
    program_repo: ProgramRepository,
    booking_repo: BookingRepository,
    *,
    program_id: int,
    company_id: int,
    today: date,
    horizon_days: int | None = None,
    timeout: float | None = None,
) -> Optional[List[AvailableDate]]:
    # One deadline covers the whole calendar scan, not each day.
    async with storage_deadline(timeout, operation="date availability query"):
        program = await program_repo.get(program_id, company_id)
        if program is None:
            return None
        horizon = program.booking_horizon_days if horizon_days is None else horizon_days

        items: List[AvailableDate] = []
        for day in booking_window(today, horizon):
            if not is_date_eligible(program, day):
                continue
            slots = await _slots_for(booking_repo, program, day)
            remaining = sum(s.seats_remaining for s in slots)
            if remaining > 0:
                items.append(AvailableDate(day=day, seats_total_remaining=remaining))
        return items
