from typing import Optional

from ..models import Program
from .errors import (
    DuplicateBookingError,
    InvalidSlotError,
    SlotFullError,
    UserCapExceededError,
    UserDayCapExceededError,
)

# Each check is pure and raises the matching BookingRejected subclass. The
# admission use case feeds them live counts one at a time so it can stop at
# the first failing rule without running the later queries.


def ensure_slot_offered(program: Program, slot: str) -> None:
    if slot not in program.enabled_slot_times():
        raise InvalidSlotError(f"slot {slot!r} is not an enabled slot of program {program.id}")


def _cap_reached(limit: Optional[int], count: int) -> bool:
    return limit is not None and limit > 0 and count >= limit


def check_user_cap(program: Program, *, active_bookings: int) -> None:
    if _cap_reached(program.limit_per_user, active_bookings):
        raise UserCapExceededError(program.limit_per_user)


def check_user_day_cap(program: Program, *, bookings_on_date: int) -> None:
    if _cap_reached(program.limit_per_user_per_day, bookings_on_date):
        raise UserDayCapExceededError(program.limit_per_user_per_day)


def check_slot_capacity(program: Program, *, confirmed: int) -> None:
    if confirmed >= program.seats_per_slot:
        raise SlotFullError()


def check_not_duplicate(*, user_has_booking: bool) -> None:
    if user_has_booking:
        raise DuplicateBookingError()
