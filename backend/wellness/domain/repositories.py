from __future__ import annotations

from datetime import date
from typing import Any, AsyncContextManager, Mapping, Protocol

from ..models import Booking, BookingStatus, Program


class ProgramRepository(Protocol):
    async def get(self, program_id: int, company_id: int) -> Program | None: ...

    async def get_for_update(self, program_id: int, company_id: int) -> Program | None: ...

    async def list_for_company(self, company_id: int, *, active_only: bool) -> list[Program]: ...

    async def create(self, *, company_id: int, fields: Mapping[str, Any]) -> Program: ...

    async def update(self, program: Program, fields: Mapping[str, Any]) -> Program: ...

    async def delete(self, program: Program) -> None: ...


class BookingRepository(Protocol):
    async def count_confirmed(self, program_id: int, day: date, slot: str) -> int: ...

    async def count_confirmed_by_slot(self, program_id: int, day: date) -> dict[str, int]: ...

    async def count_confirmed_for_user(self, program_id: int, user_id: str) -> int: ...

    async def count_confirmed_for_user_on_date(self, program_id: int, user_id: str, day: date) -> int: ...

    async def find_confirmed(self, program_id: int, user_id: str, day: date, slot: str) -> Booking | None: ...

    async def create(
        self,
        *,
        program_id: int,
        company_id: int,
        user_id: str,
        user_name: str,
        user_email: str,
        day: date,
        slot: str,
    ) -> Booking: ...

    async def get_for_update(self, booking_id: int, company_id: int) -> Booking | None: ...

    async def set_status(self, booking: Booking, status: BookingStatus) -> Booking: ...

    async def list_by_user(self, user_id: str, company_id: int) -> list[Booking]: ...

    async def list_by_company(
        self,
        company_id: int,
        *,
        program_id: int | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        status: BookingStatus | None = None,
    ) -> list[Booking]: ...

    async def count_confirmed_on(self, company_id: int, day: date) -> int: ...

    async def count_confirmed_from(self, company_id: int, day: date) -> int: ...


class UnitOfWork(Protocol):
    """A transaction scope; row locks taken through its repositories live until it ends."""

    programs: ProgramRepository
    bookings: BookingRepository

    def begin(self) -> AsyncContextManager[Any]: ...
