from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import date
from typing import Any, AsyncIterator, List, Mapping, Optional

from sqlalchemy import Select, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.errors import StorageError
from ..domain.repositories import BookingRepository, ProgramRepository
from ..models import Booking, BookingStatus, Program
from ..utils.time import utc_now_naive


class SqlAlchemyProgramRepository(ProgramRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, program_id: int, company_id: int) -> Program | None:
        stmt = select(Program).where(Program.id == program_id, Program.company_id == company_id)
        result = await self.session.scalar(stmt)
        return result if isinstance(result, Program) else None

    async def get_for_update(self, program_id: int, company_id: int) -> Program | None:
        stmt = (
            select(Program)
            .where(Program.id == program_id, Program.company_id == company_id)
            .with_for_update()
        )
        result = await self.session.scalar(stmt)
        return result if isinstance(result, Program) else None

    async def list_for_company(self, company_id: int, *, active_only: bool) -> List[Program]:
        stmt = select(Program).where(Program.company_id == company_id)
        if active_only:
            stmt = stmt.where(Program.active.is_(True))
        stmt = stmt.order_by(Program.created_at.desc())
        return list((await self.session.scalars(stmt)).all())

    async def create(self, *, company_id: int, fields: Mapping[str, Any]) -> Program:
        now = utc_now_naive()
        program = Program(company_id=company_id, created_at=now, updated_at=now, **fields)
        self.session.add(program)
        await self.session.flush()
        return program

    async def update(self, program: Program, fields: Mapping[str, Any]) -> Program:
        for name, value in fields.items():
            setattr(program, name, value)
        program.updated_at = utc_now_naive()
        self.session.add(program)
        await self.session.flush()
        return program

    async def delete(self, program: Program) -> None:
        await self.session.delete(program)
        await self.session.flush()


class SqlAlchemyBookingRepository(BookingRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _count(self, *criteria: Any) -> int:
        stmt = select(func.count(Booking.id)).where(Booking.status == BookingStatus.CONFIRMED, *criteria)
        return int(await self.session.scalar(stmt) or 0)

    async def count_confirmed(self, program_id: int, day: date, slot: str) -> int:
        return await self._count(
            Booking.program_id == program_id,
            Booking.booking_date == day,
            Booking.slot_time == slot,
        )

    async def count_confirmed_by_slot(self, program_id: int, day: date) -> dict[str, int]:
        stmt = (
            select(Booking.slot_time, func.count(Booking.id).label("confirmed"))
            .where(
                Booking.program_id == program_id,
                Booking.booking_date == day,
                Booking.status == BookingStatus.CONFIRMED,
            )
            .group_by(Booking.slot_time)
        )
        rows = await self.session.execute(stmt)
        return {slot: int(confirmed) for slot, confirmed in rows.all()}

    async def count_confirmed_for_user(self, program_id: int, user_id: str) -> int:
        return await self._count(Booking.program_id == program_id, Booking.user_id == user_id)

    async def count_confirmed_for_user_on_date(self, program_id: int, user_id: str, day: date) -> int:
        return await self._count(
            Booking.program_id == program_id,
            Booking.user_id == user_id,
            Booking.booking_date == day,
        )

    async def find_confirmed(self, program_id: int, user_id: str, day: date, slot: str) -> Optional[Booking]:
        stmt = (
            select(Booking)
            .where(
                Booking.program_id == program_id,
                Booking.user_id == user_id,
                Booking.booking_date == day,
                Booking.slot_time == slot,
                Booking.status == BookingStatus.CONFIRMED,
            )
            .limit(1)
        )
        result = await self.session.scalar(stmt)
        return result if isinstance(result, Booking) else None

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
    ) -> Booking:
        now = utc_now_naive()
        booking = Booking(
            program_id=program_id,
            company_id=company_id,
            user_id=user_id,
            user_name=user_name,
            user_email=user_email,
            booking_date=day,
            slot_time=slot,
            status=BookingStatus.CONFIRMED,
            created_at=now,
            updated_at=now,
        )
        self.session.add(booking)
        await self.session.flush()
        return booking

    async def get_for_update(self, booking_id: int, company_id: int) -> Optional[Booking]:
        stmt = (
            select(Booking)
            .where(Booking.id == booking_id, Booking.company_id == company_id)
            .with_for_update()
        )
        result = await self.session.scalar(stmt)
        return result if isinstance(result, Booking) else None

    async def set_status(self, booking: Booking, status: BookingStatus) -> Booking:
        booking.status = status
        booking.updated_at = utc_now_naive()
        self.session.add(booking)
        await self.session.flush()
        return booking

    async def list_by_user(self, user_id: str, company_id: int) -> List[Booking]:
        stmt = (
            select(Booking)
            .where(Booking.user_id == user_id, Booking.company_id == company_id)
            .order_by(Booking.booking_date.asc(), Booking.slot_time.asc())
        )
        return list((await self.session.scalars(stmt)).all())

    async def list_by_company(
        self,
        company_id: int,
        *,
        program_id: int | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        status: BookingStatus | None = None,
    ) -> List[Booking]:
        stmt: Select[tuple[Booking]] = select(Booking).where(Booking.company_id == company_id)
        if program_id is not None:
            stmt = stmt.where(Booking.program_id == program_id)
        if date_from is not None:
            stmt = stmt.where(Booking.booking_date >= date_from)
        if date_to is not None:
            stmt = stmt.where(Booking.booking_date <= date_to)
        if status is not None:
            stmt = stmt.where(Booking.status == status)
        stmt = stmt.order_by(Booking.created_at.desc())
        return list((await self.session.scalars(stmt)).all())

    async def count_confirmed_on(self, company_id: int, day: date) -> int:
        return await self._count(Booking.company_id == company_id, Booking.booking_date == day)

    async def count_confirmed_from(self, company_id: int, day: date) -> int:
        return await self._count(Booking.company_id == company_id, Booking.booking_date >= day)


class SqlAlchemyUnitOfWork:
    """Repositories sharing one session; `begin()` scopes a transaction and its row locks."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.programs = SqlAlchemyProgramRepository(session)
        self.bookings = SqlAlchemyBookingRepository(session)

    @asynccontextmanager
    async def begin(self) -> AsyncIterator["SqlAlchemyUnitOfWork"]:
        committing = False
        try:
            async with self.session.begin():
                yield self
                committing = True
        except SQLAlchemyError as exc:
            # A failed COMMIT may still have been applied on the server.
            raise StorageError(str(exc), outcome_unknown=committing) from exc
