from __future__ import annotations

import asyncio
import itertools
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from typing import Any, AsyncIterator, Mapping, Optional

import pytest
from wellness.domain.errors import StorageError
from wellness.models import Booking, BookingStatus, Program, ScheduleType


def _utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class InMemoryStore:
    """Shared state behind the fake unit of work, standing in for the database."""

    def __init__(self) -> None:
        self.programs: dict[int, Program] = {}
        self.bookings: dict[int, Booking] = {}
        self.program_locks: dict[int, asyncio.Lock] = {}
        self._ids = itertools.count(1)
        # Failure injection for booking queries.
        self.delay: float = 0.0
        self.fail_on_insert: Optional[Exception] = None
        # Raised after the block completes, like a COMMIT that fails once the rows are written.
        self.fail_on_commit: Optional[Exception] = None

    def next_id(self) -> int:
        return next(self._ids)

    def add_program(self, **overrides: Any) -> Program:
        now = _utc_now_naive()
        fields: dict[str, Any] = {
            "id": self.next_id(),
            "company_id": 1,
            "name": "Massage",
            "description": "",
            "category": "wellness",
            "color": "#2E7D32",
            "icon": "spa",
            "image_url": None,
            "schedule_type": ScheduleType.RECURRING,
            "weekdays": [1, 3, 5],
            "start_date": None,
            "end_date": None,
            "slots": [
                {"time": "09:00", "enabled": True},
                {"time": "10:00", "enabled": True},
                {"time": "14:00", "enabled": True},
            ],
            "duration_minutes": 30,
            "seats_per_slot": 3,
            "booking_horizon_days": 30,
            "limit_per_user": None,
            "limit_per_user_per_day": None,
            "active": True,
            "created_at": now,
            "updated_at": now,
        }
        fields.update(overrides)
        program = Program(**fields)
        self.programs[program.id] = program
        return program

    def add_booking(
        self,
        program: Program,
        *,
        user_id: str,
        day: date,
        slot: str,
        status: BookingStatus = BookingStatus.CONFIRMED,
    ) -> Booking:
        now = _utc_now_naive()
        booking = Booking(
            id=self.next_id(),
            program_id=program.id,
            company_id=program.company_id,
            user_id=user_id,
            user_name=f"User {user_id}",
            user_email=f"{user_id}@example.com",
            booking_date=day,
            slot_time=slot,
            status=status,
            created_at=now,
            updated_at=now,
        )
        self.bookings[booking.id] = booking
        return booking

    def confirmed(self, **criteria: Any) -> list[Booking]:
        return [
            b
            for b in self.bookings.values()
            if b.status == BookingStatus.CONFIRMED and all(getattr(b, k) == v for k, v in criteria.items())
        ]

    def uow(self) -> "FakeUnitOfWork":
        return FakeUnitOfWork(self)


class FakeProgramRepo:
    def __init__(self, store: InMemoryStore, uow: "FakeUnitOfWork") -> None:
        self.store = store
        self.uow = uow

    async def get(self, program_id: int, company_id: int) -> Program | None:
        await asyncio.sleep(0)
        program = self.store.programs.get(program_id)
        if program is None or program.company_id != company_id:
            return None
        return program

    async def get_for_update(self, program_id: int, company_id: int) -> Program | None:
        lock = self.store.program_locks.setdefault(program_id, asyncio.Lock())
        await lock.acquire()
        self.uow.held.append(lock)
        return await self.get(program_id, company_id)

    async def list_for_company(self, company_id: int, *, active_only: bool) -> list[Program]:
        return [
            p
            for p in self.store.programs.values()
            if p.company_id == company_id and (p.active or not active_only)
        ]

    async def create(self, *, company_id: int, fields: Mapping[str, Any]) -> Program:
        return self.store.add_program(company_id=company_id, **fields)

    async def update(self, program: Program, fields: Mapping[str, Any]) -> Program:
        for name, value in fields.items():
            setattr(program, name, value)
        program.updated_at = _utc_now_naive()
        return program

    async def delete(self, program: Program) -> None:
        del self.store.programs[program.id]
        for booking_id in [b.id for b in self.store.bookings.values() if b.program_id == program.id]:
            del self.store.bookings[booking_id]


class FakeBookingRepo:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store

    async def _io(self) -> None:
        # Yield to the loop like a real round trip would.
        await asyncio.sleep(self.store.delay)

    async def count_confirmed(self, program_id: int, day: date, slot: str) -> int:
        await self._io()
        return len(self.store.confirmed(program_id=program_id, booking_date=day, slot_time=slot))

    async def count_confirmed_by_slot(self, program_id: int, day: date) -> dict[str, int]:
        await self._io()
        counts: dict[str, int] = {}
        for b in self.store.confirmed(program_id=program_id, booking_date=day):
            counts[b.slot_time] = counts.get(b.slot_time, 0) + 1
        return counts

    async def count_confirmed_for_user(self, program_id: int, user_id: str) -> int:
        await self._io()
        return len(self.store.confirmed(program_id=program_id, user_id=user_id))

    async def count_confirmed_for_user_on_date(self, program_id: int, user_id: str, day: date) -> int:
        await self._io()
        return len(self.store.confirmed(program_id=program_id, user_id=user_id, booking_date=day))

    async def find_confirmed(self, program_id: int, user_id: str, day: date, slot: str) -> Booking | None:
        await self._io()
        found = self.store.confirmed(program_id=program_id, user_id=user_id, booking_date=day, slot_time=slot)
        return found[0] if found else None

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
        await self._io()
        if self.store.fail_on_insert is not None:
            raise self.store.fail_on_insert
        booking = self.store.add_booking(self.store.programs[program_id], user_id=user_id, day=day, slot=slot)
        booking.company_id = company_id
        booking.user_name = user_name
        booking.user_email = user_email
        return booking

    async def get_for_update(self, booking_id: int, company_id: int) -> Booking | None:
        await self._io()
        booking = self.store.bookings.get(booking_id)
        if booking is None or booking.company_id != company_id:
            return None
        return booking

    async def set_status(self, booking: Booking, status: BookingStatus) -> Booking:
        booking.status = status
        booking.updated_at = _utc_now_naive()
        return booking

    async def list_by_user(self, user_id: str, company_id: int) -> list[Booking]:
        await self._io()
        rows = [b for b in self.store.bookings.values() if b.user_id == user_id and b.company_id == company_id]
        return sorted(rows, key=lambda b: (b.booking_date, b.slot_time))

    async def list_by_company(
        self,
        company_id: int,
        *,
        program_id: int | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        status: BookingStatus | None = None,
    ) -> list[Booking]:
        await self._io()
        rows = [b for b in self.store.bookings.values() if b.company_id == company_id]
        if program_id is not None:
            rows = [b for b in rows if b.program_id == program_id]
        if date_from is not None:
            rows = [b for b in rows if b.booking_date >= date_from]
        if date_to is not None:
            rows = [b for b in rows if b.booking_date <= date_to]
        if status is not None:
            rows = [b for b in rows if b.status == status]
        return rows

    async def count_confirmed_on(self, company_id: int, day: date) -> int:
        await self._io()
        return len(self.store.confirmed(company_id=company_id, booking_date=day))

    async def count_confirmed_from(self, company_id: int, day: date) -> int:
        await self._io()
        return len([b for b in self.store.confirmed(company_id=company_id) if b.booking_date >= day])


class FakeUnitOfWork:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store
        self.held: list[asyncio.Lock] = []
        self.programs = FakeProgramRepo(store, self)
        self.bookings = FakeBookingRepo(store)
        self.begun = 0

    @asynccontextmanager
    async def begin(self) -> AsyncIterator["FakeUnitOfWork"]:
        self.begun += 1
        try:
            yield self
            if self.store.fail_on_commit is not None:
                raise self.store.fail_on_commit
        finally:
            while self.held:
                self.held.pop().release()


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def storage_error() -> StorageError:
    return StorageError("connection reset")
