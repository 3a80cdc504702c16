from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Literal, Optional

from ..domain.errors import ERROR_MESSAGES, BookingErrorKind, BookingRejected, ProgramNotFoundError, StorageError
from ..domain.repositories import BookingRepository, ProgramRepository, UnitOfWork
from ..domain.services import (
    check_not_duplicate,
    check_slot_capacity,
    check_user_cap,
    check_user_day_cap,
    ensure_slot_offered,
)
from ..models import Booking, BookingStatus
from ..utils.deadline import storage_deadline

logger = logging.getLogger(__name__)

BookingScope = Literal["upcoming", "history", "cancelled"]


@dataclass(frozen=True)
class AdmissionRequest:
    program_id: int
    day: date
    slot: str
    user_name: str
    user_email: str


@dataclass(frozen=True)
class AdmissionResult:
    success: bool
    booking: Optional[Booking] = None
    error_kind: Optional[BookingErrorKind] = None
    message: Optional[str] = None
    # True when the store may have committed the booking even though we could not confirm it.
    outcome_unknown: bool = False

    @classmethod
    def admitted(cls, booking: Booking) -> "AdmissionResult":
        return cls(success=True, booking=booking)

    @classmethod
    def rejected(
        cls,
        kind: BookingErrorKind,
        *,
        message: Optional[str] = None,
        outcome_unknown: bool = False,
    ) -> "AdmissionResult":
        return cls(
            success=False,
            error_kind=kind,
            message=message or ERROR_MESSAGES[kind],
            outcome_unknown=outcome_unknown,
        )


async def admit_booking(
    program_repo: ProgramRepository,
    booking_repo: BookingRepository,
    request: AdmissionRequest,
    *,
    user_id: str,
    company_id: int,
) -> AdmissionResult:
    """
    Run the admission rules in order and insert the booking when all pass.

    Must run inside a transaction: the program row is locked first so that
    concurrent admissions for the same program are serialized until commit.
    Every rule reads a fresh count. Raises InvalidSlotError when the slot is not
    offered by the program.
    """
    try:
        program = await program_repo.get_for_update(request.program_id, company_id)
        if program is None:
            raise ProgramNotFoundError()
        ensure_slot_offered(program, request.slot)

        if program.limit_per_user:
            active = await booking_repo.count_confirmed_for_user(program.id, user_id)
            check_user_cap(program, active_bookings=active)

        if program.limit_per_user_per_day:
            same_day = await booking_repo.count_confirmed_for_user_on_date(program.id, user_id, request.day)
            check_user_day_cap(program, bookings_on_date=same_day)

        confirmed = await booking_repo.count_confirmed(program.id, request.day, request.slot)
        check_slot_capacity(program, confirmed=confirmed)

        existing = await booking_repo.find_confirmed(program.id, user_id, request.day, request.slot)
        check_not_duplicate(user_has_booking=existing is not None)
    except BookingRejected as exc:
        return AdmissionResult.rejected(exc.kind, message=str(exc))

    booking = await booking_repo.create(
        program_id=program.id,
        company_id=company_id,
        user_id=user_id,
        user_name=request.user_name,
        user_email=request.user_email,
        day=request.day,
        slot=request.slot,
    )
    return AdmissionResult.admitted(booking)


async def create_booking(
    uow: UnitOfWork,
    request: AdmissionRequest,
    *,
    user_id: str,
    company_id: int,
    timeout: float | None = None,
) -> AdmissionResult:
    try:
        async with storage_deadline(timeout, operation="booking admission", writes=True):
            async with uow.begin():
                return await admit_booking(
                    uow.programs,
                    uow.bookings,
                    request,
                    user_id=user_id,
                    company_id=company_id,
                )
    except StorageError as exc:
        logger.warning(
            "booking admission failed in storage (program=%s user=%s outcome_unknown=%s): %s",
            request.program_id,
            user_id,
            exc.outcome_unknown,
            exc,
        )
        return AdmissionResult.rejected(BookingErrorKind.STORAGE_UNAVAILABLE, outcome_unknown=exc.outcome_unknown)


async def _cancel(
    booking_repo: BookingRepository,
    *,
    booking_id: int,
    company_id: int,
    user_id: str | None,
) -> tuple[Booking, BookingStatus] | None:
    booking = await booking_repo.get_for_update(booking_id, company_id)
    if booking is None:
        return None
    if user_id is not None and booking.user_id != user_id:
        return None
    previous = booking.status
    if previous == BookingStatus.CANCELLED:
        return booking, previous
    updated = await booking_repo.set_status(booking, BookingStatus.CANCELLED)
    return updated, previous


async def cancel_booking(
    uow: UnitOfWork,
    *,
    booking_id: int,
    company_id: int,
    user_id: str | None = None,
    timeout: float | None = None,
) -> tuple[Booking, BookingStatus] | None:
    """
    Move a booking to cancelled in its own transaction and return it with its previous status.

    Cancelling an already cancelled booking succeeds without touching it.
    Returns None when the booking does not exist in the company, or belongs to
    someone else when `user_id` is given. Raises StorageError when the store
    fails or the deadline expires; `outcome_unknown` tells whether the
    cancellation may have been applied.
    """
    async with storage_deadline(timeout, operation="booking cancellation", writes=True):
        async with uow.begin():
            return await _cancel(uow.bookings, booking_id=booking_id, company_id=company_id, user_id=user_id)


async def list_user_bookings(
    booking_repo: BookingRepository,
    *,
    user_id: str,
    company_id: int,
    today: date,
    scope: BookingScope = "upcoming",
    timeout: float | None = None,
) -> list[Booking]:
    async with storage_deadline(timeout, operation="user bookings query"):
        bookings = await booking_repo.list_by_user(user_id, company_id)
    if scope == "cancelled":
        return [b for b in bookings if b.status == BookingStatus.CANCELLED]
    confirmed = [b for b in bookings if b.status == BookingStatus.CONFIRMED]
    if scope == "history":
        return [b for b in reversed(confirmed) if b.booking_date < today]
    return [b for b in confirmed if b.booking_date >= today]


async def list_company_bookings(
    booking_repo: BookingRepository,
    *,
    company_id: int,
    program_id: int | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    status: BookingStatus | None = BookingStatus.CONFIRMED,
    timeout: float | None = None,
) -> list[Booking]:
    if date_from is not None and date_to is not None and date_from > date_to:
        raise ValueError("date_from must not be after date_to")
    async with storage_deadline(timeout, operation="company bookings query"):
        return await booking_repo.list_by_company(
            company_id,
            program_id=program_id,
            date_from=date_from,
            date_to=date_to,
            status=status,
        )


async def booking_stats(
    booking_repo: BookingRepository,
    *,
    company_id: int,
    today: date,
    timeout: float | None = None,
) -> dict[str, int]:
    async with storage_deadline(timeout, operation="booking stats query"):
        return {
            "today": await booking_repo.count_confirmed_on(company_id, today),
            "upcoming": await booking_repo.count_confirmed_from(company_id, today),
        }
