import logging
from typing import List, Literal

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status

from ..config import get_settings
from ..deps import get_tenant_identity, get_uow
from ..domain.errors import BookingErrorKind, InvalidSlotError, StorageError
from ..infrastructure.repositories import SqlAlchemyUnitOfWork
from ..schemas import BookingCreate, BookingRead, BookingRejection
from ..usecases import bookings as booking_usecase
from ..utils.audit_log import emit_audit_log
from ..utils.auth import Identity
from ..utils.time import business_today

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["bookings"], dependencies=[Depends(get_tenant_identity)])

REJECTION_STATUS: dict[BookingErrorKind, int] = {
    BookingErrorKind.PROGRAM_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    BookingErrorKind.USER_CAP_EXCEEDED: status.HTTP_409_CONFLICT,
    BookingErrorKind.USER_DAY_CAP_EXCEEDED: status.HTTP_409_CONFLICT,
    BookingErrorKind.SLOT_FULL: status.HTTP_409_CONFLICT,
    BookingErrorKind.DUPLICATE_BOOKING: status.HTTP_409_CONFLICT,
    BookingErrorKind.STORAGE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _audit_failure() -> HTTPException:
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="failed to write audit log")


def _storage_unavailable(exc: StorageError) -> HTTPException:
    logger.error("booking storage call failed (outcome_unknown=%s): %s", exc.outcome_unknown, exc)
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=BookingRejection.from_storage_error(exc).model_dump(mode="json"),
    )


@router.post("/bookings", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: BookingCreate,
    uow: SqlAlchemyUnitOfWork = Depends(get_uow),
    identity: Identity = Depends(get_tenant_identity),
) -> BookingRead:
    user_name = payload.user_name or identity.name
    user_email = payload.user_email or identity.email
    if not user_name or not user_email:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="complete your profile (name and email) before booking",
        )

    request = booking_usecase.AdmissionRequest(
        program_id=payload.program_id,
        day=payload.date,
        slot=payload.slot,
        user_name=user_name,
        user_email=user_email,
    )
    try:
        result = await booking_usecase.create_booking(
            uow,
            request,
            user_id=identity.user_id,
            company_id=identity.company_id,
            timeout=get_settings().storage_timeout_seconds,
        )
    except InvalidSlotError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))

    try:
        if not result.success:
            emit_audit_log(
                action="booking.rejected",
                initiator="user",
                company_id=identity.company_id,
                user_id=identity.user_id,
                program_id=payload.program_id,
                booking_date=payload.date,
                slot=payload.slot,
                error_kind=result.error_kind,
                extra={"outcome_unknown": result.outcome_unknown} if result.outcome_unknown else None,
            )
        else:
            emit_audit_log(
                action="booking.created",
                initiator="user",
                company_id=identity.company_id,
                user_id=identity.user_id,
                program_id=result.booking.program_id,
                booking_id=result.booking.id,
                booking_date=result.booking.booking_date,
                slot=result.booking.slot_time,
                status_to=result.booking.status,
            )
    except RuntimeError as exc:
        raise _audit_failure() from exc

    if not result.success:
        rejection = BookingRejection(
            error_kind=result.error_kind,
            message=result.message,
            outcome_unknown=result.outcome_unknown,
        )
        raise HTTPException(status_code=REJECTION_STATUS[result.error_kind], detail=rejection.model_dump(mode="json"))

    return BookingRead.from_db(booking=result.booking)


@router.get("/me/bookings", response_model=List[BookingRead])
async def list_my_bookings(
    scope: Literal["upcoming", "history", "cancelled"] = Query(default="upcoming"),
    uow: SqlAlchemyUnitOfWork = Depends(get_uow),
    identity: Identity = Depends(get_tenant_identity),
) -> list[BookingRead]:
    try:
        async with uow.begin():
            bookings = await booking_usecase.list_user_bookings(
                uow.bookings,
                user_id=identity.user_id,
                company_id=identity.company_id,
                today=business_today(),
                scope=scope,
                timeout=get_settings().storage_timeout_seconds,
            )
    except StorageError as exc:
        raise _storage_unavailable(exc) from exc
    return [BookingRead.from_db(booking=b) for b in bookings]


@router.post("/me/bookings/{booking_id}/cancel", response_model=BookingRead)
async def cancel_my_booking(
    booking_id: int = Path(..., ge=1),
    uow: SqlAlchemyUnitOfWork = Depends(get_uow),
    identity: Identity = Depends(get_tenant_identity),
) -> BookingRead:
    try:
        outcome = await booking_usecase.cancel_booking(
            uow,
            booking_id=booking_id,
            company_id=identity.company_id,
            user_id=identity.user_id,
            timeout=get_settings().storage_timeout_seconds,
        )
    except StorageError as exc:
        raise _storage_unavailable(exc) from exc
    if outcome is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="booking not found")
    booking, previous = outcome

    try:
        emit_audit_log(
            action="booking.cancelled",
            initiator="user",
            company_id=identity.company_id,
            user_id=identity.user_id,
            program_id=booking.program_id,
            booking_id=booking.id,
            booking_date=booking.booking_date,
            slot=booking.slot_time,
            status_from=previous,
            status_to=booking.status,
        )
    except RuntimeError as exc:
        raise _audit_failure() from exc

    return BookingRead.from_db(booking=booking)
