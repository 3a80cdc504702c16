import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Response, status

from ..config import get_settings
from ..deps import get_uow, require_admin
from ..domain.errors import StorageError
from ..infrastructure.repositories import SqlAlchemyUnitOfWork
from ..models import BookingStatus
from ..schemas import BookingRead, BookingRejection, BookingStats, ProgramCreate, ProgramRead, ProgramUpdate
from ..usecases import bookings as booking_usecase
from ..usecases import programs as program_usecase
from ..utils.audit_log import AuditAction, emit_audit_log
from ..utils.auth import Identity
from ..utils.time import business_today

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


def _audit_program(action: AuditAction, identity: Identity, program_id: int, **extra: object) -> None:
    try:
        emit_audit_log(
            action=action,
            initiator="admin",
            company_id=identity.company_id,
            user_id=identity.user_id,
            program_id=program_id,
            extra=dict(extra) or None,
        )
    except RuntimeError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="failed to write audit log") from exc


def _storage_unavailable(exc: StorageError) -> HTTPException:
    logger.error("admin storage call failed (outcome_unknown=%s): %s", exc.outcome_unknown, exc)
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=BookingRejection.from_storage_error(exc).model_dump(mode="json"),
    )


@router.get("/programs", response_model=List[ProgramRead])
async def list_programs(
    include_inactive: bool = Query(default=True),
    uow: SqlAlchemyUnitOfWork = Depends(get_uow),
    identity: Identity = Depends(require_admin),
) -> list[ProgramRead]:
    try:
        async with uow.begin():
            programs = await program_usecase.list_programs(
                uow.programs,
                company_id=identity.company_id,
                active_only=not include_inactive,
                timeout=get_settings().storage_timeout_seconds,
            )
    except StorageError as exc:
        raise _storage_unavailable(exc) from exc
    return [ProgramRead.from_db(program=p) for p in programs]


@router.post("/programs", response_model=ProgramRead, status_code=status.HTTP_201_CREATED)
async def create_program(
    payload: ProgramCreate,
    uow: SqlAlchemyUnitOfWork = Depends(get_uow),
    identity: Identity = Depends(require_admin),
) -> ProgramRead:
    try:
        async with uow.begin():
            program = await program_usecase.create_program(
                uow.programs,
                company_id=identity.company_id,
                fields=payload.model_dump(mode="python"),
            )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    except StorageError as exc:
        raise _storage_unavailable(exc) from exc

    _audit_program("program.created", identity, program.id)
    return ProgramRead.from_db(program=program)


@router.patch("/programs/{program_id}", response_model=ProgramRead)
async def update_program(
    payload: ProgramUpdate,
    program_id: int = Path(..., ge=1),
    uow: SqlAlchemyUnitOfWork = Depends(get_uow),
    identity: Identity = Depends(require_admin),
) -> ProgramRead:
    changes = payload.model_dump(mode="python", exclude_unset=True)
    try:
        async with uow.begin():
            program = await program_usecase.update_program(
                uow.programs,
                program_id=program_id,
                company_id=identity.company_id,
                changes=changes,
            )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    except StorageError as exc:
        raise _storage_unavailable(exc) from exc
    if program is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="program not found")

    _audit_program("program.updated", identity, program.id, fields=sorted(changes))
    return ProgramRead.from_db(program=program)


@router.delete("/programs/{program_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_program(
    program_id: int = Path(..., ge=1),
    uow: SqlAlchemyUnitOfWork = Depends(get_uow),
    identity: Identity = Depends(require_admin),
) -> Response:
    try:
        async with uow.begin():
            deleted = await program_usecase.delete_program(
                uow.programs,
                program_id=program_id,
                company_id=identity.company_id,
            )
    except StorageError as exc:
        raise _storage_unavailable(exc) from exc
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="program not found")

    _audit_program("program.deleted", identity, program_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/bookings", response_model=List[BookingRead])
async def list_bookings(
    program_id: Optional[int] = Query(default=None, ge=1),
    date_from: Optional[date] = Query(default=None),
    date_to: Optional[date] = Query(default=None),
    booking_status: Optional[BookingStatus] = Query(default=BookingStatus.CONFIRMED, alias="status"),
    uow: SqlAlchemyUnitOfWork = Depends(get_uow),
    identity: Identity = Depends(require_admin),
) -> list[BookingRead]:
    try:
        async with uow.begin():
            bookings = await booking_usecase.list_company_bookings(
                uow.bookings,
                company_id=identity.company_id,
                program_id=program_id,
                date_from=date_from,
                date_to=date_to,
                status=booking_status,
                timeout=get_settings().storage_timeout_seconds,
            )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except StorageError as exc:
        raise _storage_unavailable(exc) from exc
    return [BookingRead.from_db(booking=b) for b in bookings]


@router.post("/bookings/{booking_id}/cancel", response_model=BookingRead)
async def cancel_booking(
    booking_id: int = Path(..., ge=1),
    uow: SqlAlchemyUnitOfWork = Depends(get_uow),
    identity: Identity = Depends(require_admin),
) -> BookingRead:
    try:
        outcome = await booking_usecase.cancel_booking(
            uow,
            booking_id=booking_id,
            company_id=identity.company_id,
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
            initiator="admin",
            company_id=identity.company_id,
            user_id=identity.user_id,
            program_id=booking.program_id,
            booking_id=booking.id,
            booking_date=booking.booking_date,
            slot=booking.slot_time,
            status_from=previous,
            status_to=booking.status,
            extra={"booking_user_id": booking.user_id},
        )
    except RuntimeError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="failed to write audit log") from exc

    return BookingRead.from_db(booking=booking)


@router.get("/stats", response_model=BookingStats)
async def get_stats(
    uow: SqlAlchemyUnitOfWork = Depends(get_uow),
    identity: Identity = Depends(require_admin),
) -> BookingStats:
    try:
        async with uow.begin():
            stats = await booking_usecase.booking_stats(
                uow.bookings,
                company_id=identity.company_id,
                today=business_today(),
                timeout=get_settings().storage_timeout_seconds,
            )
    except StorageError as exc:
        raise _storage_unavailable(exc) from exc
    return BookingStats(**stats)
