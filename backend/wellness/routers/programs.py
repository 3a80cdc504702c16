import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status

from ..config import get_settings
from ..deps import get_tenant_identity, get_uow
from ..domain.errors import StorageError
from ..infrastructure.repositories import SqlAlchemyUnitOfWork
from ..models import BOOKING_HORIZONS
from ..schemas import AvailableDateRead, AvailableSlotRead, BookingRejection, ProgramRead
from ..usecases import availability as availability_usecase
from ..usecases import programs as program_usecase
from ..utils.auth import Identity
from ..utils.time import business_today

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/programs", tags=["programs"], dependencies=[Depends(get_tenant_identity)])

_MAX_HORIZON = max(BOOKING_HORIZONS)


def _storage_unavailable(exc: StorageError) -> HTTPException:
    logger.error("program query failed: %s", exc)
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=BookingRejection.from_storage_error(exc).model_dump(mode="json"),
    )


@router.get("", response_model=List[ProgramRead])
async def list_active_programs(
    uow: SqlAlchemyUnitOfWork = Depends(get_uow),
    identity: Identity = Depends(get_tenant_identity),
) -> list[ProgramRead]:
    try:
        async with uow.begin():
            programs = await program_usecase.list_programs(
                uow.programs,
                company_id=identity.company_id,
                active_only=True,
                timeout=get_settings().storage_timeout_seconds,
            )
    except StorageError as exc:
        raise _storage_unavailable(exc) from exc
    return [ProgramRead.from_db(program=p) for p in programs]


@router.get("/{program_id}", response_model=ProgramRead)
async def get_program(
    program_id: int = Path(..., ge=1),
    uow: SqlAlchemyUnitOfWork = Depends(get_uow),
    identity: Identity = Depends(get_tenant_identity),
) -> ProgramRead:
    try:
        async with uow.begin():
            program = await program_usecase.get_program(
                uow.programs,
                program_id=program_id,
                company_id=identity.company_id,
                timeout=get_settings().storage_timeout_seconds,
            )
    except StorageError as exc:
        raise _storage_unavailable(exc) from exc
    if program is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="program not found")
    return ProgramRead.from_db(program=program)


@router.get("/{program_id}/slots", response_model=List[AvailableSlotRead])
async def list_available_slots(
    program_id: int = Path(..., ge=1),
    day: date = Query(..., alias="date", description="Calendar date (YYYY-MM-DD)"),
    uow: SqlAlchemyUnitOfWork = Depends(get_uow),
    identity: Identity = Depends(get_tenant_identity),
) -> list[AvailableSlotRead]:
    try:
        async with uow.begin():
            slots = await availability_usecase.get_available_slots(
                uow.programs,
                uow.bookings,
                program_id=program_id,
                company_id=identity.company_id,
                day=day,
                timeout=get_settings().storage_timeout_seconds,
            )
    except StorageError as exc:
        raise _storage_unavailable(exc) from exc
    if slots is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="program not found")
    return [AvailableSlotRead.from_domain(s) for s in slots]


@router.get("/{program_id}/dates", response_model=List[AvailableDateRead])
async def list_available_dates(
    program_id: int = Path(..., ge=1),
    horizon_days: Optional[int] = Query(default=None, ge=1, le=_MAX_HORIZON),
    uow: SqlAlchemyUnitOfWork = Depends(get_uow),
    identity: Identity = Depends(get_tenant_identity),
) -> list[AvailableDateRead]:
    try:
        async with uow.begin():
            dates = await availability_usecase.get_available_dates(
                uow.programs,
                uow.bookings,
                program_id=program_id,
                company_id=identity.company_id,
                today=business_today(),
                horizon_days=horizon_days,
                timeout=get_settings().storage_timeout_seconds,
            )
    except StorageError as exc:
        raise _storage_unavailable(exc) from exc
    if dates is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="program not found")
    return [AvailableDateRead.from_domain(d) for d in dates]
