import re
from typing import Any, Dict, List, Mapping

from ..domain.repositories import ProgramRepository
from ..models import BOOKING_HORIZONS, Program, ScheduleType
from ..utils.deadline import storage_deadline

_SLOT_TIME = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")

_NULLABLE = frozenset({"image_url", "start_date", "end_date", "limit_per_user", "limit_per_user_per_day"})

_DEFAULTS: Dict[str, Any] = {
    "weekdays": [],
    "start_date": None,
    "end_date": None,
    "slots": [],
    "booking_horizon_days": 30,
    "limit_per_user": None,
    "limit_per_user_per_day": None,
}


def _normalize_slots(slots: List[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    normalized = [{"time": str(s["time"]), "enabled": bool(s.get("enabled", True))} for s in slots]
    times = [s["time"] for s in normalized]
    for time in times:
        if not _SLOT_TIME.match(time):
            raise ValueError(f"invalid slot time {time!r}, expected HH:MM")
    if len(set(times)) != len(times):
        raise ValueError("slot times must be unique")
    return sorted(normalized, key=lambda s: s["time"])


def _validate(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Check program invariants on a complete field set and return it normalized."""
    if fields["seats_per_slot"] < 1:
        raise ValueError("seats_per_slot must be >= 1")
    if fields["booking_horizon_days"] not in BOOKING_HORIZONS:
        raise ValueError(f"booking_horizon_days must be one of {BOOKING_HORIZONS}")
    for cap in ("limit_per_user", "limit_per_user_per_day"):
        if fields[cap] is not None and fields[cap] < 1:
            raise ValueError(f"{cap} must be >= 1 or unset")

    schedule_type = ScheduleType(fields["schedule_type"])
    if schedule_type == ScheduleType.RECURRING:
        weekdays = sorted(set(int(d) for d in fields["weekdays"]))
        if any(d < 0 or d > 6 for d in weekdays):
            raise ValueError("weekdays must be between 0 (Sunday) and 6 (Saturday)")
        fields["weekdays"] = weekdays
    else:
        start, end = fields["start_date"], fields["end_date"]
        if start is not None and end is not None and start > end:
            raise ValueError("start_date must not be after end_date")

    fields["schedule_type"] = schedule_type
    fields["slots"] = _normalize_slots(fields["slots"])
    return fields


async def list_programs(
    program_repo: ProgramRepository,
    *,
    company_id: int,
    active_only: bool = True,
    timeout: float | None = None,
) -> List[Program]:
    async with storage_deadline(timeout, operation="program list query"):
        return await program_repo.list_for_company(company_id, active_only=active_only)


async def get_program(
    program_repo: ProgramRepository,
    *,
    program_id: int,
    company_id: int,
    timeout: float | None = None,
) -> Program | None:
    async with storage_deadline(timeout, operation="program query"):
        return await program_repo.get(program_id, company_id)


async def create_program(
    program_repo: ProgramRepository,
    *,
    company_id: int,
    fields: Mapping[str, Any],
) -> Program:
    merged = {**_DEFAULTS, **fields}
    return await program_repo.create(company_id=company_id, fields=_validate(merged))


async def update_program(
    program_repo: ProgramRepository,
    *,
    program_id: int,
    company_id: int,
    changes: Mapping[str, Any],
) -> Program | None:
    """Apply a partial patch. Existing bookings are left as they are."""
    cleared = sorted(name for name, value in changes.items() if value is None and name not in _NULLABLE)
    if cleared:
        raise ValueError(f"fields cannot be cleared: {', '.join(cleared)}")
    program = await program_repo.get_for_update(program_id, company_id)
    if program is None:
        return None
    current = {name: getattr(program, name) for name in (*_DEFAULTS, "schedule_type", "seats_per_slot")}
    merged = _validate({**current, **changes})
    patch = {name: merged.get(name, value) for name, value in changes.items()}
    return await program_repo.update(program, patch)


async def delete_program(program_repo: ProgramRepository, *, program_id: int, company_id: int) -> bool:
    """Delete the program together with its bookings."""
    program = await program_repo.get_for_update(program_id, company_id)
    if program is None:
        return False
    await program_repo.delete(program)
    return True
