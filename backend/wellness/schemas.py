from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_serializer

from .domain.availability import AvailableDate, AvailableSlot
from .domain.errors import ERROR_MESSAGES, BookingErrorKind, StorageError
from .models import Booking, BookingStatus, Program, ScheduleType

BookingHorizon = Literal[7, 14, 30, 180]


class TimeSlot(BaseModel):
    time: str = Field(pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    enabled: bool = True


class ProgramCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str = ""
    category: str = ""
    color: str = "#000000"
    icon: str = "spa"
    image_url: Optional[str] = None
    schedule_type: ScheduleType
    weekdays: list[int] = Field(default_factory=list)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    slots: list[TimeSlot] = Field(default_factory=list)
    duration_minutes: int = Field(default=30, ge=1)
    seats_per_slot: int = Field(ge=1)
    booking_horizon_days: BookingHorizon = 30
    limit_per_user: Optional[int] = Field(default=None, ge=1)
    limit_per_user_per_day: Optional[int] = Field(default=None, ge=1)
    active: bool = True


class ProgramUpdate(BaseModel):
    """Partial patch: only fields sent by the client are applied."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    image_url: Optional[str] = None
    schedule_type: Optional[ScheduleType] = None
    weekdays: Optional[list[int]] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    slots: Optional[list[TimeSlot]] = None
    duration_minutes: Optional[int] = Field(default=None, ge=1)
    seats_per_slot: Optional[int] = Field(default=None, ge=1)
    booking_horizon_days: Optional[BookingHorizon] = None
    limit_per_user: Optional[int] = Field(default=None, ge=1)
    limit_per_user_per_day: Optional[int] = Field(default=None, ge=1)
    active: Optional[bool] = None


class ProgramRead(BaseModel):
    program_id: int
    company_id: int
    name: str
    description: str
    category: str
    color: str
    icon: str
    image_url: Optional[str]
    schedule_type: ScheduleType
    weekdays: list[int]
    start_date: Optional[date]
    end_date: Optional[date]
    slots: list[TimeSlot]
    duration_minutes: int
    seats_per_slot: int
    booking_horizon_days: int
    limit_per_user: Optional[int]
    limit_per_user_per_day: Optional[int]
    active: bool
    created_at: datetime

    @classmethod
    def from_db(cls, *, program: Program) -> "ProgramRead":
        return cls(
            program_id=program.id,
            company_id=program.company_id,
            name=program.name,
            description=program.description,
            category=program.category,
            color=program.color,
            icon=program.icon,
            image_url=program.image_url,
            schedule_type=program.schedule_type,
            weekdays=list(program.weekdays or []),
            start_date=program.start_date,
            end_date=program.end_date,
            slots=[TimeSlot(**slot) for slot in program.slots or []],
            duration_minutes=program.duration_minutes,
            seats_per_slot=program.seats_per_slot,
            booking_horizon_days=program.booking_horizon_days,
            limit_per_user=program.limit_per_user,
            limit_per_user_per_day=program.limit_per_user_per_day,
            active=program.active,
            created_at=program.created_at,
        )


class AvailableSlotRead(BaseModel):
    slot: str
    seats_remaining: int
    seats_total: int

    @classmethod
    def from_domain(cls, item: AvailableSlot) -> "AvailableSlotRead":
        return cls(slot=item.slot, seats_remaining=item.seats_remaining, seats_total=item.seats_total)


class AvailableDateRead(BaseModel):
    date: date
    seats_total_remaining: int

    @classmethod
    def from_domain(cls, item: AvailableDate) -> "AvailableDateRead":
        return cls(date=item.day, seats_total_remaining=item.seats_total_remaining)


class BookingCreate(BaseModel):
    program_id: int = Field(ge=1)
    date: date
    slot: str = Field(pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    # Override the name/email carried by the identity token, e.g. after profile completion.
    user_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    user_email: Optional[str] = Field(default=None, min_length=3, max_length=255)


class BookingRead(BaseModel):
    booking_id: int
    program_id: int
    company_id: int
    user_id: str
    user_name: str
    user_email: str
    date: date
    slot: str
    status: BookingStatus
    created_at: datetime

    @field_serializer("created_at")
    def _ser_datetime(self, dt: datetime) -> str:
        return dt.isoformat()

    @classmethod
    def from_db(cls, *, booking: Booking) -> "BookingRead":
        return cls(
            booking_id=booking.id,
            program_id=booking.program_id,
            company_id=booking.company_id,
            user_id=booking.user_id,
            user_name=booking.user_name,
            user_email=booking.user_email,
            date=booking.booking_date,
            slot=booking.slot_time,
            status=booking.status,
            created_at=booking.created_at,
        )


class BookingRejection(BaseModel):
    error_kind: BookingErrorKind
    message: str
    outcome_unknown: bool = False

    @classmethod
    def from_storage_error(cls, exc: StorageError) -> "BookingRejection":
        return cls(
            error_kind=exc.kind,
            message=ERROR_MESSAGES[exc.kind],
            outcome_unknown=exc.outcome_unknown,
        )


class BookingStats(BaseModel):
    today: int
    upcoming: int
