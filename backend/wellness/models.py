from __future__ import annotations

from datetime import date, datetime
from enum import StrEnum
from typing import Any, Optional

from sqlalchemy import JSON, Boolean, CheckConstraint, Date, Enum, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql.sqltypes import BigInteger, DateTime, Integer, String, Text

BOOKING_HORIZONS = (7, 14, 30, 180)


class Base(DeclarativeBase):
    pass


class ScheduleType(StrEnum):
    RECURRING = "recurring"
    DATE_RANGE = "date_range"


class BookingStatus(StrEnum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


def _str_enum(enum_cls: type[StrEnum]) -> Enum:
    return Enum(
        enum_cls,
        values_callable=lambda cls: [e.value for e in cls],
        native_enum=False,
    )


class Company(Base):
    __tablename__ = "companies"
    __table_args__ = (UniqueConstraint("slug", name="uq_companies_slug"),)

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    programs: Mapped[list["Program"]] = relationship(back_populates="company")


class Program(Base):
    __tablename__ = "programs"
    __table_args__ = (
        CheckConstraint("seats_per_slot >= 1", name="chk_programs_seats"),
        CheckConstraint("booking_horizon_days IN (7, 14, 30, 180)", name="chk_programs_horizon"),
        CheckConstraint(
            "start_date IS NULL OR end_date IS NULL OR start_date <= end_date",
            name="chk_programs_date_range",
        ),
        CheckConstraint("limit_per_user IS NULL OR limit_per_user >= 1", name="chk_programs_limit_user"),
        CheckConstraint(
            "limit_per_user_per_day IS NULL OR limit_per_user_per_day >= 1",
            name="chk_programs_limit_user_day",
        ),
        Index("idx_programs_company", "company_id", "active"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    color: Mapped[str] = mapped_column(String(20), nullable=False, default="#000000")
    icon: Mapped[str] = mapped_column(String(100), nullable=False, default="spa")
    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    schedule_type: Mapped[ScheduleType] = mapped_column(_str_enum(ScheduleType), nullable=False)
    # 0=Sunday .. 6=Saturday
    weekdays: Mapped[list[int]] = mapped_column(JSON, nullable=False, default=list)
    start_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    # [{"time": "HH:MM", "enabled": bool}, ...] kept sorted by time
    slots: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    seats_per_slot: Mapped[int] = mapped_column(Integer, nullable=False)
    booking_horizon_days: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    limit_per_user: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    limit_per_user_per_day: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    company: Mapped["Company"] = relationship(back_populates="programs")
    bookings: Mapped[list["Booking"]] = relationship(
        back_populates="program",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def enabled_slot_times(self) -> list[str]:
        return sorted(slot["time"] for slot in self.slots if slot.get("enabled", True))


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        Index("idx_bookings_slot", "program_id", "booking_date", "slot_time", "status"),
        Index("idx_bookings_user", "user_id", "program_id", "status"),
        Index("idx_bookings_company_date", "company_id", "booking_date"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    program_id: Mapped[int] = mapped_column(ForeignKey("programs.id", ondelete="CASCADE"), nullable=False)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), nullable=False)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    # Snapshot taken when the booking is made; never refreshed from the profile.
    user_name: Mapped[str] = mapped_column(String(255), nullable=False)
    user_email: Mapped[str] = mapped_column(String(255), nullable=False)
    booking_date: Mapped[date] = mapped_column(Date, nullable=False)
    slot_time: Mapped[str] = mapped_column(String(5), nullable=False)
    status: Mapped[BookingStatus] = mapped_column(
        _str_enum(BookingStatus),
        nullable=False,
        default=BookingStatus.CONFIRMED,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    program: Mapped["Program"] = relationship(back_populates="bookings")
