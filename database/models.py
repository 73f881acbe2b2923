"""
SQLAlchemy ORM models for core database tables.

This module defines the core tables:
- tenants: Barbershop businesses (top-level ownership boundary)
- branches: Physical shops with their own operating schedule
- chairs: Bookable resources within a branch (unit of scheduling conflict)
- services: Treatments offered by a tenant, with duration and price
- appointments: The ledger of bookings per chair/date

All models use:
- UUID primary keys (auto-generated)
- TIMESTAMP WITH TIME ZONE for audit timestamps
- HH:MM strings for times of day (parsed into minutes by the slot generator)
"""

from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum as PyEnum
from uuid import UUID, uuid4

from sqlalchemy import (
    DATE,
    JSON,
    TIMESTAMP,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Uuid,
    text,
)
from sqlalchemy import (
    Enum as SQLEnum,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# ============================================================================
# Base Class
# ============================================================================


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


def _utcnow() -> datetime:
    return datetime.now(UTC)


# ============================================================================
# Enums
# ============================================================================


class AppointmentStatus(PyEnum):
    """Appointment lifecycle status."""

    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    NO_SHOW = "no-show"

    def __str__(self):
        return self.value


# ============================================================================
# Core Models
# ============================================================================


class Tenant(Base):
    """Tenant model - A barbershop business account."""

    __tablename__ = "tenants"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    shop_name: Mapped[str] = mapped_column(String(200), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=_utcnow, nullable=False
    )

    branches: Mapped[list["Branch"]] = relationship("Branch", back_populates="tenant")

    def __repr__(self) -> str:
        return f"<Tenant(id={self.id}, shop_name='{self.shop_name}')>"


class Branch(Base):
    """
    Branch model - A physical shop location.

    Carries the schedule configuration consumed by the slot generator:
    work days (weekday names), open/close time and an optional lunch window.
    Times are stored as HH:MM strings.
    """

    __tablename__ = "branches"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)

    # Schedule configuration
    work_days: Mapped[list[str]] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"), default=list, nullable=False
    )
    start_time: Mapped[str] = mapped_column(String(8), nullable=False)
    end_time: Mapped[str] = mapped_column(String(8), nullable=False)
    lunch_start: Mapped[str | None] = mapped_column(String(8), nullable=True)
    lunch_end: Mapped[str | None] = mapped_column(String(8), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=_utcnow, nullable=False
    )

    tenant: Mapped["Tenant"] = relationship("Tenant", back_populates="branches")
    chairs: Mapped[list["Chair"]] = relationship(
        "Chair", back_populates="branch", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint(
            "(lunch_start IS NULL) = (lunch_end IS NULL)",
            name="check_lunch_window_complete",
        ),
    )

    def __repr__(self) -> str:
        return f"<Branch(id={self.id}, name='{self.name}', {self.start_time}-{self.end_time})>"


class Chair(Base):
    """Chair model - The bookable resource; conflicts are computed per chair."""

    __tablename__ = "chairs"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    branch_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("branches.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    chair_number: Mapped[int] = mapped_column(Integer, nullable=False)
    commission: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), default=Decimal("15.00"), nullable=False
    )

    branch: Mapped["Branch"] = relationship("Branch", back_populates="chairs")

    def __repr__(self) -> str:
        return f"<Chair(id={self.id}, chair_number={self.chair_number})>"


class Service(Base):
    """
    Service model - A treatment with a fixed duration and price.

    A null or non-positive duration is read as 30 minutes by the slot generator.
    """

    __tablename__ = "services"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
    price: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), default=Decimal("0.00"), nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=_utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<Service(id={self.id}, name='{self.name}', duration={self.duration})>"


# ============================================================================
# Transactional Models
# ============================================================================


class Appointment(Base):
    """
    Appointment model - The booking ledger.

    Each row holds a chair for [appointment_time, appointment_time + service
    duration) on appointment_date. Rescheduling updates the date/time in place;
    cancellation deletes the row.

    The partial unique index on (chair_id, appointment_date, appointment_time)
    among scheduled rows is the integrity backstop behind the booking guard.
    """

    __tablename__ = "appointments"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Foreign keys
    tenant_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    branch_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("branches.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    chair_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("chairs.id", ondelete="CASCADE"),
        nullable=False,
    )
    service_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("services.id", ondelete="RESTRICT"),
        nullable=False,
    )

    # Client data
    client_name: Mapped[str] = mapped_column(String(200), nullable=False)
    client_phone: Mapped[str] = mapped_column(String(30), nullable=False, index=True)

    # Scheduling
    appointment_date: Mapped[date] = mapped_column(DATE, nullable=False)
    appointment_time: Mapped[str] = mapped_column(String(5), nullable=False)

    # Note: values_callable stores the enum .value ("scheduled") instead of .name
    status: Mapped[AppointmentStatus] = mapped_column(
        SQLEnum(
            AppointmentStatus,
            name="appointment_status",
            values_callable=lambda x: [e.value for e in x],
        ),
        default=AppointmentStatus.SCHEDULED,
        nullable=False,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=_utcnow, nullable=False
    )

    # Relationships
    service: Mapped["Service"] = relationship("Service")
    chair: Mapped["Chair"] = relationship("Chair")
    branch: Mapped["Branch"] = relationship("Branch")

    __table_args__ = (
        Index("idx_appointments_chair_date", "chair_id", "appointment_date"),
        Index(
            "uq_appointments_scheduled_slot",
            "chair_id",
            "appointment_date",
            "appointment_time",
            unique=True,
            postgresql_where=text("status = 'scheduled'"),
            sqlite_where=text("status = 'scheduled'"),
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<Appointment(id={self.id}, chair_id={self.chair_id}, "
            f"{self.appointment_date} {self.appointment_time}, status='{self.status.value}')>"
        )
