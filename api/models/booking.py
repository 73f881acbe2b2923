"""Pydantic models for the booking API payloads."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class BookingPayload(BaseModel):
    """
    Body of POST /public/book and POST /api/appointments.

    Fields are optional at this layer so that the booking validator can report
    every missing field at once.
    """
    model_config = ConfigDict(populate_by_name=True)

    branch_id: str | None = Field(default=None, alias="branchId")
    chair_id: str | None = Field(default=None, alias="chairId")
    service_id: str | None = Field(default=None, alias="serviceId")
    client_name: str | None = Field(default=None, alias="clientName")
    client_phone: str | None = Field(default=None, alias="clientPhone")
    date: str | None = None  # YYYY-MM-DD
    time: str | None = None  # HH:MM


class ReschedulePayload(BaseModel):
    """Body of PATCH /public/reschedule/{id}."""

    date: str | None = None
    time: str | None = None


class AppointmentUpdatePayload(BaseModel):
    """Body of PATCH /api/appointments/{id}: a status change and/or a new date/time."""

    status: str | None = None  # scheduled | completed | no-show
    date: str | None = None
    time: str | None = None


class TimeSlotResponse(BaseModel):
    time: str
    display: str
    available: bool


class AppointmentResponse(BaseModel):
    """Single appointment result of a create/modify call."""

    success: bool = True
    message: str
    appointment: dict[str, Any]


class CancellationResponse(BaseModel):
    success: bool
    appointment_id: str
    message: str


class NotificationsResponse(BaseModel):
    items: list[dict[str, Any]]
    total: int
