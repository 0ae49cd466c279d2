from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from services.errors import NotFound, PersistenceFailure, ValidationError
from services.persistence.common import PersistenceError


class BookingType(str, Enum):
    FLIGHT = "flight"
    BUS = "bus"
    HOTEL = "hotel"


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class _BookingFields(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True, use_enum_values=True)

    @model_validator(mode="after")
    def _check_dates_and_amounts(self):
        dep = getattr(self, "departure_date", None)
        ret = getattr(self, "return_date", None)
        if dep and ret and ret < dep:
            raise ValueError("return_date cannot be before departure_date.")
        total = getattr(self, "total_amount", None)
        commission = getattr(self, "commission_amount", None)
        if total is not None and commission is not None and commission > total:
            raise ValueError("commission_amount cannot exceed total_amount.")
        return self


class CreateBooking(_BookingFields):
    agent_id: str = Field(..., min_length=1)
    booking_type: BookingType = BookingType.FLIGHT
    passenger_name: str = Field(..., min_length=1)
    passenger_email: Optional[str] = None
    passenger_phone: Optional[str] = None
    from_location: str = Field(..., min_length=1)
    to_location: str = Field(..., min_length=1)
    departure_date: date
    return_date: Optional[date] = None
    adult_count: int = Field(1, ge=1)
    child_count: int = Field(0, ge=0)
    total_amount: float = Field(0, ge=0)
    commission_amount: float = Field(0, ge=0)
    status: BookingStatus = BookingStatus.PENDING


class UpdateBooking(_BookingFields):
    booking_type: Optional[BookingType] = None
    passenger_name: Optional[str] = Field(None, min_length=1)
    passenger_email: Optional[str] = None
    passenger_phone: Optional[str] = None
    from_location: Optional[str] = Field(None, min_length=1)
    to_location: Optional[str] = Field(None, min_length=1)
    departure_date: Optional[date] = None
    return_date: Optional[date] = None
    adult_count: Optional[int] = Field(None, ge=1)
    child_count: Optional[int] = Field(None, ge=0)
    total_amount: Optional[float] = Field(None, ge=0)
    commission_amount: Optional[float] = Field(None, ge=0)
    status: Optional[BookingStatus] = None


def _fail(action: str, exc: PersistenceError) -> PersistenceFailure:
    return PersistenceFailure(f"Could not {action}: {exc.message}", conflict=exc.conflict)


def list_bookings(store, agent_id: Optional[str] = None, status: Optional[str] = None) -> List[Dict[str, Any]]:
    filters: Dict[str, Any] = {}
    if agent_id:
        filters["agent_id"] = agent_id
    if status:
        try:
            filters["status"] = BookingStatus(status.strip().lower()).value
        except ValueError:
            raise ValidationError(f"Unknown booking status: {status!r}.")
    try:
        return store.list_rows("bookings", filters)
    except PersistenceError as exc:
        raise _fail("list bookings", exc)


def get_booking(store, booking_id: str) -> Dict[str, Any]:
    try:
        row = store.get_row("bookings", booking_id)
    except PersistenceError as exc:
        raise _fail("load booking", exc)
    if not row:
        raise NotFound(f"Booking {booking_id} not found.")
    return row


def create_booking(store, data: CreateBooking) -> Dict[str, Any]:
    try:
        agent = store.get_row("agents", data.agent_id)
    except PersistenceError as exc:
        raise _fail("load agent", exc)
    if not agent:
        raise ValidationError(f"Agent {data.agent_id} does not exist.")
    if agent.get("status") != "active":
        raise ValidationError("Bookings can only be created for active agents.")

    row = data.model_dump(mode="json")
    try:
        row["booking_reference"] = store.generate_code("booking_reference")
        return store.insert_row("bookings", row)
    except PersistenceError as exc:
        raise _fail("create booking", exc)


def update_booking(store, booking_id: str, data: UpdateBooking) -> Dict[str, Any]:
    fields = data.model_dump(mode="json", exclude_unset=True)
    if not fields:
        raise ValidationError("Nothing to update.")

    current = get_booking(store, booking_id)
    merged = dict(current)
    merged.update(fields)
    # Cross-field rules must hold for the merged row, not only the patch.
    dep, ret = merged.get("departure_date"), merged.get("return_date")
    if dep and ret and str(ret) < str(dep):
        raise ValidationError("return_date cannot be before departure_date.")
    if float(merged.get("commission_amount") or 0) > float(merged.get("total_amount") or 0):
        raise ValidationError("commission_amount cannot exceed total_amount.")

    try:
        row = store.update_row("bookings", booking_id, fields)
    except PersistenceError as exc:
        raise _fail("update booking", exc)
    if row is None:
        raise NotFound(f"Booking {booking_id} not found.")
    return row


def delete_booking(store, booking_id: str) -> None:
    get_booking(store, booking_id)
    try:
        if store.list_rows("payments", {"booking_id": booking_id}):
            raise ValidationError("Booking has payments; delete them first.")
        deleted = store.delete_row("bookings", booking_id)
    except PersistenceError as exc:
        raise _fail("delete booking", exc)
    if not deleted:
        raise NotFound(f"Booking {booking_id} not found.")
