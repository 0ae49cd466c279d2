from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from services.errors import NotFound, PersistenceFailure, ValidationError
from services.persistence.common import PersistenceError, now_iso


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    BANK_TRANSFER = "bank_transfer"
    UPI = "upi"
    CHEQUE = "cheque"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class CreatePayment(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    booking_id: str = Field(..., min_length=1)
    agent_id: str = Field(..., min_length=1)
    amount: float = Field(..., gt=0)
    payment_method: PaymentMethod = PaymentMethod.CASH
    payment_status: PaymentStatus = PaymentStatus.PENDING
    transaction_id: Optional[str] = None
    payment_date: Optional[datetime] = None


class UpdatePayment(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    amount: Optional[float] = Field(None, gt=0)
    payment_method: Optional[PaymentMethod] = None
    payment_status: Optional[PaymentStatus] = None
    transaction_id: Optional[str] = None
    payment_date: Optional[datetime] = None


def _fail(action: str, exc: PersistenceError) -> PersistenceFailure:
    return PersistenceFailure(f"Could not {action}: {exc.message}", conflict=exc.conflict)


def list_payments(store, agent_id: Optional[str] = None, booking_id: Optional[str] = None) -> List[Dict[str, Any]]:
    filters = {k: v for k, v in (("agent_id", agent_id), ("booking_id", booking_id)) if v}
    try:
        return store.list_rows("payments", filters)
    except PersistenceError as exc:
        raise _fail("list payments", exc)


def get_payment(store, payment_id: str) -> Dict[str, Any]:
    try:
        row = store.get_row("payments", payment_id)
    except PersistenceError as exc:
        raise _fail("load payment", exc)
    if not row:
        raise NotFound(f"Payment {payment_id} not found.")
    return row


def create_payment(store, data: CreatePayment) -> Dict[str, Any]:
    try:
        booking = store.get_row("bookings", data.booking_id)
        agent = store.get_row("agents", data.agent_id)
    except PersistenceError as exc:
        raise _fail("load booking/agent", exc)
    if not booking:
        raise ValidationError(f"Booking {data.booking_id} does not exist.")
    if not agent:
        raise ValidationError(f"Agent {data.agent_id} does not exist.")
    if str(booking.get("agent_id") or "") != data.agent_id:
        raise ValidationError("Booking does not belong to this agent.")

    row = data.model_dump(mode="json")
    if not row.get("payment_date"):
        row["payment_date"] = now_iso()
    try:
        return store.insert_row("payments", row)
    except PersistenceError as exc:
        raise _fail("create payment", exc)


def update_payment(store, payment_id: str, data: UpdatePayment) -> Dict[str, Any]:
    fields = data.model_dump(mode="json", exclude_unset=True)
    if not fields:
        raise ValidationError("Nothing to update.")
    get_payment(store, payment_id)
    try:
        row = store.update_row("payments", payment_id, fields)
    except PersistenceError as exc:
        raise _fail("update payment", exc)
    if row is None:
        raise NotFound(f"Payment {payment_id} not found.")
    return row


def delete_payment(store, payment_id: str) -> None:
    try:
        deleted = store.delete_row("payments", payment_id)
    except PersistenceError as exc:
        raise _fail("delete payment", exc)
    if not deleted:
        raise NotFound(f"Payment {payment_id} not found.")
