from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends

from .payments import CreatePayment, UpdatePayment, create_payment, delete_payment, get_payment, list_payments, update_payment
from services.gateway.deps import get_store, parse_payload, require_admin


router = APIRouter(prefix="/api/admin/payments", dependencies=[Depends(require_admin)])


@router.get("")
def payments_list(agent_id: Optional[str] = None, booking_id: Optional[str] = None, store=Depends(get_store)):
    return {"status": "ok", "payments": list_payments(store, agent_id=agent_id, booking_id=booking_id)}


@router.post("", status_code=201)
def payments_create(payload: dict, store=Depends(get_store)):
    return {"status": "ok", "payment": create_payment(store, parse_payload(CreatePayment, payload))}


@router.get("/{payment_id}")
def payments_get(payment_id: str, store=Depends(get_store)):
    return {"status": "ok", "payment": get_payment(store, payment_id)}


@router.put("/{payment_id}")
def payments_update(payment_id: str, payload: dict, store=Depends(get_store)):
    return {"status": "ok", "payment": update_payment(store, payment_id, parse_payload(UpdatePayment, payload))}


@router.delete("/{payment_id}")
def payments_delete(payment_id: str, store=Depends(get_store)):
    delete_payment(store, payment_id)
    return {"status": "ok"}
