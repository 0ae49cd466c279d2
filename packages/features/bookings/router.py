from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends

from .bookings import CreateBooking, UpdateBooking, create_booking, delete_booking, get_booking, list_bookings, update_booking
from services.gateway.deps import get_store, parse_payload, require_admin


router = APIRouter(prefix="/api/admin/bookings", dependencies=[Depends(require_admin)])


@router.get("")
def bookings_list(agent_id: Optional[str] = None, status: Optional[str] = None, store=Depends(get_store)):
    return {"status": "ok", "bookings": list_bookings(store, agent_id=agent_id, status=status)}


@router.post("", status_code=201)
def bookings_create(payload: dict, store=Depends(get_store)):
    return {"status": "ok", "booking": create_booking(store, parse_payload(CreateBooking, payload))}


@router.get("/{booking_id}")
def bookings_get(booking_id: str, store=Depends(get_store)):
    return {"status": "ok", "booking": get_booking(store, booking_id)}


@router.put("/{booking_id}")
def bookings_update(booking_id: str, payload: dict, store=Depends(get_store)):
    return {"status": "ok", "booking": update_booking(store, booking_id, parse_payload(UpdateBooking, payload))}


@router.delete("/{booking_id}")
def bookings_delete(booking_id: str, store=Depends(get_store)):
    delete_booking(store, booking_id)
    return {"status": "ok"}
