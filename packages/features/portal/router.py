from __future__ import annotations

from fastapi import APIRouter, Depends

from packages.features.agents.agents import get_agent
from packages.features.bookings.bookings import list_bookings
from packages.features.payments.payments import list_payments
from services.context import CallerContext
from services.gateway.deps import get_store, require_agent


router = APIRouter(prefix="/api/portal")


@router.get("/me")
def portal_me(ctx: CallerContext = Depends(require_agent), store=Depends(get_store)):
    agent = get_agent(store, ctx.agent_id)
    return {"status": "ok", "agent": agent, "approved": agent.get("status") == "active"}


@router.get("/bookings")
def portal_bookings(ctx: CallerContext = Depends(require_agent), store=Depends(get_store)):
    return {"status": "ok", "bookings": list_bookings(store, agent_id=ctx.agent_id)}


@router.get("/payments")
def portal_payments(ctx: CallerContext = Depends(require_agent), store=Depends(get_store)):
    return {"status": "ok", "payments": list_payments(store, agent_id=ctx.agent_id)}
