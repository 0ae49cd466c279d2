from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends

from .agents import agent_credentials, create_agent, delete_agent, get_agent, list_agents, update_agent
from .models import CreateAgent, UpdateAgent
from services.gateway.deps import get_store, parse_payload, require_admin


router = APIRouter(prefix="/api/admin/agents", dependencies=[Depends(require_admin)])


@router.get("")
def agents_list(status: Optional[str] = None, store=Depends(get_store)):
    return {"status": "ok", "agents": list_agents(store, status=status)}


@router.post("", status_code=201)
def agents_create(payload: dict, store=Depends(get_store)):
    agent = create_agent(store, parse_payload(CreateAgent, payload))
    return {"status": "ok", "agent": agent}


@router.get("/{agent_id}")
def agents_get(agent_id: str, store=Depends(get_store)):
    return {"status": "ok", "agent": get_agent(store, agent_id)}


@router.put("/{agent_id}")
def agents_update(agent_id: str, payload: dict, store=Depends(get_store)):
    agent = update_agent(store, agent_id, parse_payload(UpdateAgent, payload))
    return {"status": "ok", "agent": agent}


@router.delete("/{agent_id}")
def agents_delete(agent_id: str, store=Depends(get_store)):
    delete_agent(store, agent_id)
    return {"status": "ok"}


@router.get("/{agent_id}/credentials")
def agents_credentials(agent_id: str, store=Depends(get_store)):
    return {"status": "ok", "credentials": agent_credentials(store, agent_id)}
