from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from packages.features.agents.models import SetAgentStatus, StatusChangeResult
from packages.features.agents.workflow import AgentStatusWorkflow
from services.context import CallerContext
from services.gateway.deps import get_optional_caller, get_workflow, parse_payload

router = APIRouter()


def _respond(result: StatusChangeResult) -> JSONResponse:
    status_code = 200 if result.success else result.http_status
    return JSONResponse(status_code=status_code, content=result.to_response())


@router.post("/api/agents/status")
def set_agent_status(
    payload: dict,
    ctx: Optional[CallerContext] = Depends(get_optional_caller),
    workflow: AgentStatusWorkflow = Depends(get_workflow),
):
    # Caller first: a bad body from an unknown caller is still a 401.
    workflow.authorize(ctx)
    cmd = parse_payload(SetAgentStatus, payload)
    return _respond(workflow.set_status(ctx, cmd.agent_id, cmd.target_status))


@router.post("/api/agents/{agent_id}/approve")
def approve_agent(
    agent_id: str,
    ctx: Optional[CallerContext] = Depends(get_optional_caller),
    workflow: AgentStatusWorkflow = Depends(get_workflow),
):
    return _respond(workflow.set_status(ctx, agent_id, "active"))
