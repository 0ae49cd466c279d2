from __future__ import annotations

from typing import Any, Dict, List, Optional

from packages.features.agents.models import AgentStatus, CreateAgent, UpdateAgent, public_agent
from services.errors import NotFound, PersistenceFailure, ValidationError
from services.persistence.common import PersistenceError


def _fail(action: str, exc: PersistenceError) -> PersistenceFailure:
    return PersistenceFailure(f"Could not {action}: {exc.message}", conflict=exc.conflict)


def list_agents(store, status: Optional[str] = None) -> List[Dict[str, Any]]:
    filters = {}
    if status:
        try:
            filters["status"] = AgentStatus(status.strip().lower()).value
        except ValueError:
            raise ValidationError(f"Unknown status: {status!r}.")
    try:
        rows = store.list_rows("agents", filters)
    except PersistenceError as exc:
        raise _fail("list agents", exc)
    return [public_agent(r) for r in rows]


def load_agent(store, agent_id: str) -> Dict[str, Any]:
    """Full agent row (secrets included); NotFound when missing."""
    try:
        row = store.get_row("agents", agent_id)
    except PersistenceError as exc:
        raise _fail("load agent", exc)
    if not row:
        raise NotFound(f"Agent {agent_id} not found.")
    return row


def get_agent(store, agent_id: str) -> Dict[str, Any]:
    return public_agent(load_agent(store, agent_id))


def create_agent(store, data: CreateAgent) -> Dict[str, Any]:
    # New agents always start pending; code, login and password come with approval.
    row = data.model_dump()
    row.update({"status": AgentStatus.PENDING.value, "agent_code": None, "user_id": None, "password": None})
    try:
        created = store.insert_row("agents", row)
    except PersistenceError as exc:
        if exc.conflict:
            raise ValidationError("An agent with this email already exists.")
        raise _fail("create agent", exc)
    return public_agent(created)


def update_agent(store, agent_id: str, data: UpdateAgent) -> Dict[str, Any]:
    fields = data.model_dump(exclude_unset=True)
    if not fields:
        raise ValidationError("Nothing to update.")

    current = load_agent(store, agent_id)
    new_email = fields.get("email")
    if new_email and new_email != current.get("email") and current.get("user_id"):
        raise ValidationError("Email cannot change once the agent has a login account.")

    try:
        row = store.update_row("agents", agent_id, fields)
    except PersistenceError as exc:
        if exc.conflict:
            raise ValidationError("An agent with this email already exists.")
        raise _fail("update agent", exc)
    if row is None:
        raise NotFound(f"Agent {agent_id} not found.")
    return public_agent(row)


def delete_agent(store, agent_id: str) -> None:
    load_agent(store, agent_id)
    try:
        if store.list_rows("bookings", {"agent_id": agent_id}):
            raise ValidationError("Agent has bookings; delete or reassign them first.")
        deleted = store.delete_row("agents", agent_id)
    except PersistenceError as exc:
        raise _fail("delete agent", exc)
    if not deleted:
        raise NotFound(f"Agent {agent_id} not found.")


def agent_credentials(store, agent_id: str) -> Dict[str, Any]:
    """What the admin shows once after approval: code, login email, temporary password."""
    row = load_agent(store, agent_id)
    return {
        "id": row.get("id"),
        "email": row.get("email"),
        "agent_code": row.get("agent_code"),
        "password": row.get("password"),
        "status": row.get("status"),
    }
