from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class CallerContext:
    """Who is making the current request; built per request, never global."""

    token: str
    user_id: str
    email: str = ""
    role: Optional[str] = None  # "admin" | "agent" | None
    agent_id: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def is_agent(self) -> bool:
        return self.role == "agent" and bool(self.agent_id)
