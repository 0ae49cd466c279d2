from __future__ import annotations

import uuid
from datetime import datetime, timezone

from services.config import Settings


TABLES = ("agents", "bookings", "payments", "user_roles")

# Columns the store refuses to duplicate (NULLs never collide).
UNIQUE_COLUMNS = {
    "agents": ("agent_code", "email"),
    "bookings": ("booking_reference",),
}

# Persistence-side code generators, callable without client-side uniqueness checks.
CODE_FUNCTIONS = {
    "agent_code": "generate_agent_code",
    "booking_reference": "generate_booking_reference",
}


class PersistenceError(Exception):
    def __init__(self, message: str, conflict: bool = False, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.conflict = conflict
        self.status_code = status_code


def new_id() -> str:
    return str(uuid.uuid4())


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def get_store(settings: Settings, transport=None):
    """Build the persistence gateway selected by PERSISTENCE_BACKEND."""
    if settings.persistence_backend == "json":
        from services.persistence.json_store import JsonStore

        return JsonStore(settings.data_dir)

    from services.persistence.supabase_rest import SupabaseRest

    return SupabaseRest(
        settings.supabase_url,
        settings.supabase_service_role_key,
        timeout_s=settings.http_timeout_s,
        transport=transport,
    )
