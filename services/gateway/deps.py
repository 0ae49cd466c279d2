from __future__ import annotations

from functools import lru_cache
from typing import Optional, Type, TypeVar

import pydantic
from fastapi import Depends, Header

from packages.features.agents.workflow import AgentStatusWorkflow, EmailTemplates
from services.config import Settings
from services.context import CallerContext
from services.errors import IdentityProviderFailure, PersistenceFailure, Unauthorized, ValidationError
from services.identity.supabase_auth import IdentityError, SupabaseAuth
from services.notifications.email.service import Msg91Mailer
from services.persistence.common import PersistenceError, get_store as build_store

M = TypeVar("M", bound=pydantic.BaseModel)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()


# One gateway per settings object so the JSON store's lock is shared by all requests.
@lru_cache(maxsize=4)
def _store_for(settings: Settings):
    return build_store(settings)


def get_store(settings: Settings = Depends(get_settings)):
    return _store_for(settings)


def get_identity(settings: Settings = Depends(get_settings)) -> SupabaseAuth:
    return SupabaseAuth(
        settings.supabase_url,
        settings.supabase_service_role_key,
        timeout_s=settings.http_timeout_s,
    )


def get_mailer(settings: Settings = Depends(get_settings)) -> Msg91Mailer:
    return Msg91Mailer(
        settings.msg91_auth_key,
        from_email=settings.mail_from_email,
        from_name=settings.mail_from_name,
        domain=settings.mail_domain,
        url=settings.msg91_email_url,
        timeout_s=settings.http_timeout_s,
    )


def get_workflow(
    settings: Settings = Depends(get_settings),
    store=Depends(get_store),
    identity=Depends(get_identity),
    mailer=Depends(get_mailer),
) -> AgentStatusWorkflow:
    templates = EmailTemplates(
        approval=settings.approval_template_id,
        reactivation=settings.reactivation_template_id,
        suspension=settings.suspension_template_id,
    )
    return AgentStatusWorkflow(store, identity, mailer, templates, rollback_policy=settings.rollback_policy)


def _bearer(authorization: Optional[str]) -> str:
    raw = (authorization or "").strip()
    if raw.lower().startswith("bearer "):
        raw = raw[7:]
    return raw.strip()


def resolve_caller(token: str, identity, store) -> Optional[CallerContext]:
    """Map a bearer token to an admin or agent context; None if it maps to nobody."""
    if not token:
        return None
    try:
        user = identity.get_user(token)
    except IdentityError as exc:
        raise IdentityProviderFailure(f"Could not verify caller: {exc.message}")
    if not user:
        return None

    user_id = str(user.get("id") or "")
    email = str(user.get("email") or "")
    try:
        if store.has_role(user_id, "admin"):
            return CallerContext(token=token, user_id=user_id, email=email, role="admin")
        agent = store.find_row("agents", user_id=user_id)
    except PersistenceError as exc:
        raise PersistenceFailure(f"Could not resolve caller role: {exc.message}")
    if agent:
        return CallerContext(token=token, user_id=user_id, email=email, role="agent", agent_id=str(agent.get("id")))
    return CallerContext(token=token, user_id=user_id, email=email)


def get_optional_caller(
    authorization: Optional[str] = Header(None),
    identity=Depends(get_identity),
    store=Depends(get_store),
) -> Optional[CallerContext]:
    return resolve_caller(_bearer(authorization), identity, store)


def require_admin(ctx: Optional[CallerContext] = Depends(get_optional_caller)) -> CallerContext:
    if ctx is None:
        raise Unauthorized("Missing or invalid authorization.")
    if not ctx.is_admin:
        raise Unauthorized("Administrator access required.")
    return ctx


def require_agent(ctx: Optional[CallerContext] = Depends(get_optional_caller)) -> CallerContext:
    if ctx is None:
        raise Unauthorized("Missing or invalid authorization.")
    if not ctx.is_agent:
        raise Unauthorized("Agent access required.")
    return ctx


def parse_payload(model: Type[M], payload: Optional[dict]) -> M:
    """Validate a raw JSON body into its command DTO, once, at the boundary."""
    try:
        return model.model_validate(payload or {})
    except pydantic.ValidationError as exc:
        parts = []
        for err in exc.errors():
            loc = ".".join(str(x) for x in err.get("loc") or ()) or "body"
            parts.append(f"{loc}: {err.get('msg')}")
        raise ValidationError("; ".join(parts) or "Invalid payload.")
