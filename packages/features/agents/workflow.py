from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from packages.features.agents.credentials import generate_agent_code, generate_password
from packages.features.agents.models import AgentStatus, StatusChangeResult
from services.context import CallerContext
from services.errors import (
    IdentityProviderFailure,
    NotFound,
    NotificationFailure,
    PersistenceFailure,
    PortalError,
    Unauthorized,
    ValidationError,
)
from services.identity.supabase_auth import AccountExists, IdentityError
from services.persistence.common import PersistenceError


logger = logging.getLogger(__name__)

PENDING = AgentStatus.PENDING.value
ACTIVE = AgentStatus.ACTIVE.value
SUSPENDED = AgentStatus.SUSPENDED.value

ALLOWED_TRANSITIONS = {
    (PENDING, ACTIVE),
    (SUSPENDED, ACTIVE),
    (ACTIVE, SUSPENDED),
    (PENDING, SUSPENDED),
}


@dataclass(frozen=True)
class EmailTemplates:
    approval: str
    reactivation: str
    suspension: str


class AgentStatusWorkflow:
    """Moves an agent between pending / active / suspended.

    Each transition touches up to three systems in a fixed order: identity
    account, then the agent row, then the notification email. Approval is the
    only transition that mints credentials; if its email fails the row goes
    back to pending so the approval can simply be retried.
    """

    def __init__(
        self,
        store,
        identity,
        mailer,
        templates: EmailTemplates,
        rollback_policy: str = "approval",
        code_attempts: int = 3,
    ) -> None:
        self.store = store
        self.identity = identity
        self.mailer = mailer
        self.templates = templates
        self.rollback_policy = rollback_policy
        self.code_attempts = max(1, int(code_attempts))

    # ------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------
    def set_status(self, ctx: Optional[CallerContext], agent_id: str, target_status: str) -> StatusChangeResult:
        try:
            return self._set_status(ctx, agent_id, target_status)
        except PortalError as exc:
            logger.info("Agent %s -> %s failed: %s (%s)", agent_id, target_status, exc.message, exc.code)
            return StatusChangeResult(
                success=False,
                message=exc.message,
                error=exc.code,
                status=exc.status,
                http_status=exc.http_status,
            )

    @staticmethod
    def authorize(ctx: Optional[CallerContext]) -> CallerContext:
        """Raise Unauthorized unless the caller is an administrator with a token."""
        if ctx is None or not (ctx.token or "").strip():
            raise Unauthorized("Missing authorization.")
        if not ctx.is_admin:
            raise Unauthorized("Administrator access required.")
        return ctx

    def _set_status(self, ctx: Optional[CallerContext], agent_id: str, target_status: str) -> StatusChangeResult:
        ctx = self.authorize(ctx)

        agent_id = (agent_id or "").strip()
        if not agent_id:
            raise ValidationError("agentId is required.")
        try:
            target = AgentStatus(str(target_status or "").strip().lower()).value
        except ValueError:
            raise ValidationError(f"Unknown status: {target_status!r}.")

        agent = self._load_agent(agent_id)
        current = str(agent.get("status") or PENDING)

        if current == target:
            return StatusChangeResult(
                success=True,
                message=f"Agent is already {target}.",
                agent_code=agent.get("agent_code"),
                status=current,
            )
        if (current, target) not in ALLOWED_TRANSITIONS:
            raise ValidationError(f"Cannot move an agent from {current} to {target}.")

        logger.info("Agent %s: %s -> %s requested by %s", agent_id, current, target, ctx.user_id)
        if target == ACTIVE:
            # A suspended agent that was never approved has no code or account yet.
            if current == PENDING or not agent.get("agent_code"):
                return self._approve(agent, current)
            return self._reactivate(agent)
        return self._suspend(agent, current)

    # ------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------
    def _approve(self, agent: Dict[str, Any], current: str) -> StatusChangeResult:
        agent_id = agent["id"]
        email = str(agent.get("email") or "").strip().lower()
        if not email:
            raise ValidationError("Agent has no email address.")

        # A failed earlier attempt may already have minted these.
        code = agent.get("agent_code") or self._new_code()
        user_id = agent.get("user_id")
        stored_password = agent.get("password")
        password = stored_password if (user_id and stored_password) else generate_password()

        # An account we did not just create does not know this password yet.
        reset_password = bool(user_id) and not stored_password
        if not user_id:
            user_id, created = self._ensure_account(email, password)
            reset_password = not created

        row, code = self._persist_approval(agent_id, current, code, password, user_id)

        if reset_password:
            self._set_account_password(agent_id, current, user_id, password)

        ok, msg = self.mailer.send_template(
            email,
            str(agent.get("contact_person") or ""),
            self.templates.approval,
            {"contact_person": agent.get("contact_person") or "", "agent_code": code, "password": password},
        )
        if not ok:
            if self._revert(agent_id, to_status=current, from_status=ACTIVE):
                raise NotificationFailure(
                    f"Approval email failed ({msg}); agent status reverted to {current}.",
                    status=current,
                )
            raise NotificationFailure(
                f"Approval email failed ({msg}); reverting the agent to {current} also failed.",
                status=ACTIVE,
            )

        logger.info("Agent %s approved as %s", agent_id, code)
        return StatusChangeResult(
            success=True,
            message="Agent approved.",
            agent_code=code,
            status=str(row.get("status") or ACTIVE),
            password=password,
        )

    def _reactivate(self, agent: Dict[str, Any]) -> StatusChangeResult:
        agent_id = agent["id"]
        row = self._update_status(agent_id, SUSPENDED, ACTIVE)

        ok, msg = self.mailer.send_template(
            str(agent.get("email") or ""),
            str(agent.get("contact_person") or ""),
            self.templates.reactivation,
            {
                "contact_person": agent.get("contact_person") or "",
                "agent_code": agent.get("agent_code") or "",
                "password": agent.get("password") or "",
            },
        )
        if not ok:
            self._after_notification_failure(agent_id, SUSPENDED, ACTIVE, f"Reactivation email failed ({msg})")

        logger.info("Agent %s reactivated", agent_id)
        return StatusChangeResult(
            success=True,
            message="Agent reactivated.",
            agent_code=row.get("agent_code") or agent.get("agent_code"),
            status=ACTIVE,
        )

    def _suspend(self, agent: Dict[str, Any], current: str) -> StatusChangeResult:
        agent_id = agent["id"]
        row = self._update_status(agent_id, current, SUSPENDED)

        ok, msg = self.mailer.send_template(
            str(agent.get("email") or ""),
            str(agent.get("contact_person") or ""),
            self.templates.suspension,
            {"contact_person": agent.get("contact_person") or ""},
        )
        if not ok:
            self._after_notification_failure(agent_id, current, SUSPENDED, f"Suspension email failed ({msg})")

        logger.info("Agent %s suspended", agent_id)
        return StatusChangeResult(
            success=True,
            message="Agent suspended.",
            agent_code=row.get("agent_code") or agent.get("agent_code"),
            status=SUSPENDED,
        )

    # ------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------
    def _load_agent(self, agent_id: str) -> Dict[str, Any]:
        try:
            agent = self.store.get_row("agents", agent_id)
        except PersistenceError as exc:
            raise PersistenceFailure(f"Could not load agent: {exc.message}")
        if not agent:
            raise NotFound(f"Agent {agent_id} not found.")
        return agent

    def _new_code(self) -> str:
        try:
            return self.store.generate_code("agent_code")
        except PersistenceError as exc:
            if exc.status_code != 404:
                raise PersistenceFailure(f"Could not generate agent code: {exc.message}")
        # No code function deployed: mint locally, the unique constraint still guards it.
        logger.warning("generate_agent_code is unavailable; generating the agent code locally")
        return generate_agent_code()

    def _ensure_account(self, email: str, password: str) -> tuple[str, bool]:
        """Returns (account_id, created); an existing account is looked up by email."""
        try:
            return self.identity.create_account(email, password, pre_verified=True), True
        except AccountExists:
            logger.info("Identity account for agent email already exists; reusing it")
        except IdentityError as exc:
            raise IdentityProviderFailure(f"Could not create login account: {exc.message}")

        try:
            account_id = self.identity.find_account_id(email)
        except IdentityError as exc:
            raise IdentityProviderFailure(f"Could not look up existing login account: {exc.message}")
        if not account_id:
            raise IdentityProviderFailure("Email is registered but the existing account could not be found.")
        return account_id, False

    def _set_account_password(self, agent_id: str, current: str, account_id: str, password: str) -> None:
        try:
            self.identity.set_password(account_id, password)
        except IdentityError as exc:
            if self._revert(agent_id, to_status=current, from_status=ACTIVE):
                raise IdentityProviderFailure(
                    f"Could not set the login password: {exc.message}; agent status reverted to {current}.",
                    status=current,
                )
            raise IdentityProviderFailure(
                f"Could not set the login password: {exc.message}; reverting the agent to {current} also failed.",
                status=ACTIVE,
            )

    def _persist_approval(
        self,
        agent_id: str,
        current: str,
        code: str,
        password: str,
        user_id: str,
    ) -> tuple[Dict[str, Any], str]:
        for attempt in range(1, self.code_attempts + 1):
            fields = {"status": ACTIVE, "agent_code": code, "password": password, "user_id": user_id}
            try:
                row = self.store.update_row("agents", agent_id, fields, expected={"status": current})
            except PersistenceError as exc:
                if exc.conflict and attempt < self.code_attempts:
                    logger.info("Agent code %s already taken, regenerating (attempt %s)", code, attempt)
                    code = self._new_code()
                    continue
                raise PersistenceFailure(f"Could not save approval: {exc.message}", conflict=exc.conflict)
            if row is None:
                raise PersistenceFailure(f"Agent is no longer {current}; approval not applied.", conflict=True)
            return row, code
        raise PersistenceFailure("Could not allocate a unique agent code.", conflict=True)

    def _update_status(self, agent_id: str, from_status: str, to_status: str) -> Dict[str, Any]:
        try:
            row = self.store.update_row("agents", agent_id, {"status": to_status}, expected={"status": from_status})
        except PersistenceError as exc:
            raise PersistenceFailure(f"Could not update agent status: {exc.message}", conflict=exc.conflict)
        if row is None:
            raise PersistenceFailure(f"Agent is no longer {from_status}; status not changed.", conflict=True)
        return row

    def _revert(self, agent_id: str, to_status: str, from_status: str) -> bool:
        try:
            row = self.store.update_row("agents", agent_id, {"status": to_status}, expected={"status": from_status})
        except PersistenceError as exc:
            logger.error("Rollback of agent %s to %s failed: %s", agent_id, to_status, exc.message)
            return False
        if row is None:
            logger.error("Rollback of agent %s to %s skipped: status changed concurrently", agent_id, to_status)
            return False
        logger.warning("Agent %s rolled back to %s", agent_id, to_status)
        return True

    def _after_notification_failure(self, agent_id: str, previous: str, current: str, reason: str) -> None:
        if self.rollback_policy == "all" and self._revert(agent_id, to_status=previous, from_status=current):
            raise NotificationFailure(f"{reason}; agent status reverted to {previous}.", status=previous)
        raise NotificationFailure(f"{reason}; agent status remains {current}.", status=current)
