# tests/conftest.py
"""
Shared fixtures: a JSON-file store on tmp_path, in-process fakes for the
identity provider and the email dispatcher, and a TestClient wired to them.
"""
from __future__ import annotations

import threading
import uuid
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from packages.features.agents.workflow import AgentStatusWorkflow, EmailTemplates
from services.config import Settings
from services.context import CallerContext
from services.gateway import deps
from services.gateway.app import app
from services.identity.supabase_auth import AccountExists, IdentityError
from services.persistence.json_store import JsonStore

ADMIN_TOKEN = "admin-token"
AGENT_TOKEN = "agent-token"
ADMIN_USER_ID = "admin-user-1"

TEMPLATES = EmailTemplates(approval="11122025_3", reactivation="26122025", suspension="26122025_s")


class FakeIdentity:
    def __init__(self) -> None:
        self.accounts: Dict[str, str] = {}
        self.passwords: Dict[str, str] = {}
        self.create_calls: List[str] = []
        self.tokens: Dict[str, Dict[str, Any]] = {}
        self.fail_with: Optional[str] = None
        self.set_password_calls: List[str] = []
        self.fail_set_password: Optional[str] = None
        self._lock = threading.Lock()

    def create_account(self, email: str, password: str, pre_verified: bool = True) -> str:
        self.create_calls.append(email)
        if self.fail_with:
            raise IdentityError(self.fail_with, status_code=500)
        with self._lock:
            if email in self.accounts:
                raise AccountExists("A user with this email address has already been registered", status_code=422)
            account_id = "user-" + uuid.uuid4().hex[:8]
            self.accounts[email] = account_id
            self.passwords[account_id] = password
            return account_id

    def set_password(self, account_id: str, password: str) -> None:
        self.set_password_calls.append(account_id)
        if self.fail_set_password:
            raise IdentityError(self.fail_set_password, status_code=500)
        with self._lock:
            self.passwords[account_id] = password

    def find_account_id(self, email: str) -> Optional[str]:
        return self.accounts.get(email)

    def get_user(self, access_token: str) -> Optional[Dict[str, Any]]:
        return self.tokens.get(access_token)


class FakeMailer:
    def __init__(self) -> None:
        self.sent: List[Dict[str, Any]] = []
        self.ok = True

    def send_template(self, to_email, to_name, template_id, variables):
        self.sent.append(
            {"to_email": to_email, "to_name": to_name, "template_id": template_id, "variables": dict(variables)}
        )
        if self.ok:
            return True, "sent"
        return False, "Email sending failed (500)"


@pytest.fixture
def store(tmp_path):
    return JsonStore(tmp_path / "data")


@pytest.fixture
def identity():
    return FakeIdentity()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def workflow(store, identity, mailer):
    return AgentStatusWorkflow(store, identity, mailer, TEMPLATES)


@pytest.fixture
def admin_ctx():
    return CallerContext(token=ADMIN_TOKEN, user_id=ADMIN_USER_ID, email="admin@example.com", role="admin")


@pytest.fixture
def make_agent(store):
    def _make(**overrides):
        row = {
            "company_name": "Sky Tours",
            "contact_person": "Asha Rao",
            "email": "x@y.com",
            "phone": "+91 98765 43210",
            "commission_rate": 5.0,
            "status": "pending",
            "agent_code": None,
            "user_id": None,
            "password": None,
        }
        row.update(overrides)
        return store.insert_row("agents", row)

    return _make


@pytest.fixture
def settings(tmp_path):
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_role_key="service-key",
        msg91_auth_key="msg91-key",
        approval_template_id=TEMPLATES.approval,
        reactivation_template_id=TEMPLATES.reactivation,
        suspension_template_id=TEMPLATES.suspension,
        persistence_backend="json",
        data_dir=str(tmp_path / "data"),
    )


@pytest.fixture
def client(settings, store, identity, mailer):
    store.insert_row("user_roles", {"user_id": ADMIN_USER_ID, "role": "admin"})
    identity.tokens[ADMIN_TOKEN] = {"id": ADMIN_USER_ID, "email": "admin@example.com"}

    app.dependency_overrides[deps.get_settings] = lambda: settings
    app.dependency_overrides[deps.get_store] = lambda: store
    app.dependency_overrides[deps.get_identity] = lambda: identity
    app.dependency_overrides[deps.get_mailer] = lambda: mailer
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}
