from __future__ import annotations

import json

import httpx
import pytest

from services.errors import ConfigurationError
from services.identity.supabase_auth import AccountExists, IdentityError, SupabaseAuth
from services.notifications.email.service import Msg91Mailer
from services.persistence.common import PersistenceError
from services.persistence.supabase_rest import SupabaseRest


BASE = "https://example.supabase.co"


def _recorder(handler):
    calls = []

    def _wrapped(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return handler(request)

    return calls, httpx.MockTransport(_wrapped)


# ------------------------------------------------------------
# PostgREST gateway
# ------------------------------------------------------------
def test_rest_update_sends_guard_and_returns_row():
    calls, transport = _recorder(
        lambda req: httpx.Response(200, json=[{"id": "a1", "status": "active"}])
    )
    rest = SupabaseRest(BASE, "service-key", transport=transport)

    row = rest.update_row("agents", "a1", {"status": "active"}, expected={"status": "pending"})

    assert row == {"id": "a1", "status": "active"}
    req = calls[0]
    assert req.method == "PATCH"
    assert req.url.path == "/rest/v1/agents"
    assert req.url.params["id"] == "eq.a1"
    assert req.url.params["status"] == "eq.pending"
    assert req.headers["apikey"] == "service-key"
    assert req.headers["Prefer"] == "return=representation"
    assert json.loads(req.content)["status"] == "active"


def test_rest_update_guard_miss_returns_none():
    _, transport = _recorder(lambda req: httpx.Response(200, json=[]))
    rest = SupabaseRest(BASE, "service-key", transport=transport)

    assert rest.update_row("agents", "a1", {"status": "active"}, expected={"status": "pending"}) is None


def test_rest_unique_violation_is_a_conflict():
    _, transport = _recorder(
        lambda req: httpx.Response(409, json={"code": "23505", "message": "duplicate key value"})
    )
    rest = SupabaseRest(BASE, "service-key", transport=transport)

    with pytest.raises(PersistenceError) as info:
        rest.insert_row("agents", {"email": "x@y.com"})
    assert info.value.conflict is True
    assert info.value.status_code == 409


def test_rest_generate_code_calls_rpc():
    calls, transport = _recorder(lambda req: httpx.Response(200, json="AGT-424242"))
    rest = SupabaseRest(BASE, "service-key", transport=transport)

    assert rest.generate_code("agent_code") == "AGT-424242"
    assert calls[0].url.path == "/rest/v1/rpc/generate_agent_code"


def test_rest_network_error_is_persistence_error():
    def boom(req):
        raise httpx.ConnectTimeout("timed out", request=req)

    rest = SupabaseRest(BASE, "service-key", transport=httpx.MockTransport(boom))
    with pytest.raises(PersistenceError):
        rest.get_row("agents", "a1")


# ------------------------------------------------------------
# GoTrue identity provider
# ------------------------------------------------------------
def test_create_account_returns_id():
    calls, transport = _recorder(lambda req: httpx.Response(200, json={"id": "u-1", "email": "x@y.com"}))
    auth = SupabaseAuth(BASE, "service-key", transport=transport)

    assert auth.create_account("x@y.com", "Pw#12345678") == "u-1"
    body = json.loads(calls[0].content)
    assert body == {"email": "x@y.com", "password": "Pw#12345678", "email_confirm": True}
    assert calls[0].url.path == "/auth/v1/admin/users"


@pytest.mark.parametrize(
    "payload",
    [
        {"code": 422, "error_code": "email_exists", "msg": "A user with this email address has already been registered"},
        {"code": 422, "msg": "A user with this email address has already been registered"},
    ],
)
def test_create_account_already_exists(payload):
    _, transport = _recorder(lambda req: httpx.Response(422, json=payload))
    auth = SupabaseAuth(BASE, "service-key", transport=transport)

    with pytest.raises(AccountExists):
        auth.create_account("x@y.com", "Pw#12345678")


def test_create_account_other_failure():
    _, transport = _recorder(lambda req: httpx.Response(500, json={"msg": "Database error saving new user"}))
    auth = SupabaseAuth(BASE, "service-key", transport=transport)

    with pytest.raises(IdentityError) as info:
        auth.create_account("x@y.com", "Pw#12345678")
    assert not isinstance(info.value, AccountExists)


def test_set_password_updates_account():
    calls, transport = _recorder(lambda req: httpx.Response(200, json={"id": "u-1"}))
    auth = SupabaseAuth(BASE, "service-key", transport=transport)

    auth.set_password("u-1", "Pw#12345678")

    assert calls[0].method == "PUT"
    assert calls[0].url.path == "/auth/v1/admin/users/u-1"
    assert json.loads(calls[0].content) == {"password": "Pw#12345678"}


def test_set_password_failure_raises():
    _, transport = _recorder(lambda req: httpx.Response(404, json={"msg": "User not found"}))
    auth = SupabaseAuth(BASE, "service-key", transport=transport)

    with pytest.raises(IdentityError) as info:
        auth.set_password("u-1", "Pw#12345678")
    assert info.value.status_code == 404


def test_find_account_id_pages_through_users():
    def handler(req):
        page = int(req.url.params["page"])
        if page == 1:
            return httpx.Response(200, json={"users": [{"id": "u-1", "email": "a@b.com"}, {"id": "u-2", "email": "c@d.com"}]})
        return httpx.Response(200, json={"users": [{"id": "u-3", "email": "X@Y.com"}]})

    auth = SupabaseAuth(BASE, "service-key", transport=httpx.MockTransport(handler))

    assert auth.find_account_id("x@y.com", per_page=2) == "u-3"


def test_get_user_with_bad_token_is_none():
    _, transport = _recorder(lambda req: httpx.Response(401, json={"msg": "invalid JWT"}))
    auth = SupabaseAuth(BASE, "service-key", transport=transport)

    assert auth.get_user("not-a-jwt") is None
    assert auth.get_user("") is None


# ------------------------------------------------------------
# MSG91 dispatcher
# ------------------------------------------------------------
def _mailer(transport):
    return Msg91Mailer(
        "msg91-key",
        from_email="no-reply@phoenixtravelopedia.com",
        from_name="Noreply Phoenix Travelopedia",
        domain="phoenixtravelopedia.com",
        transport=transport,
    )


def test_send_template_payload():
    calls, transport = _recorder(lambda req: httpx.Response(200, json={"status": "success"}))

    ok, msg = _mailer(transport).send_template(
        "x@y.com", "Asha Rao", "11122025_3", {"contact_person": "Asha Rao", "agent_code": "AGT-123456", "password": "p"}
    )

    assert ok and msg == "sent"
    req = calls[0]
    assert req.headers["authkey"] == "msg91-key"
    assert json.loads(req.content) == {
        "to": [{"email": "x@y.com", "name": "Asha Rao"}],
        "from": {"email": "no-reply@phoenixtravelopedia.com", "name": "Noreply Phoenix Travelopedia"},
        "template_id": "11122025_3",
        "variables": {"contact_person": "Asha Rao", "agent_code": "AGT-123456", "password": "p"},
        "domain": "phoenixtravelopedia.com",
    }


def test_send_template_non_2xx_is_failure():
    _, transport = _recorder(lambda req: httpx.Response(400, json={"errors": "template not found"}))

    ok, msg = _mailer(transport).send_template("x@y.com", "Asha", "bad", {})

    assert not ok
    assert "400" in msg


def test_mailer_requires_auth_key():
    with pytest.raises(ConfigurationError):
        Msg91Mailer("", from_email="a@b.com", from_name="A")
