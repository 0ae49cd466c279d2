from __future__ import annotations

import re
from datetime import datetime, timedelta

import pytest

from packages.features.agents.credentials import (
    AGENT_CODE_RE,
    generate_agent_code,
    generate_password,
    password_is_complex,
)
from packages.features.agents.models import normalize_aadhaar, normalize_pan
from services.config import Settings
from services.errors import ConfigurationError
from services.persistence.common import PersistenceError, now_iso


# ------------------------------------------------------------
# JSON store
# ------------------------------------------------------------
def test_insert_sets_id_and_timestamps(store):
    row = store.insert_row("agents", {"email": "x@y.com"})
    assert row["id"] and row["created_at"] and row["updated_at"]
    assert store.get_row("agents", row["id"])["email"] == "x@y.com"


def test_unique_columns_are_enforced(store):
    store.insert_row("agents", {"email": "x@y.com", "agent_code": "AGT-100000"})
    with pytest.raises(PersistenceError) as info:
        store.insert_row("agents", {"email": "X@Y.com"})
    assert info.value.conflict
    # NULL codes never collide.
    store.insert_row("agents", {"email": "a@b.com", "agent_code": None})
    store.insert_row("agents", {"email": "c@d.com", "agent_code": None})


def test_guarded_update(store):
    row = store.insert_row("agents", {"email": "x@y.com", "status": "pending"})

    assert store.update_row("agents", row["id"], {"status": "active"}, expected={"status": "suspended"}) is None
    updated = store.update_row("agents", row["id"], {"status": "active"}, expected={"status": "pending"})
    assert updated["status"] == "active"
    assert store.update_row("agents", "missing", {"status": "active"}) is None


def test_list_filters_and_delete(store):
    a = store.insert_row("bookings", {"agent_id": "a1", "status": "pending"})
    store.insert_row("bookings", {"agent_id": "a2", "status": "pending"})

    assert [r["id"] for r in store.list_rows("bookings", {"agent_id": "a1"})] == [a["id"]]
    assert store.delete_row("bookings", a["id"]) is True
    assert store.delete_row("bookings", a["id"]) is False


def test_generated_codes_are_unique(store):
    code = store.generate_code("agent_code")
    assert AGENT_CODE_RE.match(code)
    assert re.fullmatch(r"BKG-\d{6}", store.generate_code("booking_reference"))
    with pytest.raises(PersistenceError):
        store.generate_code("invoice_number")


def test_unknown_table(store):
    with pytest.raises(PersistenceError):
        store.list_rows("users")


def test_timestamps_are_utc():
    stamp = now_iso()
    assert stamp.endswith("Z")
    parsed = datetime.fromisoformat(stamp[:-1] + "+00:00")
    assert parsed.utcoffset() == timedelta(0)


# ------------------------------------------------------------
# Credentials and document normalization
# ------------------------------------------------------------
def test_generated_credentials():
    for _ in range(50):
        assert AGENT_CODE_RE.match(generate_agent_code())
        pw = generate_password()
        assert len(pw) == 12
        assert password_is_complex(pw)
    assert len(generate_password(4)) == 8


@pytest.mark.parametrize(
    "raw, expected",
    [(123456789012, "123456789012"), ("1234 5678 9012", "123456789012"), ("", None), (None, None)],
)
def test_aadhaar_normalization(raw, expected):
    assert normalize_aadhaar(raw) == expected


@pytest.mark.parametrize("raw", ["12345", 12345678901, "12345678901a", True])
def test_aadhaar_rejects_bad_values(raw):
    with pytest.raises(ValueError):
        normalize_aadhaar(raw)


def test_pan_normalization():
    assert normalize_pan(" abcde1234f ") == "ABCDE1234F"
    with pytest.raises(ValueError):
        normalize_pan("ABCD1234F")


# ------------------------------------------------------------
# Settings
# ------------------------------------------------------------
@pytest.fixture
def env(monkeypatch):
    for name in ("SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY", "MSG91_AUTH_KEY", "PERSISTENCE_BACKEND",
                 "STATUS_ROLLBACK_POLICY", "HTTP_TIMEOUT_S"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("SUPABASE_URL", "https://example.supabase.co/")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "service-key")
    monkeypatch.setenv("MSG91_AUTH_KEY", "msg91-key")
    return monkeypatch


def test_settings_from_env(env):
    settings = Settings.from_env()
    assert settings.supabase_url == "https://example.supabase.co"
    assert settings.approval_template_id == "11122025_3"
    assert settings.rollback_policy == "approval"
    assert settings.persistence_backend == "supabase"


def test_missing_msg91_key_is_fatal(env):
    env.delenv("MSG91_AUTH_KEY")
    with pytest.raises(ConfigurationError) as info:
        Settings.from_env()
    assert "MSG91_AUTH_KEY" in info.value.message


@pytest.mark.parametrize(
    "name, value",
    [("PERSISTENCE_BACKEND", "mongo"), ("STATUS_ROLLBACK_POLICY", "sometimes"), ("HTTP_TIMEOUT_S", "soon")],
)
def test_bad_settings_are_rejected(env, name, value):
    env.setenv(name, value)
    with pytest.raises(ConfigurationError):
        Settings.from_env()
