from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from services.errors import ConfigurationError


ROOT_DIR = Path(__file__).resolve().parents[1]

DEFAULT_MSG91_EMAIL_URL = "https://control.msg91.com/api/v5/email/send"

ROLLBACK_POLICIES = ("approval", "all")


def _env(name: str, default: str = "") -> str:
    return (str(os.getenv(name) or "")).strip() or default


@dataclass(frozen=True)
class Settings:
    supabase_url: str
    supabase_service_role_key: str
    msg91_auth_key: str
    msg91_email_url: str = DEFAULT_MSG91_EMAIL_URL
    mail_from_email: str = "no-reply@phoenixtravelopedia.com"
    mail_from_name: str = "Noreply Phoenix Travelopedia"
    mail_domain: str = "phoenixtravelopedia.com"
    approval_template_id: str = "11122025_3"
    reactivation_template_id: str = "26122025"
    suspension_template_id: str = "26122025"
    persistence_backend: str = "supabase"
    data_dir: str = str(ROOT_DIR / "data")
    http_timeout_s: float = 20.0
    rollback_policy: str = "approval"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Read settings from the process environment.

        Raises ConfigurationError listing every missing credential, so a
        half-configured deployment fails at startup instead of mid-request.
        """
        backend = _env("PERSISTENCE_BACKEND", "supabase").lower()
        if backend not in ("supabase", "json"):
            raise ConfigurationError(f"Unknown PERSISTENCE_BACKEND: {backend!r}")

        policy = _env("STATUS_ROLLBACK_POLICY", "approval").lower()
        if policy not in ROLLBACK_POLICIES:
            raise ConfigurationError(f"Unknown STATUS_ROLLBACK_POLICY: {policy!r}")

        try:
            timeout = float(_env("HTTP_TIMEOUT_S", "20"))
        except ValueError:
            raise ConfigurationError("HTTP_TIMEOUT_S must be a number.")

        settings = cls(
            supabase_url=_env("SUPABASE_URL").rstrip("/"),
            supabase_service_role_key=_env("SUPABASE_SERVICE_ROLE_KEY"),
            msg91_auth_key=_env("MSG91_AUTH_KEY"),
            msg91_email_url=_env("MSG91_EMAIL_URL", DEFAULT_MSG91_EMAIL_URL),
            mail_from_email=_env("MAIL_FROM_EMAIL", cls.mail_from_email),
            mail_from_name=_env("MAIL_FROM_NAME", cls.mail_from_name),
            mail_domain=_env("MAIL_DOMAIN", cls.mail_domain),
            approval_template_id=_env("APPROVAL_TEMPLATE_ID", cls.approval_template_id),
            reactivation_template_id=_env("REACTIVATION_TEMPLATE_ID", cls.reactivation_template_id),
            suspension_template_id=_env("SUSPENSION_TEMPLATE_ID", cls.suspension_template_id),
            persistence_backend=backend,
            data_dir=_env("DATA_DIR", cls.data_dir),
            http_timeout_s=timeout,
            rollback_policy=policy,
            log_level=_env("LOG_LEVEL", "INFO").upper(),
        )
        missing = settings.missing()
        if missing:
            raise ConfigurationError("Missing required configuration: " + ", ".join(missing))
        return settings

    def missing(self) -> list[str]:
        out = []
        # The identity provider always lives on Supabase, even with the JSON store.
        if not self.supabase_url:
            out.append("SUPABASE_URL")
        if not self.supabase_service_role_key:
            out.append("SUPABASE_SERVICE_ROLE_KEY")
        if not self.msg91_auth_key:
            out.append("MSG91_AUTH_KEY")
        return out
