from __future__ import annotations

import logging
from typing import Dict, Optional

import httpx

from services.errors import ConfigurationError


logger = logging.getLogger(__name__)


class Msg91Mailer:
    """Templated transactional email through MSG91's v5 email API."""

    def __init__(
        self,
        auth_key: str,
        from_email: str,
        from_name: str,
        domain: str = "",
        url: str = "https://control.msg91.com/api/v5/email/send",
        timeout_s: float = 20.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        if not (auth_key or "").strip():
            raise ConfigurationError("MSG91_AUTH_KEY is not configured.")
        self.auth_key = auth_key.strip()
        self.from_email = from_email
        self.from_name = from_name
        self.domain = domain
        self.url = url
        self.timeout = timeout_s
        self.transport = transport

    def build_payload(
        self,
        to_email: str,
        to_name: str,
        template_id: str,
        variables: Dict[str, str],
    ) -> dict:
        payload = {
            "to": [{"email": to_email, "name": to_name}],
            "from": {"email": self.from_email, "name": self.from_name},
            "template_id": str(template_id),
            "variables": {k: str(v) for k, v in (variables or {}).items() if v is not None},
        }
        if self.domain:
            payload["domain"] = self.domain
        return payload

    def send_template(
        self,
        to_email: str,
        to_name: str,
        template_id: str,
        variables: Dict[str, str],
    ) -> tuple[bool, str]:
        """Send one templated email. Success is any 2xx from MSG91."""
        to_email = (to_email or "").strip()
        if not to_email:
            return False, "Missing recipient email"
        if not template_id:
            return False, "Missing template id"

        payload = self.build_payload(to_email, (to_name or "").strip(), template_id, variables)
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "authkey": self.auth_key,
        }
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                r = client.post(self.url, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("MSG91 request failed for template %s: %s", template_id, exc)
            return False, f"Email request failed: {exc}"

        if 200 <= r.status_code < 300:
            return True, "sent"
        logger.warning("MSG91 rejected template %s (%s): %s", template_id, r.status_code, r.text[:500])
        return False, f"Email sending failed ({r.status_code})"
