from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx


logger = logging.getLogger(__name__)

ALREADY_EXISTS_CODES = ("email_exists", "user_already_exists")


class IdentityError(Exception):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class AccountExists(IdentityError):
    """The email is already registered with the identity provider."""


class SupabaseAuth:
    """Supabase GoTrue: admin account creation and password reset plus bearer-token lookup."""

    def __init__(
        self,
        base_url: str,
        service_key: str,
        timeout_s: float = 20.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/") + "/auth/v1"
        self.service_key = service_key
        self.timeout = timeout_s
        self.transport = transport

    def _client(self, bearer: str = "") -> httpx.Client:
        headers = {
            "apikey": self.service_key,
            "Authorization": f"Bearer {bearer or self.service_key}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        return httpx.Client(
            base_url=self.base_url,
            headers=headers,
            timeout=self.timeout,
            transport=self.transport,
        )

    @staticmethod
    def _error_message(r: httpx.Response) -> tuple[str, str]:
        try:
            body = r.json()
        except ValueError:
            body = {}
        body = body if isinstance(body, dict) else {}
        msg = str(body.get("msg") or body.get("message") or body.get("error_description") or r.text or "")
        return msg or f"HTTP {r.status_code}", str(body.get("error_code") or "")

    def create_account(self, email: str, password: str, pre_verified: bool = True) -> str:
        """Create a login for `email`; returns the new account id.

        Raises AccountExists when the email is already registered so callers
        can tell that case apart from real failures.
        """
        payload = {"email": email, "password": password, "email_confirm": bool(pre_verified)}
        try:
            with self._client() as client:
                r = client.post("/admin/users", json=payload)
        except httpx.HTTPError as exc:
            raise IdentityError(f"Identity provider unreachable: {exc}")

        if r.status_code in (200, 201):
            account_id = str((r.json() or {}).get("id") or "")
            if not account_id:
                raise IdentityError("Identity provider returned no account id.", status_code=r.status_code)
            return account_id

        msg, error_code = self._error_message(r)
        if error_code in ALREADY_EXISTS_CODES or "already been registered" in msg.lower():
            raise AccountExists(msg, status_code=r.status_code)
        raise IdentityError(msg, status_code=r.status_code)

    def set_password(self, account_id: str, password: str) -> None:
        account_id = (account_id or "").strip()
        if not account_id:
            raise IdentityError("Account id is required.")
        try:
            with self._client() as client:
                r = client.put(f"/admin/users/{account_id}", json={"password": password})
        except httpx.HTTPError as exc:
            raise IdentityError(f"Identity provider unreachable: {exc}")
        if r.status_code not in (200, 201):
            msg, _ = self._error_message(r)
            raise IdentityError(msg, status_code=r.status_code)

    def find_account_id(self, email: str, per_page: int = 200, max_pages: int = 50) -> Optional[str]:
        email = (email or "").strip().lower()
        if not email:
            return None
        try:
            with self._client() as client:
                for page in range(1, max_pages + 1):
                    r = client.get("/admin/users", params={"page": page, "per_page": per_page})
                    if r.status_code != 200:
                        msg, _ = self._error_message(r)
                        raise IdentityError(msg, status_code=r.status_code)
                    data = r.json() or {}
                    users = data.get("users") if isinstance(data, dict) else data
                    users = users if isinstance(users, list) else []
                    for u in users:
                        if str(u.get("email") or "").strip().lower() == email:
                            return str(u.get("id") or "") or None
                    if len(users) < per_page:
                        break
        except httpx.HTTPError as exc:
            raise IdentityError(f"Identity provider unreachable: {exc}")
        return None

    def get_user(self, access_token: str) -> Optional[Dict[str, Any]]:
        """Resolve a caller's bearer token; None when the token is not valid."""
        token = (access_token or "").strip()
        if not token:
            return None
        try:
            with self._client(bearer=token) as client:
                r = client.get("/user")
        except httpx.HTTPError as exc:
            raise IdentityError(f"Identity provider unreachable: {exc}")
        if r.status_code == 200:
            data = r.json()
            return data if isinstance(data, dict) and data.get("id") else None
        if r.status_code in (401, 403, 404):
            return None
        msg, _ = self._error_message(r)
        raise IdentityError(msg, status_code=r.status_code)
