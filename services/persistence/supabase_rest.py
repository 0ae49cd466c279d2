from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from services.persistence.common import CODE_FUNCTIONS, PersistenceError, now_iso


logger = logging.getLogger(__name__)

# Postgres unique_violation
UNIQUE_VIOLATION = "23505"


class SupabaseRest:
    """Row-level CRUD against Supabase's PostgREST endpoint (service role)."""

    def __init__(
        self,
        base_url: str,
        service_key: str,
        timeout_s: float = 20.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/") + "/rest/v1"
        self.service_key = service_key
        self.timeout = timeout_s
        self.transport = transport

    def _client(self) -> httpx.Client:
        headers = {
            "apikey": self.service_key,
            "Authorization": f"Bearer {self.service_key}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        return httpx.Client(
            base_url=self.base_url,
            headers=headers,
            timeout=self.timeout,
            transport=self.transport,
        )

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, str]] = None,
        json: Any = None,
        prefer: str = "",
    ) -> Any:
        headers = {"Prefer": prefer} if prefer else {}
        try:
            with self._client() as client:
                r = client.request(method, path, params=params, json=json, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("PostgREST %s %s failed: %s", method, path, exc)
            raise PersistenceError(f"Persistence request failed: {exc}")

        if r.status_code >= 400:
            try:
                body = r.json()
            except ValueError:
                body = {}
            body = body if isinstance(body, dict) else {}
            message = str(body.get("message") or r.text or f"HTTP {r.status_code}")
            conflict = r.status_code == 409 or str(body.get("code") or "") == UNIQUE_VIOLATION
            raise PersistenceError(message, conflict=conflict, status_code=r.status_code)

        if not r.content:
            return None
        return r.json()

    @staticmethod
    def _eq_params(filters: Optional[Dict[str, Any]]) -> Dict[str, str]:
        params: Dict[str, str] = {}
        for key, value in (filters or {}).items():
            if value is None:
                params[key] = "is.null"
            else:
                params[key] = f"eq.{value}"
        return params

    def list_rows(self, table: str, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        params = {"select": "*", "order": "created_at.desc"}
        params.update(self._eq_params(filters))
        data = self._request("GET", f"/{table}", params=params)
        return data if isinstance(data, list) else []

    def find_row(self, table: str, **filters: Any) -> Optional[Dict[str, Any]]:
        params = {"select": "*", "limit": "1"}
        params.update(self._eq_params(filters))
        data = self._request("GET", f"/{table}", params=params)
        if isinstance(data, list) and data:
            return data[0]
        return None

    def get_row(self, table: str, row_id: str) -> Optional[Dict[str, Any]]:
        return self.find_row(table, id=row_id)

    def insert_row(self, table: str, data: Dict[str, Any]) -> Dict[str, Any]:
        rows = self._request("POST", f"/{table}", json=dict(data), prefer="return=representation")
        if not isinstance(rows, list) or not rows:
            raise PersistenceError(f"Insert into {table} returned no row.")
        return rows[0]

    def update_row(
        self,
        table: str,
        row_id: str,
        fields: Dict[str, Any],
        expected: Optional[Dict[str, Any]] = None,
    ) -> Optional[Dict[str, Any]]:
        """Single-row PATCH; `expected` adds column guards (compare-and-set).

        Returns None when no row matched the id and guards.
        """
        params = self._eq_params({"id": row_id, **(expected or {})})
        payload = dict(fields)
        payload["updated_at"] = now_iso()
        rows = self._request("PATCH", f"/{table}", params=params, json=payload, prefer="return=representation")
        if isinstance(rows, list) and rows:
            return rows[0]
        return None

    def delete_row(self, table: str, row_id: str) -> bool:
        rows = self._request("DELETE", f"/{table}", params=self._eq_params({"id": row_id}), prefer="return=representation")
        return bool(rows)

    def generate_code(self, kind: str) -> str:
        fn = CODE_FUNCTIONS.get(kind)
        if not fn:
            raise PersistenceError(f"Unknown code kind: {kind}")
        data = self._request("POST", f"/rpc/{fn}", json={})
        code = str(data or "").strip()
        if not code:
            raise PersistenceError(f"{fn} returned an empty code.")
        return code

    def has_role(self, user_id: str, role: str) -> bool:
        if not user_id:
            return False
        return self.find_row("user_roles", user_id=user_id, role=role) is not None
