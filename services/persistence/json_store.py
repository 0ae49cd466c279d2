from __future__ import annotations

import json
import secrets
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from services.persistence.common import (
    CODE_FUNCTIONS,
    TABLES,
    UNIQUE_COLUMNS,
    PersistenceError,
    new_id,
    now_iso,
)


CODE_PREFIXES = {
    "agent_code": "AGT-",
    "booking_reference": "BKG-",
}
CODE_TABLES = {
    "agent_code": "agents",
    "booking_reference": "bookings",
}


class JsonStore:
    """Local persistence gateway: one JSON list per table under `data_dir`.

    A process-wide lock makes each call atomic, which is what the REST
    backend gets from Postgres for single-row statements.
    """

    def __init__(self, data_dir: str | Path) -> None:
        self.data_dir = Path(data_dir)
        self._lock = threading.RLock()

    def _path(self, table: str) -> Path:
        if table not in TABLES:
            raise PersistenceError(f"Unknown table: {table}")
        return self.data_dir / f"{table}.json"

    def _ensure_file(self, table: str) -> Path:
        path = self._path(table)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        if not path.exists():
            path.write_text("[]", encoding="utf-8")
        return path

    def _load(self, table: str) -> List[Dict[str, Any]]:
        path = self._ensure_file(table)
        try:
            raw = path.read_text(encoding="utf-8")
            data = json.loads(raw) if raw.strip() else []
        except (OSError, ValueError) as exc:
            raise PersistenceError(f"Could not read {table}: {exc}")
        return data if isinstance(data, list) else []

    def _save(self, table: str, rows: List[Dict[str, Any]]) -> None:
        path = self._ensure_file(table)
        try:
            path.write_text(json.dumps(rows, ensure_ascii=False, indent=2), encoding="utf-8")
        except OSError as exc:
            raise PersistenceError(f"Could not write {table}: {exc}")

    @staticmethod
    def _matches(row: Dict[str, Any], filters: Optional[Dict[str, Any]]) -> bool:
        for key, value in (filters or {}).items():
            if value is None:
                if row.get(key) is not None:
                    return False
            elif str(row.get(key)) != str(value):
                return False
        return True

    @staticmethod
    def _check_unique(table: str, rows: List[Dict[str, Any]], candidate: Dict[str, Any]) -> None:
        for col in UNIQUE_COLUMNS.get(table, ()):
            value = candidate.get(col)
            if value is None or value == "":
                continue
            for row in rows:
                if row.get("id") == candidate.get("id"):
                    continue
                if str(row.get(col) or "").lower() == str(value).lower():
                    raise PersistenceError(
                        f"duplicate key value violates unique constraint \"{table}_{col}_key\"",
                        conflict=True,
                        status_code=409,
                    )

    def list_rows(self, table: str, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        with self._lock:
            rows = [dict(r) for r in self._load(table) if self._matches(r, filters)]
        # newest first
        rows.sort(key=lambda x: str(x.get("created_at") or ""), reverse=True)
        return rows

    def find_row(self, table: str, **filters: Any) -> Optional[Dict[str, Any]]:
        with self._lock:
            for row in self._load(table):
                if self._matches(row, filters):
                    return dict(row)
        return None

    def get_row(self, table: str, row_id: str) -> Optional[Dict[str, Any]]:
        return self.find_row(table, id=row_id)

    def insert_row(self, table: str, data: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            rows = self._load(table)
            row = dict(data or {})
            if not row.get("id"):
                row["id"] = new_id()
            if any(r.get("id") == row["id"] for r in rows):
                raise PersistenceError(f"Row {row['id']} already exists in {table}.", conflict=True, status_code=409)
            row.setdefault("created_at", now_iso())
            row["updated_at"] = now_iso()
            self._check_unique(table, rows, row)
            rows.append(row)
            self._save(table, rows)
            return dict(row)

    def update_row(
        self,
        table: str,
        row_id: str,
        fields: Dict[str, Any],
        expected: Optional[Dict[str, Any]] = None,
    ) -> Optional[Dict[str, Any]]:
        with self._lock:
            rows = self._load(table)
            for i, row in enumerate(rows):
                if row.get("id") != row_id:
                    continue
                if not self._matches(row, expected):
                    return None
                updated = dict(row)
                updated.update(fields or {})
                updated["id"] = row_id
                updated["updated_at"] = now_iso()
                self._check_unique(table, rows, updated)
                rows[i] = updated
                self._save(table, rows)
                return dict(updated)
        return None

    def delete_row(self, table: str, row_id: str) -> bool:
        with self._lock:
            rows = self._load(table)
            kept = [r for r in rows if r.get("id") != row_id]
            if len(kept) == len(rows):
                return False
            self._save(table, kept)
            return True

    def generate_code(self, kind: str) -> str:
        if kind not in CODE_FUNCTIONS:
            raise PersistenceError(f"Unknown code kind: {kind}")
        prefix = CODE_PREFIXES[kind]
        with self._lock:
            taken = {str(r.get(kind) or "") for r in self._load(CODE_TABLES[kind])}
            for _ in range(50):
                code = f"{prefix}{100000 + secrets.randbelow(900000)}"
                if code not in taken:
                    return code
        raise PersistenceError(f"Could not generate a unique {kind}.")

    def has_role(self, user_id: str, role: str) -> bool:
        if not user_id:
            return False
        return self.find_row("user_roles", user_id=user_id, role=role) is not None
