"""User-scoped record store over the SQLite database.

Every query issued here carries the owning ``user_id``, so a store handed to
a caller can only ever see that user's rows.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Generator, Mapping

from callboard.db import get_db
from callboard.exceptions import ConflictError, NotFoundError, StoreError

logger = logging.getLogger(__name__)

_TABLES: dict[str, dict[str, tuple[str, ...]]] = {
    "customers": {
        "columns": (
            "phone_number", "name", "email", "company", "tags", "status",
            "external_id", "external_data", "created_at", "updated_at",
        ),
        "json": ("tags", "external_data"),
        "bool": (),
    },
    "notes": {
        "columns": (
            "customer_id", "call_id", "title", "content", "priority", "tags",
            "is_pinned", "created_at", "updated_at",
        ),
        "json": ("tags",),
        "bool": ("is_pinned",),
    },
}

_CREDENTIAL_FIELDS = ("vapi_private_key", "vapi_public_key", "llm_api_key")


def utcnow() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@contextmanager
def _guard(action: str) -> Generator[None, None, None]:
    """Translate sqlite errors into the store's error classes."""
    try:
        yield
    except sqlite3.IntegrityError as exc:
        if "UNIQUE" in str(exc):
            raise ConflictError(f"Duplicate record: {exc}") from exc
        raise StoreError(f"Failed to {action}: {exc}") from exc
    except sqlite3.Error as exc:
        raise StoreError(f"Failed to {action}: {exc}") from exc


class RecordStore:
    """find/insert/update/delete for one table, scoped to one owning user."""

    def __init__(self, table: str, user_id: str, db_path: Path | None = None):
        if table not in _TABLES:
            raise ValueError(f"Unknown table: {table}")
        if not user_id:
            raise ValueError("user_id is required")
        self.table = table
        self.user_id = user_id
        self.db_path = db_path
        self._layout = _TABLES[table]

    def _check_columns(self, names) -> None:
        allowed = set(self._layout["columns"]) | {"id"}
        unknown = [n for n in names if n not in allowed]
        if unknown:
            raise ValueError(f"Unknown {self.table} column(s): {', '.join(unknown)}")

    def _encode(self, values: Mapping[str, Any]) -> dict[str, Any]:
        encoded = {}
        for key, value in values.items():
            if key in self._layout["json"] and value is not None:
                value = json.dumps(value)
            elif key in self._layout["bool"]:
                value = 1 if value else 0
            encoded[key] = value
        return encoded

    def _decode(self, row: sqlite3.Row) -> dict[str, Any]:
        record = dict(row)
        for key in self._layout["json"]:
            if record.get(key) is not None:
                record[key] = json.loads(record[key])
        for key in self._layout["bool"]:
            record[key] = bool(record[key])
        return record

    def _where(self, filters: Mapping[str, Any], match: str) -> tuple[str, list[Any]]:
        self._check_columns(filters)
        joiner = " OR " if match == "any" else " AND "
        clauses = [f"{column} = ?" for column in filters]
        params: list[Any] = [self.user_id, *self._encode(filters).values()]
        sql = "user_id = ?"
        if clauses:
            sql += f" AND ({joiner.join(clauses)})"
        return sql, params

    def get(self, record_id: int) -> dict[str, Any]:
        record = self.find_one(id=record_id)
        if record is None:
            raise NotFoundError(f"{self.table[:-1].capitalize()} not found")
        return record

    def find_one(self, **filters: Any) -> dict[str, Any] | None:
        rows = self.find_all(**filters)
        return rows[0] if rows else None

    def find_all(self, match: str = "all", **filters: Any) -> list[dict[str, Any]]:
        """Rows matching every filter (``match="all"``) or any of them (``"any"``)."""
        where, params = self._where(filters, match)
        with _guard(f"query {self.table}"), get_db(self.db_path) as db:
            rows = db.execute(
                f"SELECT * FROM {self.table} WHERE {where} ORDER BY id", params
            ).fetchall()
        return [self._decode(r) for r in rows]

    def insert(self, values: Mapping[str, Any]) -> dict[str, Any]:
        self._check_columns(values)
        now = utcnow()
        data = {"created_at": now, "updated_at": now, **values}
        data = self._encode(data)
        columns = ["user_id", *data]
        placeholders = ", ".join("?" for _ in columns)
        with _guard(f"insert into {self.table}"), get_db(self.db_path) as db:
            cur = db.execute(
                f"INSERT INTO {self.table} ({', '.join(columns)}) VALUES ({placeholders})",
                [self.user_id, *data.values()],
            )
            record_id = cur.lastrowid
        return self.get(record_id)

    def update(self, record_id: int, values: Mapping[str, Any]) -> dict[str, Any]:
        self._check_columns(values)
        data = self._encode({"updated_at": utcnow(), **values})
        assignments = ", ".join(f"{column} = ?" for column in data)
        with _guard(f"update {self.table}"), get_db(self.db_path) as db:
            cur = db.execute(
                f"UPDATE {self.table} SET {assignments} WHERE id = ? AND user_id = ?",
                [*data.values(), record_id, self.user_id],
            )
            if cur.rowcount == 0:
                raise NotFoundError(f"{self.table[:-1].capitalize()} not found")
        return self.get(record_id)

    def delete(self, record_id: int) -> None:
        with _guard(f"delete from {self.table}"), get_db(self.db_path) as db:
            cur = db.execute(
                f"DELETE FROM {self.table} WHERE id = ? AND user_id = ?",
                (record_id, self.user_id),
            )
            if cur.rowcount == 0:
                raise NotFoundError(f"{self.table[:-1].capitalize()} not found")


def _like(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def search_customers(
    user_id: str,
    search: str | None = None,
    status: str | None = None,
    limit: int = 50,
    offset: int = 0,
    db_path: Path | None = None,
) -> tuple[list[dict[str, Any]], int]:
    """Return one page of a user's customers plus the total match count."""
    store = RecordStore("customers", user_id, db_path)
    where = "user_id = ?"
    params: list[Any] = [user_id]
    if search:
        where += (
            " AND (name LIKE ? ESCAPE '\\' OR phone_number LIKE ? ESCAPE '\\'"
            " OR email LIKE ? ESCAPE '\\')"
        )
        params += [_like(search)] * 3
    if status:
        where += " AND status = ?"
        params.append(status)

    with _guard("query customers"), get_db(db_path) as db:
        total = db.execute(
            f"SELECT COUNT(*) AS c FROM customers WHERE {where}", params
        ).fetchone()["c"]
        rows = db.execute(
            f"""SELECT * FROM customers WHERE {where}
                ORDER BY updated_at DESC, id DESC LIMIT ? OFFSET ?""",
            [*params, limit, offset],
        ).fetchall()
    return [store._decode(r) for r in rows], total


def search_notes(
    user_id: str,
    customer_id: int | None = None,
    search: str | None = None,
    limit: int = 50,
    db_path: Path | None = None,
) -> list[dict[str, Any]]:
    """A user's notes, pinned first, each with its customer embedded."""
    notes = RecordStore("notes", user_id, db_path)
    customers = RecordStore("customers", user_id, db_path)
    where = "user_id = ?"
    params: list[Any] = [user_id]
    if customer_id is not None:
        where += " AND customer_id = ?"
        params.append(customer_id)
    if search:
        where += " AND (title LIKE ? ESCAPE '\\' OR content LIKE ? ESCAPE '\\')"
        params += [_like(search)] * 2

    with _guard("query notes"), get_db(db_path) as db:
        rows = db.execute(
            f"""SELECT * FROM notes WHERE {where}
                ORDER BY is_pinned DESC, updated_at DESC, id DESC LIMIT ?""",
            [*params, limit],
        ).fetchall()
        customer_ids = {r["customer_id"] for r in rows}
        placeholders = ", ".join("?" for _ in customer_ids)
        owners = (
            db.execute(
                f"SELECT * FROM customers WHERE user_id = ? AND id IN ({placeholders})",
                [user_id, *customer_ids],
            ).fetchall()
            if customer_ids
            else []
        )
    by_id = {o["id"]: customers._decode(o) for o in owners}

    result = []
    for row in rows:
        note = notes._decode(row)
        note["customer"] = by_id.get(note["customer_id"])
        result.append(note)
    return result


# --- API credentials ---


def mask_api_key(key: str) -> str:
    if len(key) <= 8:
        return "•" * len(key)
    return key[:4] + "•" * (len(key) - 8) + key[-4:]


def get_credentials(user_id: str, db_path: Path | None = None) -> dict[str, Any] | None:
    with _guard("fetch API keys"), get_db(db_path) as db:
        row = db.execute("SELECT * FROM api_keys WHERE user_id = ?", (user_id,)).fetchone()
    return dict(row) if row else None


def masked_credentials(user_id: str, db_path: Path | None = None) -> dict[str, Any]:
    keys = get_credentials(user_id, db_path) or {}
    masked: dict[str, Any] = {
        name: mask_api_key(keys[name]) if keys.get(name) else None
        for name in _CREDENTIAL_FIELDS
    }
    masked["created_at"] = keys.get("created_at")
    masked["updated_at"] = keys.get("updated_at")
    return masked


def save_credentials(user_id: str, db_path: Path | None = None, **keys: str | None) -> None:
    """Upsert the user's key bundle. Keys passed as None or "" are left untouched."""
    unknown = set(keys) - set(_CREDENTIAL_FIELDS)
    if unknown:
        raise ValueError(f"Unknown credential(s): {', '.join(sorted(unknown))}")
    provided = {k: v for k, v in keys.items() if v}
    now = utcnow()
    columns = ["user_id", *provided, "updated_at"]
    updates = ", ".join(f"{c} = excluded.{c}" for c in [*provided, "updated_at"])
    with _guard("update API keys"), get_db(db_path) as db:
        db.execute(
            f"""INSERT INTO api_keys ({', '.join(columns)})
                VALUES ({', '.join('?' for _ in columns)})
                ON CONFLICT(user_id) DO UPDATE SET {updates}""",
            [user_id, *provided.values(), now],
        )
    logger.info("Updated API keys for user %s (%s)", user_id, ", ".join(provided) or "none")


# --- cached call summaries ---


def get_cached_summaries(
    user_id: str, call_ids: list[str], db_path: Path | None = None
) -> dict[str, str]:
    if not call_ids:
        return {}
    placeholders = ", ".join("?" for _ in call_ids)
    with _guard("fetch summaries"), get_db(db_path) as db:
        rows = db.execute(
            f"""SELECT call_id, summary FROM call_summaries
                WHERE user_id = ? AND call_id IN ({placeholders})""",
            [user_id, *call_ids],
        ).fetchall()
    return {r["call_id"]: r["summary"] for r in rows}


def save_cached_summary(
    user_id: str, call_id: str, summary: str, db_path: Path | None = None
) -> None:
    with _guard("save summary"), get_db(db_path) as db:
        db.execute(
            """INSERT INTO call_summaries (user_id, call_id, summary) VALUES (?, ?, ?)
               ON CONFLICT(user_id, call_id) DO UPDATE SET summary = excluded.summary""",
            (user_id, call_id, summary),
        )
