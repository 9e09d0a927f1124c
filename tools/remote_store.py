"""Wardrobe table abstractions with Supabase and SQLite implementations."""
from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx
from postgrest.exceptions import APIError
from supabase import Client

JSON_COLUMNS = {"color", "brand", "style", "material", "season", "occasion", "metadata"}


class RemoteStoreError(RuntimeError):
    """Raised when the wardrobe table rejects or cannot complete an operation.

    ``code`` carries the backend's structured error code when it sent one
    (a Postgres SQLSTATE or PostgREST ``PGRST`` code).
    """

    def __init__(self, message: str, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


class WardrobeTable:
    """Row-oriented access to the ``wardrobe`` table.

    Writes return the affected rows. An empty list means the backend accepted
    the call but touched nothing.
    """

    def insert(self, row: Dict[str, Any]) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def update(self, item_id: str, user_id: str, values: Dict[str, Any]) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def delete(self, item_id: str, user_id: str) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def get(self, item_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def list_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        raise NotImplementedError


class SupabaseWardrobeTable(WardrobeTable):
    """Hosted table accessed through the Supabase client.

    Built with the anon key it runs under the user's row-level security
    policies; built with the service key it is the trusted server's store.
    """

    def __init__(self, client: Client, table: str = "wardrobe") -> None:
        self.client = client
        self.table = table

    def _execute(self, query: Any, operation: str) -> List[Dict[str, Any]]:
        try:
            response = query.execute()
        except APIError as exc:
            raise RemoteStoreError(exc.message or str(exc), code=exc.code) from exc
        except httpx.HTTPError as exc:
            raise RemoteStoreError(f"Network error during {operation}: {exc}") from exc
        return list(response.data or [])

    def insert(self, row: Dict[str, Any]) -> List[Dict[str, Any]]:
        return self._execute(self.client.table(self.table).insert([row]), "insert")

    def update(self, item_id: str, user_id: str, values: Dict[str, Any]) -> List[Dict[str, Any]]:
        query = (
            self.client.table(self.table)
            .update(values)
            .eq("item_id", item_id)
            .eq("user_id", user_id)
        )
        return self._execute(query, "update")

    def delete(self, item_id: str, user_id: str) -> List[Dict[str, Any]]:
        query = self.client.table(self.table).delete().eq("item_id", item_id).eq("user_id", user_id)
        return self._execute(query, "delete")

    def get(self, item_id: str) -> Optional[Dict[str, Any]]:
        rows = self._execute(
            self.client.table(self.table).select("*").eq("item_id", item_id).limit(1), "select"
        )
        return rows[0] if rows else None

    def list_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        query = (
            self.client.table(self.table)
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
        )
        return self._execute(query, "select")


class SQLiteWardrobeTable(WardrobeTable):
    """Local SQLite-backed table for offline runs and tests.

    Writes name their columns explicitly, so an unknown key surfaces as the
    same kind of "no column" error a hosted schema would return.
    """

    def __init__(self, database_path: str | Path = "data/wardrobe.db") -> None:
        self.database_path = Path(database_path)
        if self.database_path.parent and not self.database_path.parent.exists():
            self.database_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_tables()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.database_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_tables(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS wardrobe (
                    item_id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    category TEXT NOT NULL,
                    color TEXT,
                    brand TEXT,
                    style TEXT,
                    material TEXT,
                    image_path TEXT,
                    created_at TEXT,
                    description TEXT,
                    visibility TEXT DEFAULT 'private',
                    brand_url TEXT,
                    wear_count INTEGER DEFAULT 0,
                    purchase_date TEXT,
                    purchase_price REAL,
                    size TEXT,
                    last_worn TEXT,
                    season TEXT,
                    occasion TEXT,
                    featured INTEGER DEFAULT 0,
                    metadata TEXT
                );
                """
            )

    @staticmethod
    def _serialise(values: Dict[str, Any]) -> Dict[str, Any]:
        serialised = {}
        for key, value in values.items():
            if key in JSON_COLUMNS and value is not None:
                serialised[key] = json.dumps(value)
            elif key == "featured" and value is not None:
                serialised[key] = int(bool(value))
            else:
                serialised[key] = value
        return serialised

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> Dict[str, Any]:
        record: Dict[str, Any] = {}
        for key in row.keys():
            value = row[key]
            if key in JSON_COLUMNS and value is not None:
                value = json.loads(value)
            elif key == "featured":
                value = bool(value)
            record[key] = value
        return record

    def _run(self, sql: str, params: tuple) -> sqlite3.Cursor:
        try:
            with self._connect() as conn:
                return conn.execute(sql, params)
        except sqlite3.Error as exc:
            raise RemoteStoreError(str(exc)) from exc

    def _select(self, sql: str, params: tuple) -> List[Dict[str, Any]]:
        try:
            with self._connect() as conn:
                rows = conn.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise RemoteStoreError(str(exc)) from exc
        return [self._row_to_record(row) for row in rows]

    def insert(self, row: Dict[str, Any]) -> List[Dict[str, Any]]:
        values = self._serialise(row)
        columns = ", ".join(values)
        placeholders = ", ".join("?" for _ in values)
        self._run(f"INSERT INTO wardrobe ({columns}) VALUES ({placeholders})", tuple(values.values()))
        return self._select("SELECT * FROM wardrobe WHERE item_id = ?", (row.get("item_id"),))

    def update(self, item_id: str, user_id: str, values: Dict[str, Any]) -> List[Dict[str, Any]]:
        if not values:
            return self._select(
                "SELECT * FROM wardrobe WHERE item_id = ? AND user_id = ?", (item_id, user_id)
            )
        serialised = self._serialise(values)
        assignments = ", ".join(f"{column} = ?" for column in serialised)
        cursor = self._run(
            f"UPDATE wardrobe SET {assignments} WHERE item_id = ? AND user_id = ?",
            (*serialised.values(), item_id, user_id),
        )
        if cursor.rowcount == 0:
            return []
        return self._select("SELECT * FROM wardrobe WHERE item_id = ?", (item_id,))

    def delete(self, item_id: str, user_id: str) -> List[Dict[str, Any]]:
        rows = self._select(
            "SELECT * FROM wardrobe WHERE item_id = ? AND user_id = ?", (item_id, user_id)
        )
        if rows:
            self._run("DELETE FROM wardrobe WHERE item_id = ? AND user_id = ?", (item_id, user_id))
        return rows

    def get(self, item_id: str) -> Optional[Dict[str, Any]]:
        rows = self._select("SELECT * FROM wardrobe WHERE item_id = ?", (item_id,))
        return rows[0] if rows else None

    def list_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        return self._select(
            "SELECT * FROM wardrobe WHERE user_id = ? ORDER BY created_at DESC", (user_id,)
        )


__all__ = [
    "RemoteStoreError",
    "SQLiteWardrobeTable",
    "SupabaseWardrobeTable",
    "WardrobeTable",
]
