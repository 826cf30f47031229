"""LocalSQLiteKeyStore: aiosqlite-backed ``api_keys`` table.

Used when no Supabase project is configured (local development, tests).
Behaviour matches SupabaseKeyStore; the usage increment is a single guarded
UPDATE, so concurrent requests can never push ``usage`` past
``monthly_limit``.

Features:
  - Long-lived connection: opened in initialize(), closed in close()
  - WAL mode
  - Schema version guard: PRAGMA user_version=1, RuntimeError on mismatch
  - ULID primary keys, ISO 8601 UTC created_at
"""

from __future__ import annotations

import os
from datetime import datetime, timezone
from typing import Any, Optional

import aiosqlite

from marunose.keys.models import ApiKeyRecord, NewApiKey, validate_update_fields
from marunose.keys.protocol import KeyNotFoundError, KeyStoreError, UsageLimitReachedError
from marunose.utils.logger import get_logger
from marunose.utils.ulid import generate_ulid

logger = get_logger(__name__)

# ─── Schema DDL ───────────────────────────────────────────────────────────────

_CREATE_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS api_keys (
    id              TEXT PRIMARY KEY,
    name            TEXT NOT NULL,
    key             TEXT NOT NULL UNIQUE,
    created_at      TEXT NOT NULL,
    last_used       TEXT,
    is_active       INTEGER NOT NULL DEFAULT 1,
    usage           INTEGER NOT NULL DEFAULT 0 CHECK(usage >= 0),
    monthly_limit   INTEGER NOT NULL DEFAULT 1000,
    user_id         TEXT
);

CREATE INDEX IF NOT EXISTS idx_api_keys_created_at
    ON api_keys(created_at DESC);
"""

_SCHEMA_VERSION = 1

_SELECT_COLUMNS = (
    "id, name, key, created_at, last_used, is_active, usage, monthly_limit, user_id"
)


def _row_to_record(row: aiosqlite.Row) -> ApiKeyRecord:
    return ApiKeyRecord.from_row(dict(row))


class LocalSQLiteKeyStore:
    """Async SQLite key store using aiosqlite exclusively.

    Usage:
        store = LocalSQLiteKeyStore("~/.marunose/keys.db")
        await store.initialize()
        keys = await store.get_all_keys()
        await store.close()
    """

    def __init__(self, db_path: str = "~/.marunose/keys.db") -> None:
        self._db_path: str = os.path.expanduser(db_path)
        self._db: Optional[aiosqlite.Connection] = None

    @property
    def db_path(self) -> str:
        return self._db_path

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    async def initialize(self) -> None:
        """Open the connection, enable WAL mode, and create/verify the schema.

        Raises:
            RuntimeError: If PRAGMA user_version is neither 0 nor 1.
        """
        parent_dir = os.path.dirname(self._db_path)
        if parent_dir:
            os.makedirs(parent_dir, exist_ok=True)

        self._db = await aiosqlite.connect(self._db_path)
        self._db.row_factory = aiosqlite.Row
        await self._db.execute("PRAGMA journal_mode=WAL;")

        cursor = await self._db.execute("PRAGMA user_version;")
        row = await cursor.fetchone()
        current_version: int = row[0] if row else 0

        if current_version == 0:
            await self._db.executescript(_CREATE_SCHEMA_SQL)
            await self._db.execute(f"PRAGMA user_version = {_SCHEMA_VERSION};")
            await self._db.commit()
            logger.info("key_db_schema_created", db_path=self._db_path)
        elif current_version != _SCHEMA_VERSION:
            await self._db.close()
            self._db = None
            raise RuntimeError(
                f"Unsupported key database schema version: {current_version}. "
                f"Delete {self._db_path} to reset."
            )

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None
            logger.debug("key_db_closed", db_path=self._db_path)

    def _conn(self) -> aiosqlite.Connection:
        if self._db is None:
            raise KeyStoreError("Key store not initialized: call initialize() first")
        return self._db

    # ── KeyStore Protocol Methods ─────────────────────────────────────────────

    async def get_all_keys(self) -> list[ApiKeyRecord]:
        try:
            cursor = await self._conn().execute(
                f"SELECT {_SELECT_COLUMNS} FROM api_keys ORDER BY created_at DESC, id DESC"
            )
            rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            logger.error("key_store_query_failed", operation="get_all_keys", error=str(exc))
            raise KeyStoreError("Failed to fetch API keys") from exc
        return [_row_to_record(row) for row in rows]

    async def create_key(self, data: NewApiKey) -> ApiKeyRecord:
        key_id = generate_ulid()
        created_at = datetime.now(timezone.utc).isoformat()
        db = self._conn()
        try:
            await db.execute(
                """INSERT INTO api_keys
                   (id, name, key, created_at, last_used, is_active, usage, monthly_limit, user_id)
                   VALUES (?,?,?,?,?,?,?,?,?)""",
                (
                    key_id,
                    data.name,
                    data.key,
                    created_at,
                    data.last_used,
                    int(data.is_active),
                    data.usage,
                    data.monthly_limit,
                    data.user_id,
                ),
            )
            await db.commit()
        except aiosqlite.Error as exc:
            logger.error("key_store_query_failed", operation="create_key", error=str(exc))
            raise KeyStoreError("Failed to create API key") from exc

        logger.info("API key created", key_id=key_id, name=data.name)
        return await self._get(key_id)

    async def update_key(self, key_id: str, fields: dict[str, Any]) -> ApiKeyRecord:
        validate_update_fields(fields)
        values = {
            name: int(value) if name == "is_active" else value
            for name, value in fields.items()
        }
        assignments = ", ".join(f"{name} = ?" for name in values)
        db = self._conn()
        try:
            cursor = await db.execute(
                f"UPDATE api_keys SET {assignments} WHERE id = ?",
                (*values.values(), key_id),
            )
            await db.commit()
        except aiosqlite.Error as exc:
            logger.error("key_store_query_failed", operation="update_key", error=str(exc))
            raise KeyStoreError("Failed to update API key") from exc

        if cursor.rowcount == 0:
            raise KeyNotFoundError(key_id)
        return await self._get(key_id)

    async def delete_key(self, key_id: str) -> None:
        db = self._conn()
        try:
            await db.execute("DELETE FROM api_keys WHERE id = ?", (key_id,))
            await db.commit()
        except aiosqlite.Error as exc:
            logger.error("key_store_query_failed", operation="delete_key", error=str(exc))
            raise KeyStoreError("Failed to delete API key") from exc

    async def increment_usage(self, key_id: str) -> Optional[int]:
        """Add one to ``usage`` unless the key is already at its limit.

        Returns:
            The post-increment usage.

        Raises:
            UsageLimitReachedError: The key is already at its limit.
            KeyNotFoundError:       The row no longer exists.
        """
        db = self._conn()
        try:
            # Single round trip: the RETURNING statement is fully stepped
            # before any other coroutine touches the connection.
            rows = list(await db.execute_fetchall(
                "UPDATE api_keys SET usage = usage + 1 "
                "WHERE id = ? AND usage < monthly_limit RETURNING usage",
                (key_id,),
            ))
            await db.commit()
        except aiosqlite.Error as exc:
            logger.error("key_store_query_failed", operation="increment_usage", error=str(exc))
            raise KeyStoreError("Failed to increment usage") from exc
        if not rows:
            # Guard rejected the update, or the row was deleted after lookup.
            await self._get(key_id)
            raise UsageLimitReachedError(key_id)
        return int(rows[0][0])

    async def health_check(self) -> bool:
        if self._db is None:
            return False
        try:
            await self._db.execute("SELECT 1")
            return True
        except Exception as exc:
            logger.error("key_store_health_check_failed", error=str(exc))
            return False

    # ── Helpers ───────────────────────────────────────────────────────────────

    async def _get(self, key_id: str) -> ApiKeyRecord:
        cursor = await self._conn().execute(
            f"SELECT {_SELECT_COLUMNS} FROM api_keys WHERE id = ?", (key_id,)
        )
        row = await cursor.fetchone()
        if row is None:
            raise KeyNotFoundError(key_id)
        return _row_to_record(row)
