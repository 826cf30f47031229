"""SupabaseKeyStore: the hosted ``api_keys`` table as the source of truth.

All operations run through the async Supabase client and are wrapped in
asyncio.wait_for(timeout=5s). Unlike fire-and-forget audit writes, key store
failures are on the critical path: every error is logged and re-raised as
KeyStoreError so the gateway answers 500.

Usage increments call the server-side routine
``increment_api_key_usage(api_key_id)`` so the increment is atomic in
Postgres, never a read-modify-write from this process.

Environment:
  SUPABASE_URL : project URL
  SUPABASE_KEY : service role key (never logged)
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional

from supabase import create_async_client

from marunose.keys.models import ApiKeyRecord, NewApiKey, validate_update_fields
from marunose.keys.protocol import KeyNotFoundError, KeyStoreError
from marunose.utils.logger import get_logger

logger = get_logger(__name__)

_SUPABASE_TIMEOUT_S = 5.0
"""All Supabase operations are wrapped in asyncio.wait_for(timeout=_SUPABASE_TIMEOUT_S)."""

_TABLE_NAME = "api_keys"

_INCREMENT_RPC = "increment_api_key_usage"


class SupabaseKeyStore:
    """Async Supabase implementation of the KeyStore protocol.

    Usage:
        store = SupabaseKeyStore(url="https://...", key="service-role-key")
        await store.initialize()
        keys = await store.get_all_keys()
        await store.close()
    """

    def __init__(
        self,
        url: str,
        key: str,
        table_name: str = _TABLE_NAME,
        timeout_s: float = _SUPABASE_TIMEOUT_S,
    ) -> None:
        self._url = url
        self._key = key
        self._table_name = table_name
        self._timeout_s = timeout_s
        self._client: Optional[Any] = None

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    async def initialize(self) -> None:
        """Create the async Supabase client.

        Raises:
            KeyStoreError: If the client cannot be created within the timeout.
        """
        try:
            self._client = await asyncio.wait_for(
                create_async_client(self._url, self._key),
                timeout=self._timeout_s,
            )
        except Exception as exc:
            logger.error(
                "supabase_key_store_init_failed",
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise KeyStoreError("Could not connect to Supabase") from exc

        logger.info(
            "supabase_key_store_initialized",
            table=self._table_name,
            timeout_s=self._timeout_s,
        )

    async def close(self) -> None:
        """Drop the client (HTTP clients are stateless)."""
        self._client = None
        logger.debug("supabase_key_store_closed")

    # ── KeyStore Protocol Methods ─────────────────────────────────────────────

    async def get_all_keys(self) -> list[ApiKeyRecord]:
        query = (
            self._table()
            .select("*")
            .order("created_at", desc=True)
        )
        response = await self._execute(query, "get_all_keys")
        return [ApiKeyRecord.from_row(row) for row in (response.data or [])]

    async def create_key(self, data: NewApiKey) -> ApiKeyRecord:
        response = await self._execute(
            self._table().insert(data.to_row()),
            "create_key",
        )
        if not response.data:
            raise KeyStoreError("Insert returned no row")
        record = ApiKeyRecord.from_row(response.data[0])
        logger.info("API key created", key_id=record.id, name=record.name)
        return record

    async def update_key(self, key_id: str, fields: dict[str, Any]) -> ApiKeyRecord:
        validate_update_fields(fields)
        response = await self._execute(
            self._table().update(fields).eq("id", key_id),
            "update_key",
        )
        if not response.data:
            raise KeyNotFoundError(key_id)
        return ApiKeyRecord.from_row(response.data[0])

    async def delete_key(self, key_id: str) -> None:
        await self._execute(self._table().delete().eq("id", key_id), "delete_key")

    async def increment_usage(self, key_id: str) -> Optional[int]:
        """Call the atomic increment routine.

        Returns:
            The new usage when the routine returns an integer, else None.
        """
        response = await self._execute(
            self._require_client().rpc(_INCREMENT_RPC, {"api_key_id": key_id}),
            "increment_usage",
        )
        data = response.data
        if isinstance(data, bool):
            return None
        if isinstance(data, int):
            return data
        return None

    async def health_check(self) -> bool:
        if self._client is None:
            return False
        try:
            response = await asyncio.wait_for(
                self._table().select("id", count="exact").limit(1).execute(),
                timeout=self._timeout_s,
            )
            return response is not None
        except Exception as exc:
            logger.error(
                "supabase_health_check_failed",
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return False

    # ── Helpers ───────────────────────────────────────────────────────────────

    def _require_client(self) -> Any:
        if self._client is None:
            raise KeyStoreError("Key store not initialized: call initialize() first")
        return self._client

    def _table(self) -> Any:
        return self._require_client().table(self._table_name)

    async def _execute(self, query: Any, operation: str) -> Any:
        """Run a query builder with the store timeout; wrap every failure."""
        try:
            return await asyncio.wait_for(query.execute(), timeout=self._timeout_s)
        except Exception as exc:
            logger.error(
                "supabase_key_store_query_failed",
                operation=operation,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise KeyStoreError(f"Supabase {operation} failed") from exc
