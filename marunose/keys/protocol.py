"""KeyStore Protocol and key store exceptions.

Implementations: SupabaseKeyStore (hosted table, production) and
LocalSQLiteKeyStore (aiosqlite, development and tests). Selection via
create_key_store() in keys/factory.py.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol, runtime_checkable

from marunose.keys.models import ApiKeyRecord, NewApiKey


class KeyStoreError(Exception):
    """The backing store failed (unreachable, query error, timeout).

    Propagates to the gateway which answers 500 with a generic message.
    """


class KeyNotFoundError(KeyStoreError):
    """update_key() or increment_usage() referenced an id that does not exist."""

    def __init__(self, key_id: str) -> None:
        super().__init__(f"API key not found: {key_id}")
        self.key_id = key_id


@runtime_checkable
class KeyStore(Protocol):
    """Async CRUD + usage-increment interface over the ``api_keys`` table."""

    async def get_all_keys(self) -> list[ApiKeyRecord]:
        """All rows, newest first. Raises KeyStoreError on query failure."""
        ...

    async def create_key(self, data: NewApiKey) -> ApiKeyRecord:
        """Insert one row and return it with its generated id / created_at."""
        ...

    async def update_key(self, key_id: str, fields: dict[str, Any]) -> ApiKeyRecord:
        """Patch mutable fields. Raises KeyNotFoundError, ValueError on unknown fields."""
        ...

    async def delete_key(self, key_id: str) -> None:
        """Remove a row. Deleting an unknown id is not an error."""
        ...

    async def increment_usage(self, key_id: str) -> Optional[int]:
        """Atomically add one to ``usage``; return the new value when known.

        May raise UsageLimitReachedError when the store enforces the quota, and
        KeyNotFoundError when the row is gone.
        """
        ...

    async def health_check(self) -> bool:
        """True if the store answers a trivial query. Must not raise."""
        ...

    async def close(self) -> None:
        ...


class UsageLimitReachedError(KeyStoreError):
    """The store refused an increment because usage already equals the limit.

    Raised only by stores that enforce the quota inside the increment
    (LocalSQLiteKeyStore); the gateway maps it to QuotaExceeded.
    """

    def __init__(self, key_id: str) -> None:
        super().__init__(f"Usage limit reached for API key: {key_id}")
        self.key_id = key_id
