"""API key records and key-string helpers.

Row format (``api_keys`` table, both backends):
    id, name, key, created_at, last_used, is_active, usage, monthly_limit, user_id

ApiKeyRecord is the in-process view of one row. ``key`` is the plaintext
secret: the table is the source of truth for validation, which compares the
trimmed caller-supplied key for exact equality.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from typing import Any, Optional

from marunose.constants import (
    API_KEY_ALPHABET,
    API_KEY_PREFIX,
    API_KEY_RANDOM_LENGTH,
    DEFAULT_MONTHLY_LIMIT,
)

#: Columns a caller may change through KeyStore.update_key().
MUTABLE_FIELDS: frozenset[str] = frozenset({"name", "is_active", "monthly_limit", "last_used"})


@dataclass(frozen=True)
class ApiKeyRecord:
    """One persisted API key."""

    id: str
    name: str
    key: str
    created_at: str
    last_used: Optional[str]
    is_active: bool
    usage: int
    monthly_limit: int
    user_id: Optional[str] = None

    @property
    def quota_exhausted(self) -> bool:
        return self.usage >= self.monthly_limit

    @property
    def masked_key(self) -> str:
        return mask_api_key(self.key)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "ApiKeyRecord":
        """Build a record from a database row dict (Supabase or SQLite)."""
        return cls(
            id=str(row["id"]),
            name=row.get("name") or "",
            key=row["key"],
            created_at=str(row.get("created_at") or ""),
            last_used=row.get("last_used"),
            is_active=bool(row.get("is_active", False)),
            usage=int(row.get("usage") or 0),
            monthly_limit=int(row.get("monthly_limit") or 0),
            user_id=row.get("user_id"),
        )

    def to_public_dict(self, reveal_key: bool = False) -> dict[str, Any]:
        """Dashboard representation. The plaintext key only when ``reveal_key``."""
        return {
            "id": self.id,
            "name": self.name,
            "key": self.key if reveal_key else self.masked_key,
            "createdAt": self.created_at,
            "lastUsed": self.last_used,
            "isActive": self.is_active,
            "usage": self.usage,
            "monthlyLimit": self.monthly_limit,
        }


@dataclass(frozen=True)
class NewApiKey:
    """Fields supplied when inserting a key; id and created_at come from the store."""

    name: str
    key: str
    monthly_limit: int = DEFAULT_MONTHLY_LIMIT
    is_active: bool = True
    usage: int = 0
    last_used: Optional[str] = None
    user_id: Optional[str] = None

    @classmethod
    def issue(
        cls,
        name: str,
        monthly_limit: int = DEFAULT_MONTHLY_LIMIT,
        user_id: Optional[str] = None,
    ) -> "NewApiKey":
        """A fresh active key with zero usage and a newly generated secret."""
        return cls(name=name, key=generate_api_key(), monthly_limit=monthly_limit, user_id=user_id)

    def to_row(self) -> dict[str, Any]:
        row: dict[str, Any] = {
            "name": self.name,
            "key": self.key,
            "last_used": self.last_used,
            "is_active": self.is_active,
            "usage": self.usage,
            "monthly_limit": self.monthly_limit,
        }
        if self.user_id is not None:
            row["user_id"] = self.user_id
        return row


def generate_api_key() -> str:
    """Return ``marunose-`` followed by 35 random alphanumeric characters.

    Uses the ``secrets`` CSPRNG.
    """
    suffix = "".join(secrets.choice(API_KEY_ALPHABET) for _ in range(API_KEY_RANDOM_LENGTH))
    return f"{API_KEY_PREFIX}{suffix}"


def mask_api_key(key: str) -> str:
    """First 5 characters followed by 25 asterisks; short keys are returned as-is."""
    if len(key) <= 10:
        return key
    return f"{key[:5]}{'*' * 25}"


def has_key_prefix(key: str) -> bool:
    return key.startswith(API_KEY_PREFIX)


def validate_update_fields(fields: dict[str, Any]) -> dict[str, Any]:
    """Return ``fields`` unchanged if every name is mutable.

    Raises:
        ValueError: On an empty patch or an immutable / unknown column name.
    """
    if not fields:
        raise ValueError("No fields to update")
    unknown = set(fields) - MUTABLE_FIELDS
    if unknown:
        raise ValueError(f"Fields cannot be updated: {sorted(unknown)}")
    return fields
