"""API key persistence package.

Layout:
    models.py         : ApiKeyRecord, NewApiKey, generate_api_key(), mask_api_key()
    protocol.py       : KeyStore Protocol + KeyStoreError / KeyNotFoundError
    sqlite_store.py   : LocalSQLiteKeyStore (aiosqlite, guarded atomic increment)
    supabase_store.py : SupabaseKeyStore (async client, RPC increment, 5s timeout)
    factory.py        : create_key_store(): backend selection by env vars
"""

from marunose.keys.models import (
    ApiKeyRecord,
    NewApiKey,
    generate_api_key,
    has_key_prefix,
    mask_api_key,
)
from marunose.keys.protocol import (
    KeyNotFoundError,
    KeyStore,
    KeyStoreError,
    UsageLimitReachedError,
)

__all__ = [
    "ApiKeyRecord",
    "KeyNotFoundError",
    "KeyStore",
    "KeyStoreError",
    "NewApiKey",
    "generate_api_key",
    "has_key_prefix",
    "mask_api_key",
    "UsageLimitReachedError",
]
