"""Key store factory: backend selection and initialization.

Backend selection:
  1. If SUPABASE_URL and SUPABASE_KEY are both set: SupabaseKeyStore
  2. Otherwise: LocalSQLiteKeyStore (default)

LocalSQLiteKeyStore path:
  MARUNOSE_KEYS_DB_PATH environment variable, else config.key_store.path.
"""

from __future__ import annotations

import os
from typing import Optional

from marunose.config import Config
from marunose.keys.protocol import KeyStore
from marunose.utils.logger import get_logger

logger = get_logger(__name__)

_ENV_SUPABASE_URL = "SUPABASE_URL"
_ENV_SUPABASE_KEY = "SUPABASE_KEY"
_ENV_KEYS_DB_PATH = "MARUNOSE_KEYS_DB_PATH"


async def create_key_store(config: Optional[Config] = None) -> KeyStore:
    """Create and initialize the key store selected by the environment.

    Raises:
        KeyStoreError: Supabase client could not be created.
        RuntimeError:  Local SQLite schema version is incompatible.
    """
    supabase_url = os.getenv(_ENV_SUPABASE_URL)
    supabase_key = os.getenv(_ENV_SUPABASE_KEY)

    if supabase_url and supabase_key:
        return await _create_supabase_store(supabase_url, supabase_key)
    default_path = config.key_store.path if config is not None else "~/.marunose/keys.db"
    return await _create_local_sqlite_store(os.getenv(_ENV_KEYS_DB_PATH, default_path))


async def _create_supabase_store(url: str, key: str) -> KeyStore:
    from marunose.keys.supabase_store import SupabaseKeyStore

    store = SupabaseKeyStore(url=url, key=key)
    await store.initialize()
    logger.info(
        "key_store_selected",
        backend="SupabaseKeyStore",
        # Never log the key: log only the URL host portion
        supabase_host=url.split("//")[-1].split(".")[0] if "//" in url else "unknown",
    )
    return store


async def _create_local_sqlite_store(db_path: str) -> KeyStore:
    from marunose.keys.sqlite_store import LocalSQLiteKeyStore

    store = LocalSQLiteKeyStore(db_path=db_path)
    await store.initialize()
    logger.info("key_store_selected", backend="LocalSQLiteKeyStore", db_path=db_path)
    return store
