"""Health endpoint.

GET /health: 503 while the lifespan is still starting, then 200 with:

    {
      "status": "ok" | "degraded",
      "key_store": "healthy" | "unreachable",
      "key_store_backend": "SupabaseKeyStore" | "LocalSQLiteKeyStore",
      "rate_limit_records": 3,
      "security_events": 42
    }

``degraded`` means the key store did not answer; gateway requests will
fail with 500 until it recovers.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request) -> dict[str, Any]:
    if not getattr(request.app.state, "ready", False):
        raise HTTPException(
            status_code=503,
            detail={"status": "starting", "message": "Marunose is starting up"},
        )

    key_store = request.app.state.key_store
    store_ok = await key_store.health_check()
    return {
        "status": "ok" if store_ok else "degraded",
        "key_store": "healthy" if store_ok else "unreachable",
        "key_store_backend": type(key_store).__name__,
        "rate_limit_records": len(request.app.state.rate_limiter),
        "security_events": len(request.app.state.security_logger),
    }
