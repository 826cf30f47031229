"""Dashboard API endpoints for key management and security events.

Provides (mounted under /dashboard/api in main.py):
  GET    /keys              : list keys, newest first (masked)
  POST   /keys              : create a key (plaintext shown once)
  PATCH  /keys/{key_id}     : rename / activate / change monthly limit
  POST   /keys/{key_id}/toggle: flip is_active
  DELETE /keys/{key_id}     : delete a key
  GET    /security/events   : in-memory security log, optional ?ip= filter

No authentication: DashboardLocalhostMiddleware restricts these to loopback.
Key operations are capped by the shared slowapi limiter.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from marunose.constants import DEFAULT_MONTHLY_LIMIT
from marunose.dashboard.limiter import KEY_MANAGEMENT_RATE_LIMIT, limiter
from marunose.keys.models import ApiKeyRecord, NewApiKey
from marunose.keys.protocol import KeyNotFoundError, KeyStore
from marunose.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["dashboard"])


# ─── Request Models ───────────────────────────────────────────────────────────


class CreateKeyRequest(BaseModel):
    """Request body for POST /dashboard/api/keys."""

    name: str = Field(min_length=1, max_length=100)
    monthly_limit: int = Field(default=DEFAULT_MONTHLY_LIMIT, gt=0, alias="monthlyLimit")


class UpdateKeyRequest(BaseModel):
    """Request body for PATCH /dashboard/api/keys/{key_id}. Omitted fields are left alone."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    is_active: Optional[bool] = Field(default=None, alias="isActive")
    monthly_limit: Optional[int] = Field(default=None, gt=0, alias="monthlyLimit")


# ─── Helpers ──────────────────────────────────────────────────────────────────


def _store(request: Request) -> KeyStore:
    return request.app.state.key_store


async def _find_key(store: KeyStore, key_id: str) -> ApiKeyRecord:
    for record in await store.get_all_keys():
        if record.id == key_id:
            return record
    raise HTTPException(status_code=404, detail="API key not found")


# ─── Keys ─────────────────────────────────────────────────────────────────────


@router.get("/keys")
@limiter.limit(KEY_MANAGEMENT_RATE_LIMIT)
async def list_keys(request: Request) -> dict:
    """All keys, newest first. Key values are masked."""
    keys = await _store(request).get_all_keys()
    return {"keys": [record.to_public_dict() for record in keys]}


@router.post("/keys", status_code=201)
@limiter.limit(KEY_MANAGEMENT_RATE_LIMIT)
async def create_key(body: CreateKeyRequest, request: Request) -> dict:
    """Issue a new key. The plaintext key is returned once, in this response only."""
    new_key = NewApiKey.issue(name=body.name.strip(), monthly_limit=body.monthly_limit)
    record = await _store(request).create_key(new_key)
    return {
        "key": record.to_public_dict(reveal_key=True),
        "message": "API key created. Store this key: it will not be shown again.",
    }


@router.patch("/keys/{key_id}")
@limiter.limit(KEY_MANAGEMENT_RATE_LIMIT)
async def update_key(key_id: str, body: UpdateKeyRequest, request: Request) -> dict:
    fields: dict[str, Any] = {
        name: getattr(body, name) for name in body.model_fields_set
        if getattr(body, name) is not None
    }
    if "name" in fields:
        fields["name"] = fields["name"].strip()
    if not fields:
        raise HTTPException(status_code=400, detail="No fields to update")

    try:
        record = await _store(request).update_key(key_id, fields)
    except KeyNotFoundError as exc:
        raise HTTPException(status_code=404, detail="API key not found") from exc

    logger.info("API key updated", key_id=key_id, fields=sorted(fields))
    return {"key": record.to_public_dict()}


@router.post("/keys/{key_id}/toggle")
@limiter.limit(KEY_MANAGEMENT_RATE_LIMIT)
async def toggle_key(key_id: str, request: Request) -> dict:
    """Flip is_active for one key."""
    store = _store(request)
    current = await _find_key(store, key_id)
    try:
        record = await store.update_key(key_id, {"is_active": not current.is_active})
    except KeyNotFoundError as exc:
        raise HTTPException(status_code=404, detail="API key not found") from exc

    logger.info("API key toggled", key_id=key_id, is_active=record.is_active)
    return {"key": record.to_public_dict()}


@router.delete("/keys/{key_id}")
@limiter.limit(KEY_MANAGEMENT_RATE_LIMIT)
async def delete_key(key_id: str, request: Request) -> dict:
    await _store(request).delete_key(key_id)
    logger.info("API key deleted", key_id=key_id)
    return {"deleted": key_id}


# ─── Security events ──────────────────────────────────────────────────────────


@router.get("/security/events")
async def get_security_events(request: Request, ip: Optional[str] = None) -> dict:
    """Security log, oldest first. Optionally filtered to one client IP."""
    events = request.app.state.security_logger.get_events(ip=ip)
    return {
        "events": [event.to_dict() for event in events],
        "total": len(events),
    }
