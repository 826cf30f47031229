"""Public gateway endpoints.

Provides:
  POST /validate-key     : body {apiKey}; answers whether the key is usable
  POST /github-summarize : body {githubUrl, options?}, key in ``x-api-key``

Both run through the KeyGate held on app.state.key_gate. GatewayError
subclasses become JSON responses with their status code and generic message;
anything else is logged as an internal error and answered with 500.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from marunose.errors import GatewayError, InternalGatewayError, MalformedInputError, RateLimitedError
from marunose.gateway.client import ClientInfo, client_info_from_headers
from marunose.gateway.gate import KeyGate, RateLimitPolicy
from marunose.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["gateway"])

VALIDATE_SERVICE = "validate-key"
SUMMARIZE_SERVICE = "github-summarize"

# /validate-key words its rejections differently from /github-summarize.
_VALIDATE_MESSAGES: dict[type[GatewayError], str] = {
    RateLimitedError: "Too many attempts. Please try again later.",
    MalformedInputError: "Invalid API key format",
}


# ─── Helpers ──────────────────────────────────────────────────────────────────


async def _read_json_body(request: Request) -> dict[str, Any]:
    """Parsed JSON object body, or {} when the body is empty, invalid or not an object."""
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _error_response(
    exc: GatewayError, status_field: str, message: Optional[str] = None
) -> JSONResponse:
    content: dict[str, Any] = {status_field: False, "error": message or exc.public_message}
    if isinstance(exc, RateLimitedError):
        content["resetTime"] = exc.reset_time_ms
    return JSONResponse(status_code=exc.status_code, content=content)


def _internal_error(request: Request, client: ClientInfo, status_field: str, exc: Exception) -> JSONResponse:
    logger.error(
        "Gateway request failed",
        path=request.url.path,
        error=str(exc),
        error_type=type(exc).__name__,
    )
    request.app.state.security_logger.log(
        "API_KEY_VALIDATION",
        client.ip,
        client.user_agent,
        {"success": False, "error": "internal_server_error"},
    )
    return _error_response(InternalGatewayError(), status_field)


def _policies(request: Request) -> tuple[RateLimitPolicy, RateLimitPolicy]:
    rl = request.app.state.config.rate_limit
    return (
        RateLimitPolicy(rl.validate_max_requests, rl.validate_window_s),
        RateLimitPolicy(rl.summarize_max_requests, rl.summarize_window_s),
    )


# ─── POST /validate-key ───────────────────────────────────────────────────────


@router.post("/validate-key")
async def validate_key(request: Request) -> JSONResponse:
    """Check a key without consuming quota.

    Returns:
        200 {valid: true, message}
        400 / 401 / 429 (+resetTime) / 500 {valid: false, error}
    """
    client = client_info_from_headers(request.headers)
    gate: KeyGate = request.app.state.key_gate
    validate_policy, _ = _policies(request)

    try:
        body = await _read_json_body(request)
        await gate.authorize(
            client,
            body.get("apiKey"),
            policy=validate_policy,
            service=VALIDATE_SERVICE,
            consume=False,
        )
    except GatewayError as exc:
        return _error_response(exc, "valid", _VALIDATE_MESSAGES.get(type(exc)))
    except Exception as exc:  # noqa: BLE001
        return _internal_error(request, client, "valid", exc)

    return JSONResponse({"valid": True, "message": "API key is valid"})


# ─── POST /github-summarize ───────────────────────────────────────────────────


@router.post("/github-summarize")
async def github_summarize(request: Request) -> JSONResponse:
    """Authorize, consume one unit of quota, then summarize the GitHub URL.

    Returns:
        200 {success: true, data, usage: {current, limit, remaining}}
        400 / 401 / 429 (+resetTime on rate limit) / 500 {success: false, error}
    """
    client = client_info_from_headers(request.headers)
    gate: KeyGate = request.app.state.key_gate
    _, summarize_policy = _policies(request)

    try:
        body = await _read_json_body(request)
        auth = await gate.authorize(
            client,
            request.headers.get("x-api-key"),
            policy=summarize_policy,
            service=SUMMARIZE_SERVICE,
            target_url=body.get("githubUrl"),
        )

        options = body.get("options")
        include_full_readme = bool(
            isinstance(options, dict) and options.get("includeFullReadme")
        )
        data = await request.app.state.orchestrator.summarize(
            auth.target_url, include_full_readme=include_full_readme
        )
    except GatewayError as exc:
        return _error_response(exc, "success")
    except Exception as exc:  # noqa: BLE001
        return _internal_error(request, client, "success", exc)

    assert auth.usage is not None
    return JSONResponse({"success": True, "data": data, "usage": auth.usage.to_dict()})
