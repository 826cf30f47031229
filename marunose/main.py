"""Marunose FastAPI application factory + lifespan lifecycle.

This module implements:
  - create_app(): testable application factory
  - lifespan: @asynccontextmanager startup/shutdown sequence
  - attach_components: wires the per-process objects onto app.state
  - /: service discovery root
  - app = create_app(): module-level instance for uvicorn

Startup sequence:
  1. load_config()          → app.state.config
  2. create_key_store()     → app.state.key_store
  3. create_http_client()   → app.state.http_client
  4. attach_components()    → app.state.rate_limiter, security_logger,
                              key_gate, orchestrator
  5. RateLimitSweeper.start()
  6. app.state.ready = True

Shutdown (reverse):
  app.state.ready = False → stop sweeper → close http client → close key store
"""

from __future__ import annotations

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.routing import APIRouter
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from marunose import __version__
from marunose.config import Config, load_config
from marunose.dashboard.api import router as dashboard_router
from marunose.dashboard.limiter import limiter
from marunose.dashboard.middleware import DashboardLocalhostMiddleware
from marunose.gateway.gate import KeyGate
from marunose.gateway.router import router as gateway_router
from marunose.health import router as health_router
from marunose.keys.factory import create_key_store
from marunose.keys.protocol import KeyStore
from marunose.ratelimit import RateLimitSweeper, SlidingWindowRateLimiter
from marunose.security import SecurityLogger
from marunose.summarize import GitHubClient, SummarizationOrchestrator, SummaryChain
from marunose.utils.http import create_http_client
from marunose.utils.logger import clear_request_id, configure_logging, get_logger, set_request_id
from marunose.utils.ulid import generate_ulid

DEBUG = os.getenv("DEBUG", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO" if not DEBUG else "DEBUG")
JSON_LOGS = os.getenv("JSON_LOGS", "true").lower() == "true"

configure_logging(log_level=LOG_LEVEL, json_output=JSON_LOGS)
logger = get_logger(__name__)


# ─── Root Router ──────────────────────────────────────────────────────────────

root_router = APIRouter(tags=["root"])


@root_router.get("/")
async def root() -> dict[str, str]:
    """Service identity / discovery."""
    return {
        "service": "Marunose",
        "tagline": "API-key gateway for GitHub repository summaries",
        "health": "/health",
        "validate": "/validate-key",
        "summarize": "/github-summarize",
        "dashboard": "/dashboard/api/keys",
    }


# ─── Component wiring ─────────────────────────────────────────────────────────


def attach_components(
    app: FastAPI,
    config: Config,
    key_store: KeyStore,
    http_client: httpx.AsyncClient,
) -> RateLimitSweeper:
    """Build the gateway objects and store them on ``app.state``.

    Returns the (not yet started) rate-limit sweeper; the caller owns its
    start()/stop().
    """
    rl = config.rate_limit
    sec = config.security_log
    summ = config.summarizer

    rate_limiter = SlidingWindowRateLimiter()
    security_logger = SecurityLogger(
        max_events=sec.max_events,
        trim_to=sec.trim_to,
        burst_threshold=sec.burst_threshold,
        burst_window=sec.burst_window_s,
    )
    github = GitHubClient(http_client, api_base=summ.github_api_base, token=summ.github_token)
    chain = SummaryChain(
        http_client,
        api_key=summ.openai_api_key,
        api_base=summ.openai_api_base,
        model=summ.openai_model,
    )

    app.state.config = config
    app.state.key_store = key_store
    app.state.http_client = http_client
    app.state.rate_limiter = rate_limiter
    app.state.security_logger = security_logger
    app.state.key_gate = KeyGate(rate_limiter, security_logger, key_store)
    app.state.orchestrator = SummarizationOrchestrator(github, chain)

    return RateLimitSweeper(
        rate_limiter, interval=rl.sweep_interval_s, max_age=rl.record_max_age_s
    )


# ─── Lifespan ─────────────────────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup and shutdown sequence."""
    logger.info("Marunose starting up...")

    config: Config = load_config()
    key_store = await create_key_store(config)
    http_client = create_http_client(config.summarizer.http_timeout_s)

    sweeper = attach_components(app, config, key_store, http_client)
    sweeper.start()
    app.state.sweeper = sweeper

    logger.info(
        "Gateway components ready",
        key_store=type(key_store).__name__,
        openai_enabled=bool(config.summarizer.openai_api_key),
        github_token=bool(config.summarizer.github_token),
    )

    app.state.ready = True
    logger.info("Marunose ready", host=config.server.host, port=config.server.port)

    yield

    logger.info("Marunose shutting down...")
    app.state.ready = False

    await sweeper.stop()

    try:
        await http_client.aclose()
        logger.info("HTTP client closed")
    except Exception as exc:
        logger.warning("HTTP client close error (non-fatal)", error=str(exc))

    await key_store.close()

    logger.info("Marunose shutdown complete")


# ─── App Factory ──────────────────────────────────────────────────────────────


def create_app() -> FastAPI:
    """Create and configure the Marunose FastAPI application.

    Tests call this directly and populate app.state via attach_components()
    instead of running the lifespan.
    """
    _debug = os.getenv("DEBUG", "false").lower() == "true"

    application = FastAPI(
        title="Marunose Gateway",
        description="API-key validation, rate limiting and quota gateway for GitHub summaries",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if _debug else None,
        redoc_url="/redoc" if _debug else None,
        openapi_url="/openapi.json" if _debug else None,
    )

    application.state.ready = False

    application.state.limiter = limiter
    application.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Last added runs first: localhost check before the slowapi counter.
    application.add_middleware(SlowAPIMiddleware)
    application.add_middleware(DashboardLocalhostMiddleware)

    @application.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        request_id = request.headers.get("x-request-id") or generate_ulid()
        set_request_id(request_id)
        try:
            response = await call_next(request)
        finally:
            clear_request_id()
        response.headers["x-request-id"] = request_id
        return response

    application.include_router(root_router)
    application.include_router(health_router)
    application.include_router(gateway_router)
    application.include_router(dashboard_router, prefix="/dashboard/api")

    @application.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        logger.warning(
            "HTTP exception",
            status_code=exc.status_code,
            detail=exc.detail,
            path=str(request.url.path),
        )
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    @application.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=str(request.url.path),
        )
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    return application


app = create_app()
