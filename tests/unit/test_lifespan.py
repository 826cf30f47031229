"""Unit tests for the application factory and lifespan lifecycle.

  - create_app() is importable, independent per call, ready=False
  - lifespan wires every component onto app.state and sets ready
  - shutdown clears ready, stops the sweeper and closes the key store
  - request id header is generated or echoed
"""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from marunose.config import Config
from marunose.gateway import KeyGate
from marunose.keys.sqlite_store import LocalSQLiteKeyStore
from marunose.main import create_app, lifespan
from marunose.ratelimit import SlidingWindowRateLimiter
from marunose.security import SecurityLogger
from marunose.summarize import SummarizationOrchestrator


def _patch_load_config(monkeypatch: pytest.MonkeyPatch, tmp_path) -> Config:
    config = Config.defaults()
    config.key_store.path = str(tmp_path / "lifespan.db")
    monkeypatch.setattr("marunose.main.load_config", lambda: config)
    return config


class TestCreateAppFactory:
    def test_returns_fastapi_instance(self) -> None:
        assert isinstance(create_app(), FastAPI)

    def test_independent_instances(self) -> None:
        assert create_app() is not create_app()

    def test_not_ready_before_lifespan(self) -> None:
        assert create_app().state.ready is False

    def test_docs_disabled_without_debug(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("DEBUG", raising=False)
        assert create_app().docs_url is None

    def test_docs_enabled_with_debug(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DEBUG", "true")
        assert create_app().docs_url == "/docs"


class TestLifespan:
    async def test_startup_wires_state(self, monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
        config = _patch_load_config(monkeypatch, tmp_path)
        application = create_app()

        async with lifespan(application):
            state = application.state
            assert state.ready is True
            assert state.config is config
            assert isinstance(state.key_store, LocalSQLiteKeyStore)
            assert isinstance(state.rate_limiter, SlidingWindowRateLimiter)
            assert isinstance(state.security_logger, SecurityLogger)
            assert isinstance(state.key_gate, KeyGate)
            assert isinstance(state.orchestrator, SummarizationOrchestrator)
            assert state.sweeper.running is True

        assert application.state.ready is False
        assert application.state.sweeper.running is False
        assert application.state.http_client.is_closed

    async def test_health_after_startup(self, monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
        _patch_load_config(monkeypatch, tmp_path)
        application = create_app()

        async with lifespan(application):
            transport = ASGITransport(app=application)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["key_store_backend"] == "LocalSQLiteKeyStore"


class TestRequestId:
    async def test_generated_when_absent(self, make_app) -> None:
        transport = ASGITransport(app=make_app())
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/")
        assert len(response.headers["x-request-id"]) == 26

    async def test_echoed_when_present(self, make_app) -> None:
        transport = ASGITransport(app=make_app())
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/", headers={"x-request-id": "req-123"})
        assert response.headers["x-request-id"] == "req-123"


class TestRoot:
    async def test_discovery_document(self, make_app) -> None:
        transport = ASGITransport(app=make_app())
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/")
        assert response.status_code == 200
        assert response.json()["summarize"] == "/github-summarize"
