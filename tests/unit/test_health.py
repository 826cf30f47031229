"""Unit tests for GET /health.

  - 503 before app.state.ready (wrapped in the {"error": ...} envelope)
  - 200 with store status, backend name and in-memory counters after ready
  - degraded when the key store health check fails
"""

from __future__ import annotations

from unittest.mock import AsyncMock

from httpx import ASGITransport, AsyncClient

from marunose.main import create_app


async def _get_health(application) -> tuple[int, dict]:
    transport = ASGITransport(app=application)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/health")
    return response.status_code, response.json()


class TestBeforeReady:
    async def test_503_before_ready(self) -> None:
        status, body = await _get_health(create_app())
        assert status == 503
        assert body["error"]["status"] == "starting"


class TestAfterReady:
    async def test_ok_body(self, make_app) -> None:
        status, body = await _get_health(make_app())
        assert status == 200
        assert body == {
            "status": "ok",
            "key_store": "healthy",
            "key_store_backend": "LocalSQLiteKeyStore",
            "rate_limit_records": 0,
            "security_events": 0,
        }

    async def test_counters_reflect_traffic(self, make_app) -> None:
        application = make_app()
        application.state.rate_limiter.check("198.51.100.1", 5, 900)
        application.state.security_logger.log("INVALID_FORMAT", "198.51.100.1", "x")

        _, body = await _get_health(application)

        assert body["rate_limit_records"] == 1
        assert body["security_events"] == 1

    async def test_degraded_when_store_unreachable(self, make_app) -> None:
        store = AsyncMock()
        store.health_check.return_value = False

        status, body = await _get_health(make_app(key_store=store))

        assert status == 200
        assert body["status"] == "degraded"
        assert body["key_store"] == "unreachable"
