"""Root test configuration for Marunose.

Disables the dashboard localhost check (httpx.ASGITransport reports the
client as 127.0.0.1 but TestClient reports 'testclient'), keeps the key
store selection on local SQLite, and resets the shared slowapi storage so
dashboard tests do not bleed 429s into each other.

Shared fixtures:
  sqlite_store  : initialized LocalSQLiteKeyStore in tmp_path
  github_routes : mutable path → response map served by github_transport
  make_app      : create_app() with app.state wired via attach_components()
"""

from __future__ import annotations

import base64
from typing import Any, AsyncIterator, Callable, Optional

import httpx
import pytest

from marunose.config import Config
from marunose.keys.sqlite_store import LocalSQLiteKeyStore

README_TEXT = """# Hello World

A tiny example repository used to demonstrate the GitHub API.

## Installation

```bash
pip install hello-world
```

## Usage

Built with Python and Docker.
"""


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Localhost check off, no Supabase, no OpenAI, no config file from env."""
    monkeypatch.setenv("MARUNOSE_DASHBOARD_LOCALHOST_ONLY", "false")
    for name in (
        "SUPABASE_URL",
        "SUPABASE_KEY",
        "MARUNOSE_KEYS_DB_PATH",
        "MARUNOSE_CONFIG",
        "MARUNOSE_PORT",
        "OPENAI_API_KEY",
        "GITHUB_TOKEN",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def reset_dashboard_limiter() -> None:
    """Reset the slowapi in-memory storage between tests."""
    from marunose.dashboard.limiter import limiter

    limiter.reset()


@pytest.fixture
async def sqlite_store(tmp_path) -> AsyncIterator[LocalSQLiteKeyStore]:
    store = LocalSQLiteKeyStore(db_path=str(tmp_path / "keys.db"))
    await store.initialize()
    yield store
    await store.close()


# ─── GitHub mock ──────────────────────────────────────────────────────────────


def _readme_payload(text: str) -> dict[str, Any]:
    return {"content": base64.b64encode(text.encode("utf-8")).decode("ascii"), "encoding": "base64"}


@pytest.fixture
def github_routes() -> dict[str, tuple[int, Any]]:
    """Path → (status, json body). Tests mutate this to simulate failures."""
    return {
        "/users/octocat": (200, {
            "login": "octocat",
            "name": "The Octocat",
            "bio": "GitHub mascot",
            "public_repos": 8,
            "followers": 100,
            "following": 9,
            "location": "San Francisco",
            "company": "@github",
            "blog": "https://github.blog",
            "created_at": "2011-01-25T18:44:36Z",
        }),
        "/users/octocat/repos": (200, [
            {
                "name": f"repo-{i}",
                "description": f"Repository {i}",
                "language": "Python",
                "stargazers_count": i,
                "forks_count": 0,
                "updated_at": "2024-01-01T00:00:00Z",
            }
            for i in range(10)
        ]),
        "/repos/octocat/Hello-World": (200, {
            "name": "Hello-World",
            "description": "My first repository on GitHub!",
            "language": "Python",
            "topics": ["demo"],
            "updated_at": "2024-01-01T00:00:00Z",
            "created_at": "2011-01-26T19:01:12Z",
            "stargazers_count": 2500,
            "forks_count": 2000,
            "open_issues_count": 10,
            "size": 1,
            "default_branch": "master",
            "private": False,
            "has_wiki": True,
            "has_pages": False,
            "owner": {"login": "octocat", "type": "User", "avatar_url": "https://example.test/a.png"},
        }),
        "/repos/octocat/Hello-World/languages": (200, {"Python": 1200, "Shell": 30}),
        "/repos/octocat/Hello-World/readme": (200, _readme_payload(README_TEXT)),
    }


@pytest.fixture
def github_transport(github_routes) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        status, body = github_routes.get(request.url.path, (404, {"message": "Not Found"}))
        return httpx.Response(status, json=body)

    return httpx.MockTransport(handler)


@pytest.fixture
async def http_client(github_transport) -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(transport=github_transport) as client:
        yield client


# ─── App factory ──────────────────────────────────────────────────────────────


@pytest.fixture
def make_app(sqlite_store, http_client) -> Callable[..., Any]:
    """Build an app with state wired but the lifespan NOT run.

    Keyword args override the config, key store or HTTP client.
    """
    from marunose.main import attach_components, create_app

    def _make(
        config: Optional[Config] = None,
        key_store: Any = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        application = create_app()
        attach_components(
            application,
            config or Config.defaults(),
            key_store if key_store is not None else sqlite_store,
            client or http_client,
        )
        application.state.ready = True
        return application

    return _make
