"""Programmatic uvicorn entry point for Marunose.

Reads host and port from the loaded config (127.0.0.1:8000 by default) and
starts uvicorn with bounded concurrency.

Usage:
    python -m marunose.run     # reads .marunose/config.yaml
    marunose                   # via pyproject.toml [project.scripts]
"""

from __future__ import annotations

import uvicorn

from marunose.config import load_config

# New connections receive HTTP 503 above this. Matches HTTP_MAX_CONNECTIONS
# for the outbound pool.
UVICORN_LIMIT_CONCURRENCY: int = 50

UVICORN_BACKLOG: int = 50

UVICORN_TIMEOUT_KEEP_ALIVE: int = 5


def main() -> None:
    """Start the gateway.

    Raises:
        SystemExit: Propagated from load_config() on config errors.
    """
    config = load_config()

    uvicorn.run(
        "marunose.main:app",
        host=config.server.host,
        port=config.server.port,
        limit_concurrency=UVICORN_LIMIT_CONCURRENCY,
        backlog=UVICORN_BACKLOG,
        timeout_keep_alive=UVICORN_TIMEOUT_KEEP_ALIVE,
    )


if __name__ == "__main__":
    main()
