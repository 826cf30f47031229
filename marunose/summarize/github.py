"""GitHub URL parsing and the GitHub REST API client.

Accepted URLs are a user profile or a repository:

    https://github.com/octocat
    https://github.com/octocat/Hello-World/

GitHubClient wraps the shared httpx.AsyncClient created in the lifespan.
Every non-2xx response or transport failure raises GitHubAPIError; deciding
whether that failure aborts or degrades a summary is the orchestrator's job.
"""

from __future__ import annotations

import base64
import re
from typing import Any, Optional

import httpx

from marunose.constants import (
    GITHUB_ACCEPT,
    GITHUB_API_BASE,
    GITHUB_USER_AGENT,
    USER_REPOS_FETCH_LIMIT,
)
from marunose.errors import UpstreamError
from marunose.utils.logger import get_logger

logger = get_logger(__name__)

GITHUB_URL_PATTERN = re.compile(r"https://github\.com/[\w\-.]+(?:/[\w\-.]+)?/?", re.ASCII)

_OWNER_REPO_RE = re.compile(r"^https://github\.com/([^/]+)(?:/([^/]+))?")


class GitHubAPIError(UpstreamError):
    """A GitHub API call failed (transport error or non-2xx status)."""

    def __init__(self, path: str, status_code: Optional[int] = None) -> None:
        super().__init__()
        self.path = path
        self.upstream_status = status_code

    def __str__(self) -> str:
        return f"GitHub API request failed: {self.path} (status={self.upstream_status})"


def is_valid_github_url(url: str) -> bool:
    return GITHUB_URL_PATTERN.fullmatch(url) is not None


def parse_github_url(url: str) -> tuple[str, Optional[str]]:
    """Split a GitHub URL into ``(owner, repo)``; ``repo`` is None for profiles.

    Raises:
        ValueError: If the URL does not match GITHUB_URL_PATTERN.
    """
    if not is_valid_github_url(url):
        raise ValueError(f"Invalid GitHub URL format: {url!r}")
    match = _OWNER_REPO_RE.match(url)
    assert match is not None  # guaranteed by GITHUB_URL_PATTERN
    owner, repo = match.group(1), match.group(2)
    return owner, repo or None


class GitHubClient:
    """Thin async client for the handful of GitHub endpoints the summarizer reads."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_base: str = GITHUB_API_BASE,
        token: Optional[str] = None,
    ) -> None:
        self._http = http_client
        self._api_base = api_base.rstrip("/")
        self._headers = {
            "Accept": GITHUB_ACCEPT,
            "User-Agent": GITHUB_USER_AGENT,
        }
        if token:
            self._headers["Authorization"] = f"Bearer {token}"

    async def get_user(self, username: str) -> dict[str, Any]:
        return await self._get_json(f"/users/{username}")

    async def get_user_repos(
        self, username: str, per_page: int = USER_REPOS_FETCH_LIMIT
    ) -> list[dict[str, Any]]:
        """Most recently updated public repositories of a user."""
        data = await self._get_json(
            f"/users/{username}/repos",
            params={"sort": "updated", "per_page": per_page},
        )
        return data if isinstance(data, list) else []

    async def get_repo(self, owner: str, repo: str) -> dict[str, Any]:
        return await self._get_json(f"/repos/{owner}/{repo}")

    async def get_languages(self, owner: str, repo: str) -> dict[str, int]:
        data = await self._get_json(f"/repos/{owner}/{repo}/languages")
        return data if isinstance(data, dict) else {}

    async def get_readme(self, owner: str, repo: str) -> str:
        """README text, base64-decoded from the contents API.

        Raises:
            GitHubAPIError: Request failed or the payload carried no content.
        """
        path = f"/repos/{owner}/{repo}/readme"
        data = await self._get_json(path)
        content = data.get("content") if isinstance(data, dict) else None
        if not isinstance(content, str):
            raise GitHubAPIError(path)
        try:
            return base64.b64decode(content).decode("utf-8", errors="replace")
        except ValueError as exc:
            raise GitHubAPIError(path) from exc

    async def _get_json(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        url = f"{self._api_base}{path}"
        try:
            response = await self._http.get(url, headers=self._headers, params=params)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning("GitHub request failed", path=path, error=str(exc))
            raise GitHubAPIError(path) from exc

        if response.status_code >= 300:
            logger.warning("GitHub returned error status", path=path, status_code=response.status_code)
            raise GitHubAPIError(path, response.status_code)

        try:
            return response.json()
        except ValueError as exc:
            raise GitHubAPIError(path, response.status_code) from exc
