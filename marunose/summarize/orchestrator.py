"""SummarizationOrchestrator: routes a GitHub URL to a profile or repository summary.

Failure policy:
  - Profile: user fetch failure → degraded profile with zeroed stats;
    repository list failure → empty ``recent_repositories``.
  - Repository: metadata failure → degraded ``{type, repository, summary, error}``;
    languages failure → no languages; README failure → placeholder summary
    and a single cool fact.

Nothing here raises for upstream failures. The only exception that escapes
summarize() is ValueError for a URL that does not match GITHUB_URL_PATTERN,
which the gateway has already rejected before getting here.
"""

from __future__ import annotations

from typing import Any, Optional

from marunose.constants import USER_REPOS_FETCH_LIMIT, USER_REPOS_RETURN_LIMIT
from marunose.summarize.chain import SummaryChain
from marunose.summarize.github import GitHubAPIError, GitHubClient, parse_github_url
from marunose.utils.logger import get_logger

logger = get_logger(__name__)

README_NOT_FOUND_SUMMARY = "README file not found."
README_NOT_FOUND_FACT = "Could not analyze the README file."


def _user_stats(user: dict[str, Any]) -> dict[str, Any]:
    return {
        "public_repos": user.get("public_repos", 0),
        "followers": user.get("followers", 0),
        "following": user.get("following", 0),
        "location": user.get("location"),
        "company": user.get("company"),
        "blog": user.get("blog"),
        "created_at": user.get("created_at"),
    }


def _repo_brief(repo: dict[str, Any]) -> dict[str, Any]:
    return {
        "name": repo.get("name"),
        "description": repo.get("description"),
        "language": repo.get("language"),
        "stars": repo.get("stargazers_count", 0),
        "forks": repo.get("forks_count", 0),
        "updated_at": repo.get("updated_at"),
    }


class SummarizationOrchestrator:
    """Usage:
        orchestrator = SummarizationOrchestrator(github_client, summary_chain)
        data = await orchestrator.summarize("https://github.com/octocat/Hello-World")
    """

    def __init__(self, github: GitHubClient, chain: SummaryChain) -> None:
        self._github = github
        self._chain = chain

    async def summarize(self, url: str, include_full_readme: bool = False) -> dict[str, Any]:
        owner, repo = parse_github_url(url)
        if repo is None:
            return await self.analyze_user(owner)
        return await self.summarize_repository(owner, repo, include_full_readme)

    # ── User profile ──────────────────────────────────────────────────────────

    async def analyze_user(self, username: str) -> dict[str, Any]:
        try:
            user = await self._github.get_user(username)
        except GitHubAPIError as exc:
            logger.warning("User profile fetch failed", username=username, error=str(exc))
            return {
                "type": "user_profile",
                "username": username,
                "summary": f"Failed to fetch information for GitHub user {username}.",
                "stats": {
                    "public_repos": 0,
                    "followers": 0,
                    "following": 0,
                    "location": None,
                    "company": None,
                    "blog": None,
                    "created_at": None,
                },
                "recent_repositories": [],
            }

        try:
            repos = await self._github.get_user_repos(username, per_page=USER_REPOS_FETCH_LIMIT)
        except GitHubAPIError as exc:
            logger.warning("User repository list fetch failed", username=username, error=str(exc))
            repos = []

        stats = _user_stats(user)
        display_name = user.get("name") or user.get("login") or username
        return {
            "type": "user_profile",
            "username": user.get("login", username),
            "name": user.get("name"),
            "bio": user.get("bio"),
            "summary": (
                f"{display_name} is a GitHub user with {stats['public_repos']} public "
                f"repositories, {stats['followers']} followers and following "
                f"{stats['following']} users."
            ),
            "stats": stats,
            "recent_repositories": [
                _repo_brief(item) for item in repos[:USER_REPOS_RETURN_LIMIT]
            ],
        }

    # ── Repository ────────────────────────────────────────────────────────────

    async def summarize_repository(
        self, owner: str, repo: str, include_full_readme: bool = False
    ) -> dict[str, Any]:
        full_name = f"{owner}/{repo}"
        try:
            repo_data = await self._github.get_repo(owner, repo)
        except GitHubAPIError as exc:
            logger.warning("Repository fetch failed", repository=full_name, error=str(exc))
            return {
                "type": "repository",
                "repository": full_name,
                "summary": f"Failed to fetch information for repository {full_name}.",
                "error": "Failed to fetch repository data",
            }

        try:
            languages = await self._github.get_languages(owner, repo)
        except GitHubAPIError as exc:
            logger.warning("Languages fetch failed", repository=full_name, error=str(exc))
            languages = {}

        readme_content = ""
        readme_summary: Optional[str] = None
        cool_facts: list[str] = []
        try:
            readme_content = await self._github.get_readme(owner, repo)
        except GitHubAPIError as exc:
            logger.warning("README fetch failed", repository=full_name, error=str(exc))
            readme_summary = README_NOT_FOUND_SUMMARY
            cool_facts = [README_NOT_FOUND_FACT]
        else:
            result = await self._chain.invoke(readme_content)
            readme_summary = result.summary
            cool_facts = list(result.cool_facts)

        owner_data = repo_data.get("owner") or {}
        data: dict[str, Any] = {
            "type": "repository",
            "repository": full_name,
            "url": f"https://github.com/{full_name}",
            "name": repo_data.get("name"),
            "description": repo_data.get("description"),
            "summary": readme_summary or repo_data.get("description") or f"{full_name} repository",
            "cool_facts": cool_facts,
            "insights": {
                "primary_language": repo_data.get("language"),
                "languages": list(languages),
                "topics": repo_data.get("topics") or [],
                "last_updated": repo_data.get("updated_at"),
                "created_at": repo_data.get("created_at"),
                "stars": repo_data.get("stargazers_count", 0),
                "forks": repo_data.get("forks_count", 0),
                "issues": repo_data.get("open_issues_count", 0),
                "size": repo_data.get("size"),
                "default_branch": repo_data.get("default_branch"),
                "is_private": repo_data.get("private", False),
                "has_wiki": repo_data.get("has_wiki", False),
                "has_pages": repo_data.get("has_pages", False),
            },
            "owner": {
                "login": owner_data.get("login"),
                "type": owner_data.get("type"),
                "avatar_url": owner_data.get("avatar_url"),
            },
        }
        if include_full_readme:
            data["readme_content"] = readme_content
        return data
