"""Unit tests for SummarizationOrchestrator.

GitHub is served by the github_transport fixture (httpx.MockTransport over
the github_routes map); the chain runs without an OpenAI key so summaries
come from the local README analysis.
"""

from __future__ import annotations

import pytest

from marunose.summarize import GitHubClient, SummarizationOrchestrator, SummaryChain
from marunose.summarize.orchestrator import README_NOT_FOUND_FACT, README_NOT_FOUND_SUMMARY

PROFILE_URL = "https://github.com/octocat"
REPO_URL = "https://github.com/octocat/Hello-World"


@pytest.fixture
def orchestrator(http_client) -> SummarizationOrchestrator:
    return SummarizationOrchestrator(GitHubClient(http_client), SummaryChain(http_client))


class TestUserProfile:
    async def test_profile_summary(self, orchestrator: SummarizationOrchestrator) -> None:
        data = await orchestrator.summarize(PROFILE_URL)

        assert data["type"] == "user_profile"
        assert data["username"] == "octocat"
        assert data["name"] == "The Octocat"
        assert data["summary"] == (
            "The Octocat is a GitHub user with 8 public repositories, "
            "100 followers and following 9 users."
        )
        assert data["stats"]["public_repos"] == 8
        assert data["stats"]["location"] == "San Francisco"

    async def test_recent_repositories_capped_at_five(self, orchestrator) -> None:
        data = await orchestrator.summarize(PROFILE_URL + "/")

        recent = data["recent_repositories"]
        assert [repo["name"] for repo in recent] == [f"repo-{i}" for i in range(5)]
        assert recent[3] == {
            "name": "repo-3",
            "description": "Repository 3",
            "language": "Python",
            "stars": 3,
            "forks": 0,
            "updated_at": "2024-01-01T00:00:00Z",
        }

    async def test_unknown_user_is_degraded(self, orchestrator) -> None:
        data = await orchestrator.summarize("https://github.com/ghost")

        assert data["type"] == "user_profile"
        assert data["summary"] == "Failed to fetch information for GitHub user ghost."
        assert data["stats"]["followers"] == 0
        assert data["recent_repositories"] == []

    async def test_repo_list_failure_keeps_profile(self, orchestrator, github_routes) -> None:
        github_routes["/users/octocat/repos"] = (500, {"message": "boom"})

        data = await orchestrator.summarize(PROFILE_URL)

        assert data["name"] == "The Octocat"
        assert data["recent_repositories"] == []


class TestRepository:
    async def test_repository_summary(self, orchestrator) -> None:
        data = await orchestrator.summarize(REPO_URL)

        assert data["type"] == "repository"
        assert data["repository"] == "octocat/Hello-World"
        assert data["url"] == "https://github.com/octocat/Hello-World"
        assert data["summary"] == (
            "Hello World - A tiny example repository used to demonstrate the GitHub API."
        )
        assert data["cool_facts"] == [
            "Includes sections: Installation, Usage",
            "Uses technologies: python, docker",
            "Contains 1 code examples",
        ]
        assert data["insights"]["languages"] == ["Python", "Shell"]
        assert data["insights"]["stars"] == 2500
        assert data["insights"]["issues"] == 10
        assert data["owner"]["login"] == "octocat"
        assert "readme_content" not in data

    async def test_full_readme_on_request(self, orchestrator) -> None:
        data = await orchestrator.summarize(REPO_URL, include_full_readme=True)
        assert data["readme_content"].startswith("# Hello World")

    async def test_missing_readme_placeholder(self, orchestrator, github_routes) -> None:
        del github_routes["/repos/octocat/Hello-World/readme"]

        data = await orchestrator.summarize(REPO_URL, include_full_readme=True)

        assert data["summary"] == README_NOT_FOUND_SUMMARY
        assert data["cool_facts"] == [README_NOT_FOUND_FACT]
        assert data["readme_content"] == ""

    async def test_languages_failure_is_empty(self, orchestrator, github_routes) -> None:
        github_routes["/repos/octocat/Hello-World/languages"] = (503, {})

        data = await orchestrator.summarize(REPO_URL)

        assert data["insights"]["languages"] == []
        assert data["insights"]["primary_language"] == "Python"

    async def test_metadata_failure_is_degraded(self, orchestrator) -> None:
        data = await orchestrator.summarize("https://github.com/octocat/missing")

        assert data == {
            "type": "repository",
            "repository": "octocat/missing",
            "summary": "Failed to fetch information for repository octocat/missing.",
            "error": "Failed to fetch repository data",
        }


class TestInvalidUrl:
    async def test_raises_value_error(self, orchestrator) -> None:
        with pytest.raises(ValueError):
            await orchestrator.summarize("https://example.com/octocat")
