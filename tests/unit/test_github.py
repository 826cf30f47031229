"""Unit tests for GitHub URL parsing and GitHubClient (httpx.MockTransport)."""

from __future__ import annotations

import base64

import httpx
import pytest

from marunose.summarize import GitHubAPIError, GitHubClient, is_valid_github_url, parse_github_url


class TestUrlPattern:
    @pytest.mark.parametrize(
        "url",
        [
            "https://github.com/octocat",
            "https://github.com/octocat/",
            "https://github.com/octocat/Hello-World",
            "https://github.com/octocat/Hello-World/",
            "https://github.com/some.org/repo_name.js",
        ],
    )
    def test_valid(self, url: str) -> None:
        assert is_valid_github_url(url)

    @pytest.mark.parametrize(
        "url",
        [
            "http://github.com/octocat",
            "https://github.com/",
            "https://github.com/a/b/c",
            "https://gitlab.com/a/b",
            "https://github.com/octocat/Hello World",
            "https://github.com/octocat?tab=repos",
            "https://github.com/octocat\n",
            "https://github.com/octocat/Hello-World\n",
            "https://github.com/\u00f1and\u00fa",
        ],
    )
    def test_invalid(self, url: str) -> None:
        assert not is_valid_github_url(url)


class TestParseGithubUrl:
    def test_profile(self) -> None:
        assert parse_github_url("https://github.com/octocat") == ("octocat", None)
        assert parse_github_url("https://github.com/octocat/") == ("octocat", None)

    def test_repository(self) -> None:
        assert parse_github_url("https://github.com/octocat/Hello-World/") == (
            "octocat",
            "Hello-World",
        )

    def test_invalid_raises(self) -> None:
        with pytest.raises(ValueError):
            parse_github_url("https://example.com/octocat")

    def test_trailing_newline_raises(self) -> None:
        with pytest.raises(ValueError):
            parse_github_url("https://github.com/octocat\n")


class TestGitHubClient:
    async def test_sends_github_headers_and_token(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"login": "octocat"})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = GitHubClient(http, token="ghp_test")
            assert await client.get_user("octocat") == {"login": "octocat"}

        request = seen[0]
        assert request.url.path == "/users/octocat"
        assert request.headers["accept"] == "application/vnd.github.v3+json"
        assert request.headers["user-agent"] == "GitHub-Summarizer/1.0"
        assert request.headers["authorization"] == "Bearer ghp_test"

    async def test_no_authorization_without_token(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[])

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            await GitHubClient(http).get_user_repos("octocat")

        assert "authorization" not in seen[0].headers
        assert seen[0].url.params["sort"] == "updated"
        assert seen[0].url.params["per_page"] == "10"

    async def test_readme_is_base64_decoded(self) -> None:
        encoded = base64.encodebytes("# Title\nhéllo\n".encode("utf-8")).decode("ascii")

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"content": encoded})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            text = await GitHubClient(http).get_readme("octocat", "Hello-World")

        assert text == "# Title\nhéllo\n"

    async def test_non_2xx_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={"message": "Not Found"})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            with pytest.raises(GitHubAPIError) as exc_info:
                await GitHubClient(http).get_repo("octocat", "missing")

        assert exc_info.value.upstream_status == 404

    async def test_transport_error_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("unreachable", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            with pytest.raises(GitHubAPIError):
                await GitHubClient(http).get_languages("octocat", "Hello-World")

    async def test_readme_without_content_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"name": "README.md"})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            with pytest.raises(GitHubAPIError):
                await GitHubClient(http).get_readme("octocat", "Hello-World")

    async def test_unencodable_url_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            with pytest.raises(GitHubAPIError):
                await GitHubClient(http).get_user("octocat\n")
