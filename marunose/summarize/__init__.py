"""GitHub summarization pipeline: URL routing, GitHub client, README summary chain."""

from marunose.summarize.chain import SummaryChain, SummaryResult, analyze_readme
from marunose.summarize.github import (
    GITHUB_URL_PATTERN,
    GitHubAPIError,
    GitHubClient,
    is_valid_github_url,
    parse_github_url,
)
from marunose.summarize.orchestrator import SummarizationOrchestrator

__all__ = [
    "GITHUB_URL_PATTERN",
    "GitHubAPIError",
    "GitHubClient",
    "SummarizationOrchestrator",
    "SummaryChain",
    "SummaryResult",
    "analyze_readme",
    "is_valid_github_url",
    "parse_github_url",
]
