"""README summary chain: OpenAI structured completion with a local fallback.

SummaryChain.invoke() never raises. When an OpenAI key is configured it asks
the chat completions endpoint for a JSON object ``{summary, cool_facts}``;
any failure there (transport, non-2xx, empty content) drops to
analyze_readme(), a deterministic heuristic over the README text. The
result's ``source`` records which path produced it.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Literal, Optional

import httpx

from marunose.constants import (
    OPENAI_API_BASE,
    OPENAI_DEFAULT_MAX_TOKENS,
    OPENAI_DEFAULT_MODEL,
    OPENAI_DEFAULT_TEMPERATURE,
    README_LLM_MAX_CHARS,
    UNSTRUCTURED_SUMMARY_MAX_CHARS,
)
from marunose.utils.logger import get_logger

logger = get_logger(__name__)

SummarySource = Literal["openai", "fallback"]

_SYSTEM_PROMPT = (
    "You are an expert at analyzing GitHub repositories. Return your response as a "
    'JSON object with exactly these fields: "summary" (string) and "cool_facts" '
    "(array of strings)."
)

_USER_PROMPT = """Analyze this GitHub repository README and provide:

1. A comprehensive summary of what this repository is about, its main purpose, and key features
2. A list of cool or interesting facts about the repository (e.g., technologies used, unique features, impressive stats, etc.)

README Content:
{readme_content}

Please respond in JSON format with fields "summary" and "cool_facts".

Example response format:
{{
  "summary": "A detailed description of the repository...",
  "cool_facts": [
    "Uses cutting-edge technology X",
    "Has over 1000 stars",
    "Supports multiple platforms"
  ]
}}"""

# Headings that mark a README as covering the usual reader journey.
_IMPORTANT_SECTION_RE = re.compile(
    r"installation|usage|getting started|features|about|api|examples", re.IGNORECASE
)

_TECH_KEYWORDS: tuple[str, ...] = (
    "react", "vue", "angular", "typescript", "javascript", "python",
    "java", "go", "rust", "next.js", "node.js", "docker", "kubernetes",
)

_BADGE_RE = re.compile(r"!\[.*?\]\(https://.*?\.svg\)")
_HEADING_MARK_RE = re.compile(r"^#+\s*")

_DEFAULT_SUMMARY = "This repository contains code and documentation."


class ChainInvocationError(Exception):
    """The remote completion could not produce a usable answer."""


@dataclass(frozen=True)
class SummaryResult:
    summary: str
    cool_facts: list[str] = field(default_factory=list)
    success: bool = True
    source: SummarySource = "fallback"

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary,
            "cool_facts": list(self.cool_facts),
            "success": self.success,
            "source": self.source,
        }


# ─── Local heuristic ──────────────────────────────────────────────────────────


def _mentions(text_lower: str, keyword: str) -> bool:
    return re.search(rf"(?<![\w.]){re.escape(keyword)}(?!\w)", text_lower) is not None


def extract_cool_facts(content: str, headings: list[str]) -> list[str]:
    """Derive "cool facts" from README size, sections, tech, badges and code blocks."""
    facts: list[str] = []

    if len(content) > 1000:
        facts.append("Contains comprehensive documentation")

    sections = [
        _HEADING_MARK_RE.sub("", heading) for heading in headings
        if _IMPORTANT_SECTION_RE.search(heading)
    ]
    if sections:
        facts.append(f"Includes sections: {', '.join(sections)}")

    lower = content.lower()
    found_tech = [tech for tech in _TECH_KEYWORDS if _mentions(lower, tech)]
    if found_tech:
        facts.append(f"Uses technologies: {', '.join(found_tech[:5])}")

    badge_count = len(_BADGE_RE.findall(content))
    if badge_count:
        facts.append(f"Includes {badge_count} status badges for quality assurance")

    code_blocks = content.count("```") // 2
    if code_blocks:
        facts.append(f"Contains {code_blocks} code examples")

    if not facts:
        facts.append("Well-documented repository")
    return facts


def analyze_readme(content: str) -> SummaryResult:
    """Summarize a README without any remote call.

    Summary = first heading as title + first substantial paragraph line
    (over 20 characters, not a fence, image or link line; cut at 200).
    """
    lines = content.split("\n")
    headings = [line for line in lines if line.startswith("#")][:5]
    body_lines = [line for line in lines if line.strip() and not line.startswith("#")][:10]

    parts: list[str] = []
    if headings:
        title = _HEADING_MARK_RE.sub("", headings[0]).strip()
        if title:
            parts.append(title)

    first_paragraph = next(
        (
            line.strip() for line in body_lines
            if not line.startswith(("```", "![", "["))
            and len(line) > 20
        ),
        None,
    )
    if first_paragraph:
        excerpt = first_paragraph[:200]
        if len(first_paragraph) > 200:
            excerpt += "..."
        parts.append(excerpt)

    return SummaryResult(
        summary=" - ".join(parts) or _DEFAULT_SUMMARY,
        cool_facts=extract_cool_facts(content, headings),
        success=True,
        source="fallback",
    )


# ─── Chain ────────────────────────────────────────────────────────────────────


class SummaryChain:
    """README → SummaryResult, preferring OpenAI when a key is configured.

    Usage:
        chain = SummaryChain(http_client, api_key=config.summarizer.openai_api_key)
        result = await chain.invoke(readme_text)
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_key: Optional[str] = None,
        api_base: str = OPENAI_API_BASE,
        model: str = OPENAI_DEFAULT_MODEL,
        temperature: float = OPENAI_DEFAULT_TEMPERATURE,
        max_tokens: int = OPENAI_DEFAULT_MAX_TOKENS,
    ) -> None:
        self._http = http_client
        self._api_key = api_key
        self._api_base = api_base.rstrip("/")
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens

    @property
    def remote_enabled(self) -> bool:
        return bool(self._api_key)

    async def invoke(self, readme_content: str) -> SummaryResult:
        if self.remote_enabled:
            try:
                return await self._invoke_openai(readme_content)
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "OpenAI summary failed, using local analysis",
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
        return self._invoke_fallback(readme_content)

    def _invoke_fallback(self, readme_content: str) -> SummaryResult:
        try:
            return analyze_readme(readme_content)
        except Exception as exc:  # noqa: BLE001
            logger.error("Local README analysis failed", error=str(exc))
            return SummaryResult(
                summary="Unable to analyze repository content",
                cool_facts=["Content analysis failed"],
                success=False,
                source="fallback",
            )

    async def _invoke_openai(self, readme_content: str) -> SummaryResult:
        truncated = readme_content
        if len(truncated) > README_LLM_MAX_CHARS:
            truncated = truncated[:README_LLM_MAX_CHARS] + "..."

        response = await self._http.post(
            f"{self._api_base}/v1/chat/completions",
            headers={"Authorization": f"Bearer {self._api_key}"},
            json={
                "model": self._model,
                "messages": [
                    {"role": "system", "content": _SYSTEM_PROMPT},
                    {"role": "user", "content": _USER_PROMPT.format(readme_content=truncated)},
                ],
                "temperature": self._temperature,
                "max_tokens": self._max_tokens,
            },
        )
        if response.status_code >= 300:
            raise ChainInvocationError(f"OpenAI API error: {response.status_code}")

        try:
            content_text = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise ChainInvocationError("Malformed OpenAI response") from exc
        if not isinstance(content_text, str) or not content_text:
            raise ChainInvocationError("No content received from OpenAI")

        try:
            parsed = json.loads(content_text)
        except ValueError:
            parsed = None

        if not isinstance(parsed, dict):
            summary = content_text[:UNSTRUCTURED_SUMMARY_MAX_CHARS]
            if len(content_text) > UNSTRUCTURED_SUMMARY_MAX_CHARS:
                summary += "..."
            return SummaryResult(
                summary=summary,
                cool_facts=["AI analysis completed with unstructured output"],
                source="openai",
            )

        facts = parsed.get("cool_facts")
        return SummaryResult(
            summary=str(parsed.get("summary") or "Summary not available"),
            cool_facts=[str(fact) for fact in facts] if isinstance(facts, list) else ["No cool facts available"],
            source="openai",
        )
