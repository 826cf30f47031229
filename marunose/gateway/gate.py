"""KeyGate: rate limit, format check, key lookup, quota and usage increment.

authorize() walks a request through, in order:

    1. rate limit (per client IP)       → RateLimitedError      (429)
    2. API key present / prefixed        → MalformedInputError   (400)
    3. GitHub URL present / well-formed  → MalformedInputError   (400)  [when required]
    4. active key with exact match       → UnauthorizedError     (401)
    5. usage < monthly_limit             → QuotaExceededError    (429)  [when consuming]
    6. increment usage                   → Authorization
                                           (UnauthorizedError if the key vanished)

Every rejection is written to the SecurityLogger before the exception
propagates; the route turns the exception into a response. Store failures
are not caught here: they reach the route as KeyStoreError and become 500.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NoReturn, Optional

from marunose.constants import KEY_PREFIX_LOG_CHARS
from marunose.errors import (
    MalformedInputError,
    QuotaExceededError,
    RateLimitedError,
    UnauthorizedError,
)
from marunose.gateway.client import ClientInfo
from marunose.keys.models import ApiKeyRecord, has_key_prefix
from marunose.keys.protocol import KeyNotFoundError, KeyStore, UsageLimitReachedError
from marunose.ratelimit.limiter import RateLimitResult, SlidingWindowRateLimiter
from marunose.security.logger import SecurityLogger
from marunose.summarize.github import is_valid_github_url

# Sentinel: the endpoint does not take a GitHub URL.
NO_TARGET_URL: Any = object()


@dataclass(frozen=True)
class RateLimitPolicy:
    max_requests: int
    window: float


@dataclass(frozen=True)
class UsageSnapshot:
    current: int
    limit: int

    @property
    def remaining(self) -> int:
        return self.limit - self.current

    def to_dict(self) -> dict[str, int]:
        return {"current": self.current, "limit": self.limit, "remaining": self.remaining}


@dataclass(frozen=True)
class Authorization:
    key: ApiKeyRecord
    rate_limit: RateLimitResult
    usage: Optional[UsageSnapshot] = None
    target_url: Optional[str] = None


class KeyGate:
    """Usage:
        gate = KeyGate(limiter, security_logger, key_store)
        auth = await gate.authorize(
            client, api_key,
            policy=RateLimitPolicy(10, 900),
            service="github-summarize",
            target_url=github_url,
        )
    """

    def __init__(
        self,
        limiter: SlidingWindowRateLimiter,
        security_logger: SecurityLogger,
        key_store: KeyStore,
    ) -> None:
        self._limiter = limiter
        self._security = security_logger
        self._store = key_store

    async def authorize(
        self,
        client: ClientInfo,
        api_key: Any,
        *,
        policy: RateLimitPolicy,
        service: str,
        target_url: Any = NO_TARGET_URL,
        consume: bool = True,
    ) -> Authorization:
        """Run the full gate and return the authorized key.

        Args:
            api_key:    Raw caller-supplied value (may be missing or non-str).
            target_url: Raw GitHub URL, or NO_TARGET_URL when the endpoint has none.
            consume:    Check the quota and increment usage. False only answers
                        "is this key valid".

        Raises:
            GatewayError subclass for every rejection; KeyStoreError when the
            store is unreachable.
        """
        rate = self.check_rate_limit(client, policy)
        key = self.check_key_format(client, api_key)
        url = None if target_url is NO_TARGET_URL else self.check_target_url(client, target_url)

        record = await self.lookup(client, key, service)
        if not consume:
            self._security.log(
                "API_KEY_VALIDATION",
                client.ip,
                client.user_agent,
                {"success": True, "key_id": record.id, "service": service},
            )
            return Authorization(key=record, rate_limit=rate, target_url=url)

        usage = await self.consume(client, record, service, url)
        return Authorization(key=record, rate_limit=rate, usage=usage, target_url=url)

    # ── Individual stages ─────────────────────────────────────────────────────

    def check_rate_limit(self, client: ClientInfo, policy: RateLimitPolicy) -> RateLimitResult:
        result = self._limiter.check(client.ip, policy.max_requests, policy.window)
        if not result.allowed:
            self._security.log(
                "RATE_LIMIT_EXCEEDED",
                client.ip,
                client.user_agent,
                {"reset_time": result.reset_time_ms},
            )
            raise RateLimitedError(result.reset_time)
        return result

    def check_key_format(self, client: ClientInfo, api_key: Any) -> str:
        if not api_key or not isinstance(api_key, str):
            self._reject_format(client, "missing_api_key", "API key is required")
        if not has_key_prefix(api_key):
            self._reject_format(
                client,
                "invalid_api_key_prefix",
                "Invalid API key format",
                key_prefix=api_key[:KEY_PREFIX_LOG_CHARS],
            )
        return api_key

    def check_target_url(self, client: ClientInfo, url: Any) -> str:
        if not url or not isinstance(url, str):
            self._reject_format(client, "missing_github_url", "GitHub URL is required")
        if not is_valid_github_url(url):
            self._reject_format(client, "invalid_github_url", "Invalid GitHub URL format", url=url)
        return url

    async def lookup(self, client: ClientInfo, api_key: str, service: str) -> ApiKeyRecord:
        """Active key whose secret equals the trimmed ``api_key``."""
        wanted = api_key.strip()
        keys = await self._store.get_all_keys()
        record = next((k for k in keys if k.is_active and k.key == wanted), None)
        if record is None:
            self._security.log(
                "API_KEY_VALIDATION",
                client.ip,
                client.user_agent,
                {
                    "success": False,
                    "key_prefix": api_key[:KEY_PREFIX_LOG_CHARS],
                    "service": service,
                },
            )
            raise UnauthorizedError()
        return record

    async def consume(
        self,
        client: ClientInfo,
        record: ApiKeyRecord,
        service: str,
        target_url: Optional[str] = None,
    ) -> UsageSnapshot:
        if record.quota_exhausted:
            self._reject_quota(client, record)

        try:
            new_usage = await self._store.increment_usage(record.id)
        except UsageLimitReachedError:
            # Lost a race with a concurrent request for the last unit.
            self._reject_quota(client, record)
        except KeyNotFoundError:
            # Key deleted between lookup and increment.
            self._security.log(
                "API_KEY_VALIDATION",
                client.ip,
                client.user_agent,
                {"success": False, "reason": "key_not_found", "key_id": record.id},
            )
            raise UnauthorizedError()

        current = new_usage if new_usage is not None else record.usage + 1
        details: dict[str, Any] = {
            "success": True,
            "key_id": record.id,
            "service": service,
            "usage": current,
        }
        if target_url is not None:
            details["github_url"] = target_url
        self._security.log("API_KEY_VALIDATION", client.ip, client.user_agent, details)
        return UsageSnapshot(current=current, limit=record.monthly_limit)

    # ── Helpers ───────────────────────────────────────────────────────────────

    def _reject_format(
        self, client: ClientInfo, reason: str, message: str, **extra: Any
    ) -> NoReturn:
        self._security.log(
            "INVALID_FORMAT", client.ip, client.user_agent, {"reason": reason, **extra}
        )
        raise MalformedInputError(reason, message)

    def _reject_quota(self, client: ClientInfo, record: ApiKeyRecord) -> NoReturn:
        self._security.log(
            "API_KEY_VALIDATION",
            client.ip,
            client.user_agent,
            {"success": False, "reason": "usage_limit_exceeded", "key_id": record.id},
        )
        raise QuotaExceededError()
