"""SecurityEvent dataclass and event type alias.

Every gateway decision point produces one SecurityEvent. ``details`` is a
free-form mapping; it may hold a key prefix (first 10 characters) but MUST
NEVER hold a full API key.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal, Optional

SecurityEventType = Literal[
    "API_KEY_VALIDATION",
    "RATE_LIMIT_EXCEEDED",
    "INVALID_FORMAT",
    "BRUTE_FORCE_DETECTED",
]

SECURITY_EVENT_TYPES: frozenset[str] = frozenset({
    "API_KEY_VALIDATION",
    "RATE_LIMIT_EXCEEDED",
    "INVALID_FORMAT",
    "BRUTE_FORCE_DETECTED",
})


@dataclass(frozen=True)
class SecurityEvent:
    """One entry of the security log."""

    type: SecurityEventType
    ip: str
    timestamp: datetime
    """UTC time the event was logged."""
    event_id: str
    """ULID assigned at log time."""
    user_agent: Optional[str] = None
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def is_failure(self) -> bool:
        """True for every event except a successful key validation."""
        if self.type != "API_KEY_VALIDATION":
            return True
        return not bool(self.details.get("success", False))

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "type": self.type,
            "ip": self.ip,
            "user_agent": self.user_agent,
            "timestamp": self.timestamp.isoformat(),
            "details": dict(self.details),
        }
