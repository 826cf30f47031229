"""In-memory security event log with burst-abuse detection.

Layout of a log() call:
  1. Stamp the event with the current UTC time and a ULID.
  2. Append to the log and emit a structlog ``security_event`` record.
  3. Trim: once the log holds more than SECURITY_LOG_MAX_EVENTS entries it is
     cut back to the most recent SECURITY_LOG_TRIM_TO.
  4. Burst detection: more than BURST_EVENT_THRESHOLD events from the same IP
     within BURST_WINDOW_S → append one BRUTE_FORCE_DETECTED event.

Synthetic BRUTE_FORCE_DETECTED events go through _append() directly and never
re-enter detection, so one log() call produces at most two entries.

The SecurityLogger is built once in the lifespan (app.state.security_logger)
and handed to the key gate; nothing here is module-global.
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from marunose.constants import (
    BURST_EVENT_THRESHOLD,
    BURST_WINDOW_S,
    SECURITY_LOG_MAX_EVENTS,
    SECURITY_LOG_TRIM_TO,
)
from marunose.security.models import SECURITY_EVENT_TYPES, SecurityEvent, SecurityEventType
from marunose.utils.logger import get_logger
from marunose.utils.ulid import generate_ulid

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SecurityLogger:
    """Append-only, capped security event log.

    Args:
        clock:           Returns the current UTC datetime (injectable for tests).
        max_events:      Length above which the log is trimmed.
        trim_to:         Number of most recent events kept by a trim.
        burst_threshold: Events per IP per burst window tolerated before a
                         BRUTE_FORCE_DETECTED event is emitted.
        burst_window:    Burst detection window in seconds.
    """

    def __init__(
        self,
        clock: Callable[[], datetime] = _utcnow,
        max_events: int = SECURITY_LOG_MAX_EVENTS,
        trim_to: int = SECURITY_LOG_TRIM_TO,
        burst_threshold: int = BURST_EVENT_THRESHOLD,
        burst_window: float = BURST_WINDOW_S,
    ) -> None:
        if trim_to > max_events:
            raise ValueError("trim_to must not exceed max_events")
        self._clock = clock
        self._max_events = max_events
        self._trim_to = trim_to
        self._burst_threshold = burst_threshold
        self._burst_window = timedelta(seconds=burst_window)
        self._window_label = f"{burst_window / 60:g} minutes"
        self._events: list[SecurityEvent] = []
        self._lock = threading.Lock()

    # ── Public API ────────────────────────────────────────────────────────────

    def log(
        self,
        type: SecurityEventType,
        ip: str,
        user_agent: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> SecurityEvent:
        """Record an event and run burst detection for its IP.

        Returns:
            The stored SecurityEvent (not the synthetic burst event, if any).

        Raises:
            ValueError: If ``type`` is not a known SecurityEventType.
        """
        if type not in SECURITY_EVENT_TYPES:
            raise ValueError(f"Unknown security event type: {type!r}")

        event = self._append(type, ip, user_agent, details)
        self._detect_burst(ip)
        return event

    def get_events(self, ip: Optional[str] = None) -> list[SecurityEvent]:
        """Return all events (or those for one IP) in insertion order, as a copy."""
        with self._lock:
            if ip is None:
                return list(self._events)
            return [event for event in self._events if event.ip == ip]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    # ── Internals ─────────────────────────────────────────────────────────────

    def _append(
        self,
        type: SecurityEventType,
        ip: str,
        user_agent: Optional[str],
        details: Optional[dict[str, Any]],
    ) -> SecurityEvent:
        event = SecurityEvent(
            type=type,
            ip=ip,
            user_agent=user_agent,
            timestamp=self._clock(),
            event_id=generate_ulid(),
            details=dict(details or {}),
        )

        with self._lock:
            self._events.append(event)
            if len(self._events) > self._max_events:
                self._events = self._events[-self._trim_to:]

        log_method = logger.warning if event.is_failure else logger.info
        log_method(
            "security_event",
            security_event_type=event.type,
            event_id=event.event_id,
            ip=event.ip,
            user_agent=event.user_agent,
            event_timestamp=event.timestamp.isoformat(),
            details=event.details,
        )
        return event

    def _detect_burst(self, ip: str) -> None:
        cutoff = self._clock() - self._burst_window
        with self._lock:
            recent = sum(
                1 for event in self._events
                if event.ip == ip and event.timestamp > cutoff
            )

        if recent > self._burst_threshold:
            self._append(
                "BRUTE_FORCE_DETECTED",
                ip,
                None,
                {"event_count": recent, "time_window": self._window_label},
            )
