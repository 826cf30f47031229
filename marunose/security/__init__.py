"""Security event logging for the gateway.

Public API:
  - SecurityLogger: capped in-memory log + burst detection
  - SecurityEvent: one log entry
  - SecurityEventType: Literal of the four event types
"""

from marunose.security.logger import SecurityLogger
from marunose.security.models import SECURITY_EVENT_TYPES, SecurityEvent, SecurityEventType

__all__ = [
    "SECURITY_EVENT_TYPES",
    "SecurityEvent",
    "SecurityEventType",
    "SecurityLogger",
]
