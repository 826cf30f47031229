"""ULID generation for the Marunose gateway.

ULIDs identify security events and HTTP requests:
  - event_id on every SecurityEvent
  - X-Request-ID response header / request_id log field

Uses the `python-ulid` library: do NOT hand-roll ULID generation.
"""

from __future__ import annotations

from ulid import ULID


def generate_ulid() -> str:
    """Generate a new ULID as a 26-character uppercase string.

    Example::

        event_id = generate_ulid()
        # "01KJ0JRVHYA7KX32VPN5ZSCTMV"
        assert len(event_id) == 26
    """
    return str(ULID())
