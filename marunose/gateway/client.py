"""Caller identification from request headers.

The gateway runs behind a proxy, so the socket peer is not the client.
The IP is taken from the first header present, in order:

    x-forwarded-for  (leftmost entry)
    x-real-ip
    cf-connecting-ip

and falls back to ``"unknown"``. Every request without any of these headers
shares the ``"unknown"`` rate-limit bucket.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

UNKNOWN_CLIENT = "unknown"

_IP_HEADERS: tuple[str, ...] = ("x-forwarded-for", "x-real-ip", "cf-connecting-ip")


@dataclass(frozen=True)
class ClientInfo:
    ip: str
    user_agent: str


def client_info_from_headers(headers: Mapping[str, str]) -> ClientInfo:
    ip = UNKNOWN_CLIENT
    for name in _IP_HEADERS:
        value = headers.get(name)
        if value:
            ip = value.split(",")[0].strip() or UNKNOWN_CLIENT
            break
    return ClientInfo(ip=ip, user_agent=headers.get("user-agent") or UNKNOWN_CLIENT)
