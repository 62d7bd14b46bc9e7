"""
CALLER CONTEXT
==============
What a guard needs to know about the caller.
"""

# FLOW:
# - Call sites build a CallerContext (or derive one from a Starlette request)
#   and pass it to the rate limiter's key derivation.
# WHY:
# - Keeps the guards independent of the transport layer.
# HOW:
# - The socket peer is the caller. Forwarding headers are only read when
#   the peer is a configured trusted proxy (TRUSTED_PROXIES).

from __future__ import annotations

import ipaddress
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

from Guard.guard_config import GUARD_SETTINGS

UNKNOWN_IP = "unknown"


def _is_trusted(host: str, trusted: Iterable[str]) -> bool:
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        return host in trusted
    for entry in trusted:
        try:
            if address in ipaddress.ip_network(entry, strict=False):
                return True
        except ValueError:
            if host == entry:
                return True
    return False


def client_ip(request, trusted_proxies: Iterable[str] | None = None) -> str:
    trusted = list(GUARD_SETTINGS["TRUSTED_PROXIES"] if trusted_proxies is None else trusted_proxies)
    peer = request.client.host if request.client and request.client.host else UNKNOWN_IP
    if peer == UNKNOWN_IP or not _is_trusted(peer, trusted):
        return peer

    # walk right to left; the first hop not added by our own proxies is the caller
    hops = [hop.strip() for hop in (request.headers.get("x-forwarded-for") or "").split(",") if hop.strip()]
    for hop in reversed(hops):
        if not _is_trusted(hop, trusted):
            return hop
    if hops:
        return hops[0]
    xrip = (request.headers.get("x-real-ip") or "").strip()
    return xrip or peer


@dataclass(frozen=True)
class CallerContext:
    ip: str = UNKNOWN_IP
    user_id: Optional[str] = None
    args: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_request(cls, request, args: Mapping[str, Any] | None = None) -> "CallerContext":
        session = request.scope.get("session") or {}
        user_id = session.get("user_id")
        return cls(
            ip=client_ip(request),
            user_id=str(user_id) if user_id is not None else None,
            args=dict(args or {}),
        )

    def with_args(self, **args) -> "CallerContext":
        return CallerContext(ip=self.ip, user_id=self.user_id, args=args)
