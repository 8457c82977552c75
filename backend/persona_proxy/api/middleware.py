"""Per-IP and per-session rate limiting for chat endpoints.

Two in-memory fixed-window limiters, both of which must admit a request
(session limiter checked first):
- IP limiter: ``RATE_LIMIT_PER_IP`` requests per ``RATE_LIMIT_IP_WINDOW``.
- Session limiter: ``RATE_LIMIT_PER_SESSION`` per ``RATE_LIMIT_SESSION_WINDOW``,
  keyed by the body's ``sessionId`` or, without one, by the client IP.
"""
import ipaddress
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from fastapi import Request

from persona_proxy.config import Settings
from persona_proxy.services.rate_limiter import FixedWindowRateLimiter

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT = "unknown"
IPV6_PREFIX_LENGTH = 64


@dataclass
class RateLimiters:
    ip: FixedWindowRateLimiter
    session: FixedWindowRateLimiter

    @classmethod
    def from_settings(
        cls, settings: Settings, clock: Callable[[], float] = time.monotonic
    ) -> "RateLimiters":
        return cls(
            ip=FixedWindowRateLimiter(
                settings.rate_limit_per_ip,
                settings.rate_limit_ip_window,
                max_keys=settings.rate_limit_max_keys,
                clock=clock,
                name="ip_rate_limit",
            ),
            session=FixedWindowRateLimiter(
                settings.rate_limit_per_session,
                settings.rate_limit_session_window,
                max_keys=settings.rate_limit_max_keys,
                clock=clock,
                name="session_rate_limit",
            ),
        )

    def prune_expired(self) -> int:
        return self.ip.prune_expired() + self.session.prune_expired()


def normalize_ip(raw: str | None) -> str:
    """Canonical form of a client address for use as a rate-limit key.

    IPv4-mapped IPv6 addresses become plain IPv4, other IPv6 addresses
    collapse to their /64 network. Unparseable values are returned stripped.
    """
    if not raw:
        return UNKNOWN_CLIENT
    raw = raw.strip()
    try:
        addr = ipaddress.ip_address(raw)
    except ValueError:
        return raw or UNKNOWN_CLIENT

    if isinstance(addr, ipaddress.IPv6Address):
        if addr.ipv4_mapped is not None:
            return str(addr.ipv4_mapped)
        network = ipaddress.IPv6Network(f"{addr}/{IPV6_PREFIX_LENGTH}", strict=False)
        return str(network)
    return str(addr)


def client_ip(request: Request, trust_proxy_headers: bool = False) -> str:
    """Normalized client IP, honouring X-Forwarded-For only when trusted."""
    if trust_proxy_headers:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return normalize_ip(forwarded.split(",")[0])
    host = request.client.host if request.client else None
    return normalize_ip(host)


def session_rate_key(session_id: object, ip: str) -> str:
    if isinstance(session_id, str) and session_id:
        return f"session:{session_id}"
    return f"ip:{ip}"


def check_rate_limits(request: Request, session_id: object = None) -> None:
    """Apply both limiters to the request, session limiter first.

    A request rejected by the session limiter is not counted against the IP.

    Raises RateLimitExceeded (Retry-After of the rejecting limiter's window).
    """
    limiters: RateLimiters = request.app.state.rate_limiters
    settings: Settings = request.app.state.settings

    ip = client_ip(request, settings.trust_proxy_headers)
    limiters.session.check(session_rate_key(session_id, ip))
    limiters.ip.check(ip)
