"""Rate limiting.

Requests carrying a valid access token are limited per account, so bid and
hire limits follow the user rather than the network they come from.
Anonymous requests (register, login) are limited per client IP, where
``X-Forwarded-For`` is honoured only when the direct peer is a trusted proxy.

The slowapi ``limiter`` is module level because route decorators bind to it
at import. Each app still decides for itself: limits are skipped when the
serving app's ``Settings.rate_limit_enabled`` is off, and counters are
namespaced per app so two apps in one process never share a budget.
"""

import ipaddress
from functools import lru_cache

from fastapi import HTTPException
from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from gigboard.api.auth import AUTH_COOKIE_NAME, resolve_token
from gigboard.logging_config import get_logger

logger = get_logger("gigboard.rate_limit")

Network = ipaddress.IPv4Network | ipaddress.IPv6Network


@lru_cache(maxsize=8)
def parse_trusted_networks(cidrs: tuple[str, ...]) -> tuple[Network, ...]:
    networks = []
    for cidr in filter(None, (c.strip() for c in cidrs)):
        try:
            networks.append(ipaddress.ip_network(cidr, strict=False))
        except ValueError:
            logger.warning(f"Ignoring invalid trusted proxy CIDR: {cidr}")
    return tuple(networks)


def is_trusted_proxy(ip: str, networks: tuple[Network, ...]) -> bool:
    try:
        addr = ipaddress.ip_address(ip)
    except ValueError:
        return False
    return any(addr in network for network in networks)


def get_client_ip(request: Request) -> str:
    """Peer address, or the leftmost forwarded address when the peer is a trusted proxy."""
    peer = get_remote_address(request)
    settings = request.app.state.context.settings
    if not is_trusted_proxy(peer, parse_trusted_networks(tuple(settings.trusted_proxy_cidrs.split(",")))):
        return peer

    forwarded = request.headers.get("x-forwarded-for", "")
    client_ip = forwarded.split(",")[0].strip()
    return client_ip or peer


def rate_limit_key(request: Request) -> str:
    header = request.headers.get("authorization", "")
    token = header[7:].strip() if header.lower().startswith("bearer ") else request.cookies.get(AUTH_COOKIE_NAME)
    if token:
        try:
            auth = resolve_token(token, request.app.state.context.settings)
            return f"{_namespace(request)}:user:{auth.user_id}"
        except HTTPException:
            # Let the route reject the token; count the attempt against the IP
            pass
    return f"{_namespace(request)}:ip:{get_client_ip(request)}"


def _namespace(request: Request) -> str:
    return getattr(request.app.state, "rate_limit_namespace", "default")


def rate_limit_disabled(request: Request) -> bool:
    return not request.app.state.context.settings.rate_limit_enabled


limiter = Limiter(key_func=rate_limit_key)


def limit(limit_value: str):
    """``limiter.limit`` that honours the serving app's ``rate_limit_enabled``."""
    return limiter.limit(limit_value, exempt_when=rate_limit_disabled)
