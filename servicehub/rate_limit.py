"""Request throttling for the ServiceHub auth endpoints.

Clients are keyed by address. ``X-Forwarded-For`` is only believed when the
connection itself comes from a trusted proxy, and the header is read from the
right, skipping further trusted hops. Entries a client prepends to the header
therefore never become its key.
"""

import ipaddress
from functools import lru_cache

from fastapi import Request, status
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from .config import get_settings
from .logging_config import get_logger
from .models import ApiResponse

logger = get_logger("servicehub.rate_limit")

Network = ipaddress.IPv4Network | ipaddress.IPv6Network


def parse_networks(cidrs: list[str]) -> list[Network]:
    networks = []
    for cidr in cidrs:
        try:
            networks.append(ipaddress.ip_network(cidr.strip(), strict=False))
        except ValueError:
            logger.warning(f"Ignoring invalid trusted proxy CIDR: {cidr!r}")
    return networks


class ProxyPolicy:
    """Decides which address a request is throttled under."""

    def __init__(self, cidrs: list[str]):
        self.networks = parse_networks(cidrs)

    def is_trusted(self, address: str) -> bool:
        try:
            addr = ipaddress.ip_address(address)
        except ValueError:
            return False
        return any(addr in network for network in self.networks)

    def client_ip(self, direct_ip: str, forwarded_for: str | None) -> str:
        if not forwarded_for or not self.is_trusted(direct_ip):
            return direct_ip

        hops = [hop.strip() for hop in forwarded_for.split(",") if hop.strip()]
        for hop in reversed(hops):
            if not self.is_trusted(hop):
                return hop
        # Every hop is one of ours: the request started inside the network
        return hops[0] if hops else direct_ip


@lru_cache
def get_proxy_policy() -> ProxyPolicy:
    return ProxyPolicy(get_settings().trusted_proxy_cidrs)


def get_client_ip(request: Request) -> str:
    """Rate-limit key for ``request``."""
    return get_proxy_policy().client_ip(get_remote_address(request), request.headers.get("x-forwarded-for"))


def register_limit() -> str:
    return get_settings().register_rate_limit


def login_limit() -> str:
    return get_settings().login_rate_limit


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Answer a throttled request with the standard error envelope."""
    client = get_client_ip(request)
    logger.warning(f"Rate limit exceeded | {request.method} {request.url.path} | client={client} | limit={exc.detail}")
    body = ApiResponse(
        success=False,
        statusCode=status.HTTP_429_TOO_MANY_REQUESTS,
        message=f"Too many requests. Limit: {exc.detail}",
    ).model_dump(exclude_none=True)
    response = JSONResponse(status_code=status.HTTP_429_TOO_MANY_REQUESTS, content=body)
    return request.app.state.limiter._inject_headers(response, request.state.view_rate_limit)


limiter = Limiter(key_func=get_client_ip, enabled=get_settings().rate_limit_enabled)
