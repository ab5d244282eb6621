from __future__ import annotations

from dataclasses import dataclass

from starlette.requests import Request

from app.core.config import settings

LOOPBACK_ADDRESS = "127.0.0.1"
HARDWARE_TAG_HEADER = "x-mac-address"


@dataclass(frozen=True)
class GuestIdentity:
    network_address: str
    hardware_tag: str | None = None
    user_agent: str | None = None


def _header(request: Request, name: str) -> str | None:
    value = (request.headers.get(name) or "").strip()
    return value or None


def client_address(request: Request) -> str:
    """Best-effort caller address: forwarded-for, real-ip, peer, then loopback."""
    if settings.trust_proxy_headers:
        forwarded_for = _header(request, "x-forwarded-for")
        if forwarded_for:
            first = forwarded_for.split(",")[0].strip()
            if first:
                return first
        real_ip = _header(request, "x-real-ip")
        if real_ip:
            return real_ip
    if request.client and request.client.host:
        return request.client.host
    return LOOPBACK_ADDRESS


def resolve_identity(request: Request) -> GuestIdentity:
    # The hardware tag is client-asserted and only widens matching.
    return GuestIdentity(
        network_address=client_address(request),
        hardware_tag=_header(request, HARDWARE_TAG_HEADER),
        user_agent=_header(request, "user-agent"),
    )
