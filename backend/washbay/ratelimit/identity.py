from ipaddress import IPv4Network, IPv6Network, ip_address
from typing import Iterable, Optional, Union

from fastapi import Request

Network = Union[IPv4Network, IPv6Network]


def _peer_address(req: Request) -> Optional[str]:
    client = getattr(req, "client", None)
    return getattr(client, "host", None) if client else None


def _is_trusted(peer: Optional[str], trusted: Iterable[Network]) -> bool:
    if not peer:
        return False
    try:
        address = ip_address(peer)
    except ValueError:
        return False
    return any(address in network for network in trusted)


def client_ip(req: Request, trusted_proxies: Iterable[Network] = ()) -> str:
    """
    The socket peer address, unless the peer is a trusted proxy.

    Forwarding headers are client-controlled, so they are only read when the
    request arrived through one of ``trusted_proxies``. Then:
    1) first address in X-Forwarded-For
    2) X-Real-IP
    3) the proxy's own address
    """
    peer = _peer_address(req)
    if _is_trusted(peer, trusted_proxies):
        forwarded_for = req.headers.get("x-forwarded-for")
        if forwarded_for:
            first = forwarded_for.split(",")[0].strip()
            if first:
                return first

        real_ip = req.headers.get("x-real-ip")
        if real_ip and real_ip.strip():
            return real_ip.strip()

    return peer or "unknown"


def resolve_identity(req: Request, trusted_proxies: Iterable[Network] = ()) -> str:
    return f"ip:{client_ip(req, trusted_proxies)}"
