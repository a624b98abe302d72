"""Resolve the caller address from the socket peer and trusted proxy hops."""

from typing import Iterable, Optional

from fastapi import Request

from yaya_webhook.webhooks.verifier import normalize_ip


def resolve_forwarded_ip(
    peer: str, forwarded_for: Optional[str], trusted_proxies: Iterable[str]
) -> str:
    """Pick the client address from an X-Forwarded-For chain.

    The header is only honored when the direct peer is a trusted proxy. The
    chain is walked right to left and the first hop that is not itself a
    trusted proxy wins, so entries prepended by the client cannot be used to
    spoof an address.
    """
    trusted = {normalize_ip(proxy) for proxy in trusted_proxies}
    current = normalize_ip(peer) if peer else ""
    if current not in trusted or not forwarded_for:
        return current

    hops = [normalize_ip(hop) for hop in forwarded_for.split(",") if hop.strip()]
    for hop in reversed(hops):
        if hop not in trusted:
            return hop
    return hops[0] if hops else current


def resolve_client_ip(request: Request, trusted_proxies: Iterable[str]) -> str:
    """Client address for a request, honoring only trusted proxy hops."""
    peer = request.client.host if request.client else ""
    return resolve_forwarded_ip(peer, request.headers.get("x-forwarded-for"), trusted_proxies)
