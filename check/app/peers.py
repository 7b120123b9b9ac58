"""Addressing of WireGuard peers by the final octet of their internal address."""

from __future__ import annotations

from typing import Sequence

from check.app.errors import InvalidPeerAddress, PeerKeyCollision, PeerNotFound
from check.app.schemas import PeerRecord


MIN_PEER_KEY = 0
MAX_PEER_KEY = 255


def peer_key(address: str) -> int:
    """Return the final dotted octet of an address such as ``10.8.0.7/32``.

    When several allowed IPs are listed, the first one is the peer's address.
    """
    first = address.split(",", 1)[0]
    host = first.split("/", 1)[0].strip()
    octet = host.rsplit(".", 1)[-1]
    if not (octet.isascii() and octet.isdigit()):
        raise InvalidPeerAddress(f"Internal address {address!r} does not end in a numeric octet")
    key = int(octet, 10)
    if not MIN_PEER_KEY <= key <= MAX_PEER_KEY:
        raise InvalidPeerAddress(f"Final octet of internal address {address!r} is out of range")
    return key


def resolve_peer(peers: Sequence[PeerRecord], key: int) -> PeerRecord:
    """Find the peer addressed by `key`.

    Every peer's key is derived before comparing, so a malformed address or two
    peers sharing a key is reported even when it is not the requested one.
    """
    if not MIN_PEER_KEY <= key <= MAX_PEER_KEY:
        raise PeerNotFound(f"Peer index {key} is outside {MIN_PEER_KEY}-{MAX_PEER_KEY}")

    seen: dict[int, PeerRecord] = {}
    for peer in peers:
        current = peer_key(peer.internal_ip)
        if current in seen:
            raise PeerKeyCollision(
                f"Peers {seen[current].internal_ip} and {peer.internal_ip} share index {current}"
            )
        seen[current] = peer

    try:
        return seen[key]
    except KeyError:
        raise PeerNotFound(f"Could not find peer with index {key}") from None
