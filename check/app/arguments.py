from __future__ import annotations

from dataclasses import dataclass
import ipaddress
import re

from check.app.errors import UsageError
from check.app.peers import MAX_PEER_KEY, MIN_PEER_KEY
from check.app.thresholds import Thresholds


MIN_PORT = 1024
MAX_PORT = 65535
MIN_TIMEOUT = 1
MAX_TIMEOUT = 120

# DNS names and IPv4 literals; IPv6 literals are checked separately
_HOSTNAME_PATTERN = re.compile(r"^[A-Za-z0-9._-]+$")


@dataclass(slots=True, frozen=True)
class CLIArguments:
    hostname: str
    port: int
    timeout: int
    warning: float | None = None
    critical: float | None = None
    device: str | None = None
    peer: int | None = None
    verbose: bool = False

    @property
    def thresholds(self) -> Thresholds:
        return Thresholds(warning=self.warning, critical=self.critical)


def _valid_host(hostname: str) -> bool:
    if ":" in hostname:
        try:
            ipaddress.IPv6Address(hostname.strip("[]"))
        except ValueError:
            return False
        return True
    return bool(_HOSTNAME_PATTERN.match(hostname))


def validate_arguments(args: CLIArguments, *, needs_device: bool = False, needs_peer: bool = False) -> CLIArguments:
    """Reject argument sets that must not reach the network."""
    if not args.hostname or not args.hostname.strip():
        raise UsageError("No hostname or IP address was set")
    if not _valid_host(args.hostname):
        raise UsageError(f"Hostname {args.hostname!r} is not a valid hostname or IP address")
    if not MIN_PORT <= args.port <= MAX_PORT:
        raise UsageError(f"Port {args.port} out of range ({MIN_PORT}-{MAX_PORT})")
    if not MIN_TIMEOUT <= args.timeout <= MAX_TIMEOUT:
        raise UsageError(f"Timeout {args.timeout}s out of range ({MIN_TIMEOUT}-{MAX_TIMEOUT}s)")
    if needs_device and not (args.device and args.device.strip()):
        raise UsageError("No network device was set, use --device")
    if needs_peer:
        if args.peer is None:
            raise UsageError("No WireGuard peer was set, use --peer")
        if not MIN_PEER_KEY <= args.peer <= MAX_PEER_KEY:
            raise UsageError(f"Peer index {args.peer} out of range ({MIN_PEER_KEY}-{MAX_PEER_KEY})")
    return args
