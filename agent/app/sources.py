from __future__ import annotations

import logging
import subprocess
import time
from dataclasses import dataclass, field
from typing import Mapping

import psutil

from agent.app.config import Settings
from agent.app.errors import MalformedCounterRow, SourceUnavailable


logger = logging.getLogger(__name__)

# cpu_times() fields folded into the user and idle buckets, everything else is system time.
# guest and guest_nice are already accounted for in user and nice.
_USER_STATES = ("user", "nice")
_IDLE_STATES = ("idle", "iowait")
_SKIPPED_STATES = ("guest", "guest_nice")

# Column layout of the peer lines of `wg show <interface> dump`.
DUMP_ENDPOINT = 2
DUMP_ALLOWED_IPS = 3
DUMP_LATEST_HANDSHAKE = 4
DUMP_TRANSFER_RX = 5
DUMP_TRANSFER_TX = 6
DUMP_MIN_COLUMNS = 7


@dataclass(slots=True, frozen=True)
class CPUCounters:
    user: float
    system: float
    idle: float
    taken_at: float

    @property
    def total(self) -> float:
        return self.user + self.system + self.idle


@dataclass(slots=True, frozen=True)
class InterfaceCounters:
    rx_bytes: int
    tx_bytes: int


@dataclass(slots=True, frozen=True)
class NetworkCounters:
    interfaces: Mapping[str, InterfaceCounters]
    taken_at: float


@dataclass(slots=True, frozen=True)
class PeerCounterRow:
    public_key: str
    internal_address: str
    external_address: str
    latest_handshake: int
    rx_bytes: int
    tx_bytes: int


@dataclass(slots=True, frozen=True)
class PeerCounters:
    peers: Mapping[str, PeerCounterRow]
    taken_at: float
    errors: tuple[MalformedCounterRow, ...] = field(default_factory=tuple)


@dataclass(slots=True, frozen=True)
class MemoryCounters:
    total: int
    used: int
    cached: int
    free: int
    swap_total: int = 0
    swap_used: int = 0
    swap_free: int = 0


def _now() -> float:
    return time.monotonic()


def cpu_counters_from_times(times, taken_at: float) -> CPUCounters:
    user = 0.0
    idle = 0.0
    system = 0.0
    for name, value in times._asdict().items():
        if name in _SKIPPED_STATES:
            continue
        if name in _USER_STATES:
            user += value
        elif name in _IDLE_STATES:
            idle += value
        else:
            system += value
    return CPUCounters(user=user, system=system, idle=idle, taken_at=taken_at)


def parse_peer_dump(output: str, taken_at: float) -> PeerCounters:
    """Parse `wg show <interface> dump` output into per-peer counters.

    The first line describes the interface itself and is skipped. A malformed
    peer line is recorded and the remaining lines are still parsed.
    """
    lines = output.strip().splitlines()
    if not lines:
        raise SourceUnavailable("Peer dump returned empty response")

    peers: dict[str, PeerCounterRow] = {}
    errors: list[MalformedCounterRow] = []
    for line_number, line in enumerate(lines[1:], start=2):
        if not line.strip():
            continue
        columns = line.split("\t")
        if len(columns) < DUMP_MIN_COLUMNS:
            errors.append(
                MalformedCounterRow(line_number, f"expected {DUMP_MIN_COLUMNS} columns, got {len(columns)}")
            )
            continue
        try:
            latest_handshake = int(columns[DUMP_LATEST_HANDSHAKE])
            rx_bytes = int(columns[DUMP_TRANSFER_RX])
            tx_bytes = int(columns[DUMP_TRANSFER_TX])
        except ValueError as exc:
            errors.append(MalformedCounterRow(line_number, f"unparseable counter: {exc}"))
            continue
        public_key = columns[0]
        if public_key in peers:
            errors.append(MalformedCounterRow(line_number, f"duplicate peer {public_key}"))
            continue
        peers[public_key] = PeerCounterRow(
            public_key=public_key,
            internal_address=columns[DUMP_ALLOWED_IPS],
            external_address=columns[DUMP_ENDPOINT],
            latest_handshake=latest_handshake,
            rx_bytes=rx_bytes,
            tx_bytes=tx_bytes,
        )
    return PeerCounters(peers=peers, taken_at=taken_at, errors=tuple(errors))


class CounterSource:
    """Point-in-time readers for the cumulative OS and WireGuard counters."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    def uptime(self) -> int:
        try:
            boot_time = psutil.boot_time()
        except (OSError, psutil.Error) as exc:
            raise SourceUnavailable(f"Could not read boot time: {exc}") from exc
        return max(0, int(time.time() - boot_time))

    def cpu(self) -> CPUCounters:
        try:
            times = psutil.cpu_times()
        except (OSError, psutil.Error) as exc:
            raise SourceUnavailable(f"Could not read CPU stats: {exc}") from exc
        return cpu_counters_from_times(times, _now())

    def memory(self) -> MemoryCounters:
        try:
            virtual = psutil.virtual_memory()
            swap = psutil.swap_memory() if self._settings.include_swap else None
        except (OSError, psutil.Error) as exc:
            raise SourceUnavailable(f"Could not read memory stats: {exc}") from exc
        return MemoryCounters(
            total=virtual.total,
            used=virtual.used,
            # cached is only reported on Linux and BSD
            cached=getattr(virtual, "cached", 0),
            free=virtual.free,
            swap_total=swap.total if swap else 0,
            swap_used=swap.used if swap else 0,
            swap_free=swap.free if swap else 0,
        )

    def network(self) -> NetworkCounters:
        try:
            stats = psutil.net_io_counters(pernic=True)
        except (OSError, psutil.Error) as exc:
            raise SourceUnavailable(f"Could not read network stats: {exc}") from exc
        taken_at = _now()
        interfaces = {
            name: InterfaceCounters(rx_bytes=counters.bytes_recv, tx_bytes=counters.bytes_sent)
            for name, counters in stats.items()
        }
        return NetworkCounters(interfaces=interfaces, taken_at=taken_at)

    def peers(self) -> PeerCounters:
        args = [self._settings.wg_command, "show", self._settings.wg_interface, "dump"]
        command = " ".join(args)
        try:
            result = subprocess.run(
                args,
                check=False,
                capture_output=True,
                text=True,
                timeout=self._settings.peer_dump_timeout_seconds,
            )
        except subprocess.TimeoutExpired as exc:
            raise SourceUnavailable(f"Executing {command!r} timed out after {exc.timeout}s") from exc
        except OSError as exc:
            raise SourceUnavailable(f"Executing {command!r} failed: {exc}") from exc
        taken_at = _now()
        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            raise SourceUnavailable(f"Executing {command!r} failed ({result.returncode}): {stderr}")
        if not (result.stdout or "").strip():
            raise SourceUnavailable(f"Executing {command!r} returned empty response")
        counters = parse_peer_dump(result.stdout, taken_at)
        logger.debug("Read %d peers from %r (%d malformed rows)", len(counters.peers), command, len(counters.errors))
        return counters
