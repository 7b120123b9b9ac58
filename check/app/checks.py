"""Check kinds: each maps agent data to a value, its performance data and a verdict."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Sequence

import httpx

from check.app.arguments import CLIArguments
from check.app.client import query
from check.app.errors import CheckError, InterfaceNotFound
from check.app.peers import resolve_peer
from check.app.schemas import CPUUsage, MemoryUsage, NetworkUsage, PeerRecord, Uptime
from check.app.thresholds import CheckResult, Thresholds, perf_value


logger = logging.getLogger(__name__)

Clock = Callable[[], float]


def check_uptime(data: Uptime, thresholds: Thresholds) -> CheckResult:
    return CheckResult.measured(data.uptime, thresholds, perf_value("uptime", data.uptime, "s", precision=0))


def check_cpu(data: CPUUsage, thresholds: Thresholds) -> CheckResult:
    perfdata = " ".join(
        [
            perf_value("user", data.user, "%"),
            perf_value("system", data.system, "%"),
            perf_value("idle", data.idle, "%"),
        ]
    )
    return CheckResult.measured(data.user + data.system, thresholds, perfdata)


def check_memory(data: MemoryUsage, thresholds: Thresholds) -> CheckResult:
    perfdata = " ".join(
        [
            perf_value("used", data.used, "%"),
            perf_value("cached", data.cached, "%"),
            perf_value("free", data.free, "%"),
        ]
    )
    return CheckResult.measured(data.used + data.cached, thresholds, perfdata)


def find_device(devices: Sequence[NetworkUsage], name: str) -> NetworkUsage:
    if not devices:
        raise InterfaceNotFound("Agent reported no network devices")
    for device in devices:
        if device.name == name:
            return device
    raise InterfaceNotFound(f"Could not find device with name {name}")


def check_network_upstream(data: Sequence[NetworkUsage], thresholds: Thresholds, device: str) -> CheckResult:
    nic = find_device(data, device)
    return CheckResult.measured(nic.tx, thresholds, perf_value("upstream", nic.tx, "kbps"))


def check_network_downstream(data: Sequence[NetworkUsage], thresholds: Thresholds, device: str) -> CheckResult:
    nic = find_device(data, device)
    return CheckResult.measured(nic.rx, thresholds, perf_value("downstream", nic.rx, "kbps"))


def check_peer_handshake(
    data: Sequence[PeerRecord],
    thresholds: Thresholds,
    peer: int,
    now: Clock = time.time,
) -> CheckResult:
    record = resolve_peer(data, peer)
    if record.latest_handshake <= 0:
        return CheckResult.unknown(f"Peer {peer} has never completed a handshake")
    age = max(0, int(now()) - record.latest_handshake)
    return CheckResult.measured(age, thresholds, perf_value("lasths", age, "s", precision=0))


def check_peer_upstream(data: Sequence[PeerRecord], thresholds: Thresholds, peer: int) -> CheckResult:
    record = resolve_peer(data, peer)
    rate = record.data_rates.tx
    return CheckResult.measured(rate, thresholds, perf_value("upstream", rate, "kbps"))


def check_peer_downstream(data: Sequence[PeerRecord], thresholds: Thresholds, peer: int) -> CheckResult:
    record = resolve_peer(data, peer)
    rate = record.data_rates.rx
    return CheckResult.measured(rate, thresholds, perf_value("downstream", rate, "kbps"))


@dataclass(slots=True, frozen=True)
class CheckKind:
    path: str
    schema: Any
    evaluate: Callable[[Any, CLIArguments], CheckResult]
    needs_device: bool = False
    needs_peer: bool = False


CHECKS: dict[str, CheckKind] = {
    "uptime": CheckKind("/uptime", Uptime, lambda data, args: check_uptime(data, args.thresholds)),
    "cpu": CheckKind("/cpu", CPUUsage, lambda data, args: check_cpu(data, args.thresholds)),
    "memory": CheckKind("/memory", MemoryUsage, lambda data, args: check_memory(data, args.thresholds)),
    "network-upstream": CheckKind(
        "/network",
        list[NetworkUsage],
        lambda data, args: check_network_upstream(data, args.thresholds, args.device),
        needs_device=True,
    ),
    "network-downstream": CheckKind(
        "/network",
        list[NetworkUsage],
        lambda data, args: check_network_downstream(data, args.thresholds, args.device),
        needs_device=True,
    ),
    "wireguard-handshake": CheckKind(
        "/wireguard",
        list[PeerRecord],
        lambda data, args: check_peer_handshake(data, args.thresholds, args.peer),
        needs_peer=True,
    ),
    "wireguard-upstream": CheckKind(
        "/wireguard",
        list[PeerRecord],
        lambda data, args: check_peer_upstream(data, args.thresholds, args.peer),
        needs_peer=True,
    ),
    "wireguard-downstream": CheckKind(
        "/wireguard",
        list[PeerRecord],
        lambda data, args: check_peer_downstream(data, args.thresholds, args.peer),
        needs_peer=True,
    ),
}


def run_check(name: str, args: CLIArguments, *, transport: httpx.BaseTransport | None = None) -> CheckResult:
    """Query the agent for one check kind; every failure becomes an UNKNOWN result."""
    kind = CHECKS[name]
    try:
        data = query(args.hostname, args.port, kind.path, args.timeout, kind.schema, transport=transport)
        return kind.evaluate(data, args)
    except CheckError as exc:
        logger.debug("Check %s failed", name, exc_info=True)
        return CheckResult.unknown(str(exc))
