"""Two-snapshot sampling and the conversion of counter deltas into rates."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Awaitable, Callable, Generic, Mapping, TypeVar

from agent.app.errors import InsufficientDelta, RowSetMismatch, SamplingError
from agent.app.schemas import CPUUsage, DataRates, MemoryUsage, NetworkUsage, PeerRecord
from agent.app.sources import CPUCounters, MemoryCounters, NetworkCounters, PeerCounters


logger = logging.getLogger(__name__)

K = TypeVar("K")
V = TypeVar("V")
S = TypeVar("S")
R = TypeVar("R")

BITS_PER_BYTE = 8
BITS_PER_KBIT = 1000


class PairOutcome(StrEnum):
    MATCHED = "matched"
    ONLY_BEFORE = "only-before"
    ONLY_AFTER = "only-after"


@dataclass(slots=True, frozen=True)
class RowPair(Generic[K, V]):
    key: K
    outcome: PairOutcome
    before: V | None
    after: V | None


def pair_rows(before: Mapping[K, V], after: Mapping[K, V]) -> list[RowPair[K, V]]:
    """Pair the rows of two snapshots by key, keeping the order of the first snapshot."""
    pairs: list[RowPair[K, V]] = []
    for key, row in before.items():
        if key in after:
            pairs.append(RowPair(key, PairOutcome.MATCHED, row, after[key]))
        else:
            pairs.append(RowPair(key, PairOutcome.ONLY_BEFORE, row, None))
    for key, row in after.items():
        if key not in before:
            pairs.append(RowPair(key, PairOutcome.ONLY_AFTER, None, row))
    return pairs


@dataclass(slots=True)
class RateResult(Generic[R]):
    """Rows that could be converted plus the per-row failures that were dropped."""

    rows: list[R] = field(default_factory=list)
    errors: list[SamplingError] = field(default_factory=list)


def elapsed_seconds(started: float, finished: float) -> float:
    elapsed = finished - started
    if elapsed <= 0:
        raise InsufficientDelta(f"Elapsed sampling time must be positive, got {elapsed:.6f}s")
    return elapsed


def kbit_rate(before_bytes: int, after_bytes: int, elapsed: float) -> float:
    if elapsed <= 0:
        raise InsufficientDelta(f"Elapsed sampling time must be positive, got {elapsed:.6f}s")
    delta = after_bytes - before_bytes
    if delta < 0:
        raise InsufficientDelta(f"Byte counter went backwards ({before_bytes} -> {after_bytes})")
    return delta / elapsed * BITS_PER_BYTE / BITS_PER_KBIT


def cpu_usage(before: CPUCounters, after: CPUCounters) -> CPUUsage:
    user = max(0.0, after.user - before.user)
    system = max(0.0, after.system - before.system)
    idle = max(0.0, after.idle - before.idle)
    total = user + system + idle
    if total <= 0:
        raise InsufficientDelta("CPU counters did not advance during the sampling window")
    return CPUUsage(
        user=user / total * 100,
        system=system / total * 100,
        idle=idle / total * 100,
    )


def memory_usage(counters: MemoryCounters, include_swap: bool = False) -> MemoryUsage:
    if counters.total <= 0:
        raise InsufficientDelta("Total memory reported as zero")
    total = float(counters.total)
    swap_used: float | None = None
    swap_free: float | None = None
    if include_swap:
        if counters.swap_total > 0:
            swap_total = float(counters.swap_total)
            swap_used = counters.swap_used / swap_total * 100
            swap_free = counters.swap_free / swap_total * 100
        else:
            logger.debug("Swap reporting enabled but no swap configured, omitting swap fields")
    return MemoryUsage(
        used=counters.used / total * 100,
        cached=counters.cached / total * 100,
        free=counters.free / total * 100,
        swap_used=swap_used,
        swap_free=swap_free,
    )


def network_rates(before: NetworkCounters, after: NetworkCounters) -> RateResult[NetworkUsage]:
    elapsed = elapsed_seconds(before.taken_at, after.taken_at)
    result: RateResult[NetworkUsage] = RateResult()
    for pair in pair_rows(before.interfaces, after.interfaces):
        if pair.outcome is not PairOutcome.MATCHED:
            side = "first" if pair.outcome is PairOutcome.ONLY_BEFORE else "second"
            result.errors.append(RowSetMismatch("interface", pair.key, side))
            continue
        try:
            rx = kbit_rate(pair.before.rx_bytes, pair.after.rx_bytes, elapsed)
            tx = kbit_rate(pair.before.tx_bytes, pair.after.tx_bytes, elapsed)
        except InsufficientDelta as exc:
            result.errors.append(InsufficientDelta(f"interface {pair.key!r}: {exc}"))
            continue
        result.rows.append(NetworkUsage(name=pair.key, rx=rx, tx=tx))
    return result


def peer_rates(before: PeerCounters, after: PeerCounters) -> RateResult[PeerRecord]:
    elapsed = elapsed_seconds(before.taken_at, after.taken_at)
    result: RateResult[PeerRecord] = RateResult()
    result.errors.extend(after.errors)
    for pair in pair_rows(before.peers, after.peers):
        if pair.outcome is not PairOutcome.MATCHED:
            side = "first" if pair.outcome is PairOutcome.ONLY_BEFORE else "second"
            result.errors.append(RowSetMismatch("peer", pair.key, side))
            continue
        latest = pair.after
        try:
            rates = DataRates(
                rx=kbit_rate(pair.before.rx_bytes, latest.rx_bytes, elapsed),
                tx=kbit_rate(pair.before.tx_bytes, latest.tx_bytes, elapsed),
            )
        except InsufficientDelta as exc:
            result.errors.append(InsufficientDelta(f"peer {latest.internal_address}: {exc}"))
            continue
        result.rows.append(
            PeerRecord(
                internal_ip=latest.internal_address,
                external_ip=latest.external_address,
                latest_handshake=max(0, latest.latest_handshake),
                data_rates=rates,
            )
        )
    return result


class WindowedSampler:
    """Takes two snapshots from the same reader, `window` seconds apart."""

    def __init__(
        self,
        window: float,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if window <= 0:
            raise ValueError("Sampling window must be positive")
        self._window = window
        self._sleep = sleep

    @property
    def window(self) -> float:
        return self._window

    async def sample(self, read: Callable[[], S], compute: Callable[[S, S], R]) -> R:
        before = await asyncio.to_thread(read)
        await self._sleep(self._window)
        after = await asyncio.to_thread(read)
        return compute(before, after)
