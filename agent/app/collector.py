from __future__ import annotations

import asyncio
import logging
import socket
from dataclasses import dataclass, field
from typing import Any

from agent.app.config import Settings
from agent.app.errors import CollectionError, SamplingError
from agent.app.sampler import WindowedSampler, cpu_usage, memory_usage, network_rates, peer_rates
from agent.app.schemas import CPUUsage, HostSnapshot, MemoryUsage
from agent.app.sources import CounterSource


logger = logging.getLogger(__name__)

MEASUREMENTS = ("uptime", "cpu", "memory", "network", "wireguard")


def _placeholder(name: str) -> Any:
    if name == "uptime":
        return 0
    if name == "cpu":
        return CPUUsage()
    if name == "memory":
        return MemoryUsage()
    return []


@dataclass(slots=True)
class CollectionResult:
    snapshot: HostSnapshot
    failures: dict[str, str] = field(default_factory=dict)
    diagnostics: list[str] = field(default_factory=list)


class Collector:
    """Runs every measurement concurrently and assembles one host snapshot.

    A failing measurement leaves an empty placeholder in its slot and is
    recorded in the result; the other measurements are unaffected. Only when
    all of them fail is the cycle reported as a `CollectionError`.
    """

    def __init__(
        self,
        settings: Settings,
        source: CounterSource | None = None,
        *,
        sampler: WindowedSampler | None = None,
    ) -> None:
        self._settings = settings
        self._source = source or CounterSource(settings)
        self._sampler = sampler or WindowedSampler(settings.sample_window_seconds)

    async def _uptime(self) -> tuple[int, list[SamplingError]]:
        return await asyncio.to_thread(self._source.uptime), []

    async def _cpu(self) -> tuple[CPUUsage, list[SamplingError]]:
        return await self._sampler.sample(self._source.cpu, cpu_usage), []

    async def _memory(self) -> tuple[MemoryUsage, list[SamplingError]]:
        counters = await asyncio.to_thread(self._source.memory)
        return memory_usage(counters, include_swap=self._settings.include_swap), []

    async def _network(self) -> tuple[list, list[SamplingError]]:
        result = await self._sampler.sample(self._source.network, network_rates)
        return result.rows, result.errors

    async def _wireguard(self) -> tuple[list, list[SamplingError]]:
        result = await self._sampler.sample(self._source.peers, peer_rates)
        return result.rows, result.errors

    async def _measure(self, name: str) -> tuple[Any, list[SamplingError]]:
        if name not in MEASUREMENTS:
            raise KeyError(name)
        value, errors = await getattr(self, f"_{name}")()
        for error in errors:
            logger.warning("%s: %s", name, error)
        return value, errors

    async def collect_measurement(self, name: str) -> Any:
        """Collect a single measurement; its failure propagates to the caller."""
        value, _ = await self._measure(name)
        return value

    async def collect(self) -> CollectionResult:
        outcomes = await asyncio.gather(
            *(self._measure(name) for name in MEASUREMENTS),
            return_exceptions=True,
        )

        values: dict[str, Any] = {}
        failures: dict[str, str] = {}
        diagnostics: list[str] = []
        for name, outcome in zip(MEASUREMENTS, outcomes):
            if isinstance(outcome, SamplingError):
                logger.warning("Measurement %s failed: %s", name, outcome)
            elif isinstance(outcome, Exception):
                logger.error("Measurement %s failed unexpectedly", name, exc_info=outcome)
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                values[name], errors = outcome
                diagnostics.extend(f"{name}: {error}" for error in errors)
                continue
            failures[name] = str(outcome) or type(outcome).__name__
            values[name] = _placeholder(name)

        if len(failures) == len(MEASUREMENTS):
            raise CollectionError(failures)

        snapshot = HostSnapshot(hostname=socket.gethostname(), **values)
        return CollectionResult(snapshot=snapshot, failures=failures, diagnostics=diagnostics)
