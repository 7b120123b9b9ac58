from __future__ import annotations


class SamplingError(RuntimeError):
    """Base class for failures while reading or converting counters."""


class InsufficientDelta(SamplingError):
    """Counters did not advance or the elapsed time was not positive."""


class SourceUnavailable(SamplingError):
    """An OS counter reader or the peer dump command failed."""


class MalformedCounterRow(SamplingError):
    def __init__(self, line_number: int, message: str):
        super().__init__(f"Peer dump line {line_number}: {message}")
        self.line_number = line_number


class RowSetMismatch(SamplingError):
    def __init__(self, kind: str, key: str, side: str):
        super().__init__(f"{kind} row {key!r} only present in the {side} sample, dropped")
        self.kind = kind
        self.key = key
        self.side = side


class CollectionError(RuntimeError):
    """Every measurement of a collection cycle failed."""

    def __init__(self, failures: dict[str, str]):
        detail = "; ".join(f"{name}: {message}" for name, message in failures.items())
        super().__init__(f"All measurements failed ({detail})")
        self.failures = failures
