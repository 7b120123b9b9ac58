from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum


class Verdict(IntEnum):
    """Plugin states; the value doubles as the process exit code."""

    OK = 0
    WARNING = 1
    CRITICAL = 2
    UNKNOWN = 3


@dataclass(slots=True, frozen=True)
class Thresholds:
    warning: float | None = None
    critical: float | None = None


def evaluate(value: float, warning: float | None = None, critical: float | None = None) -> Verdict:
    """Compare `value` against the configured bounds.

    Each bound is only checked when set, comparisons are strict, and a
    breached critical bound wins over a breached warning bound.
    """
    verdict = Verdict.OK
    if warning is not None and value > warning:
        verdict = Verdict.WARNING
    if critical is not None and value > critical:
        verdict = Verdict.CRITICAL
    return verdict


def perf_value(label: str, value: float, unit: str = "", precision: int = 2) -> str:
    if precision == 0:
        return f"'{label}'={int(value)}{unit}"
    return f"'{label}'={value:.{precision}f}{unit}"


@dataclass(slots=True, frozen=True)
class CheckResult:
    verdict: Verdict
    output: str

    @classmethod
    def measured(cls, value: float, thresholds: Thresholds, perfdata: str) -> CheckResult:
        return cls(evaluate(value, thresholds.warning, thresholds.critical), perfdata)

    @classmethod
    def unknown(cls, message: str) -> CheckResult:
        return cls(Verdict.UNKNOWN, message)

    def render(self) -> str:
        return f"{self.verdict.name} - {self.output}"
