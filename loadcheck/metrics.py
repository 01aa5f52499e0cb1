"""
Custom metric registers.

Scenarios feed observations into four kinds of accumulator:

- :class:`Rate`: boolean observations; final value is passes / total.
- :class:`Trend`: numeric samples; final value exposes avg, min, med,
  max and a fixed set of percentiles.
- :class:`Counter`: monotonic running total of discrete events.
- :class:`Gauge`: last written value (point in time).

Registers are write-only for scenario code.  Every register applies its
writes under its own lock so any number of simulated clients can append
concurrently without lost updates; reduction to summary values happens
once, when the report is built.

Key Concepts Demonstrated:
- Get-or-create registry keyed by metric name, with kind checking
- Linear-interpolated percentiles over the collected samples
"""

from __future__ import annotations

import math
import threading
from typing import Any

# Metric names shared by scenarios, thresholds and the analysis engine.
ERRORS = "errors"
API_DURATION = "api_duration"
API_ERRORS = "api_errors"
SLOW_REQUESTS = "slow_requests"
RESPONSE_TIME = "response_time"
SPIKE_ERRORS = "spike_errors"
RECOVERY_TIME = "recovery_time"
DATA_INTEGRITY = "data_integrity"
MEMORY_USAGE = "memory_usage"
CURRENT_MEMORY = "current_memory"
PERFORMANCE_DEGRADATION = "performance_degradation"
POTENTIAL_LEAKS = "potential_leaks"
SSO_AUTH_TIME = "sso_auth_time"

TREND_PERCENTILES = (90.0, 95.0, 99.0)


def percentile(sorted_values: list[float], pct: float) -> float:
    """
    Return the *pct* percentile of an ascending list.

    Uses linear interpolation between the two closest ranks, the same
    method numpy uses by default.

    Args:
        sorted_values: Samples sorted ascending.  Must not be empty.
        pct: Percentile in the range 0–100.
    """
    if not sorted_values:
        raise ValueError("percentile of an empty sample set")
    if len(sorted_values) == 1:
        return float(sorted_values[0])

    rank = (pct / 100.0) * (len(sorted_values) - 1)
    lower = math.floor(rank)
    upper = math.ceil(rank)
    if lower == upper:
        return float(sorted_values[lower])
    weight = rank - lower
    return sorted_values[lower] + (sorted_values[upper] - sorted_values[lower]) * weight


def percentile_key(pct: float) -> str:
    """Format a percentile the way thresholds reference it, e.g. ``p(95)``."""
    if float(pct).is_integer():
        return f"p({int(pct)})"
    return f"p({pct:g})"


class Register:
    """Common base for every register kind."""

    kind = "register"

    def __init__(self, name: str) -> None:
        self.name = name
        self._lock = threading.Lock()

    def add(self, value: Any) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    def summary(self, duration_seconds: float | None = None) -> dict[str, Any]:  # pragma: no cover
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r}>"


class Rate(Register):
    """Fraction of truthy observations."""

    kind = "rate"

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self._passes = 0
        self._total = 0

    def add(self, value: bool | int | float) -> None:
        with self._lock:
            self._total += 1
            if value:
                self._passes += 1

    def summary(self, duration_seconds: float | None = None) -> dict[str, Any]:
        with self._lock:
            passes, total = self._passes, self._total
        return {
            "rate": passes / total if total else None,
            "passes": passes,
            "fails": total - passes,
            "total": total,
        }


class Trend(Register):
    """Distribution of numeric samples."""

    kind = "trend"

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self._samples: list[float] = []

    def add(self, value: float) -> None:
        with self._lock:
            self._samples.append(float(value))

    def summary(self, duration_seconds: float | None = None) -> dict[str, Any]:
        with self._lock:
            samples = sorted(self._samples)

        if not samples:
            return {"count": 0}

        result: dict[str, Any] = {
            "count": len(samples),
            "avg": sum(samples) / len(samples),
            "min": samples[0],
            "med": percentile(samples, 50.0),
            "max": samples[-1],
        }
        for pct in TREND_PERCENTILES:
            result[percentile_key(pct)] = percentile(samples, pct)
        return result


class Counter(Register):
    """Monotonic running total."""

    kind = "counter"

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self._count = 0.0

    def add(self, value: float = 1) -> None:
        if value < 0:
            raise ValueError(f"Counter {self.name!r} cannot decrease (got {value})")
        with self._lock:
            self._count += value

    def summary(self, duration_seconds: float | None = None) -> dict[str, Any]:
        with self._lock:
            count = self._count
        result: dict[str, Any] = {"count": count}
        if duration_seconds:
            result["rate"] = count / duration_seconds
        return result


class Gauge(Register):
    """Last written value, with the observed extremes."""

    kind = "gauge"

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self._value: float | None = None
        self._min: float | None = None
        self._max: float | None = None

    def add(self, value: float) -> None:
        value = float(value)
        with self._lock:
            self._value = value
            self._min = value if self._min is None else min(self._min, value)
            self._max = value if self._max is None else max(self._max, value)

    def summary(self, duration_seconds: float | None = None) -> dict[str, Any]:
        with self._lock:
            return {"value": self._value, "min": self._min, "max": self._max}


_KINDS: dict[str, type[Register]] = {
    Rate.kind: Rate,
    Trend.kind: Trend,
    Counter.kind: Counter,
    Gauge.kind: Gauge,
}


class MetricRegistry:
    """
    Named collection of registers for one run.

    ``registry.rate("errors")`` returns the existing register or creates
    it.  Asking for an existing name as a different kind raises
    ``TypeError`` so two scenarios cannot silently disagree about what a
    metric means.
    """

    def __init__(self) -> None:
        self._registers: dict[str, Register] = {}
        self._lock = threading.Lock()

    def _get(self, name: str, kind: str) -> Register:
        with self._lock:
            register = self._registers.get(name)
            if register is None:
                register = _KINDS[kind](name)
                self._registers[name] = register
            elif register.kind != kind:
                raise TypeError(
                    f"Metric {name!r} is already registered as a {register.kind}, not a {kind}"
                )
            return register

    def rate(self, name: str) -> Rate:
        return self._get(name, Rate.kind)  # type: ignore[return-value]

    def trend(self, name: str) -> Trend:
        return self._get(name, Trend.kind)  # type: ignore[return-value]

    def counter(self, name: str) -> Counter:
        return self._get(name, Counter.kind)  # type: ignore[return-value]

    def gauge(self, name: str) -> Gauge:
        return self._get(name, Gauge.kind)  # type: ignore[return-value]

    def __contains__(self, name: str) -> bool:
        return name in self._registers

    def names(self) -> list[str]:
        with self._lock:
            return sorted(self._registers)

    def summary(self, duration_seconds: float | None = None) -> dict[str, dict[str, Any]]:
        """
        Reduce every register to its final values.

        Returns:
            ``{name: {"type": kind, "values": {...}}}``, the same shape
            the JSON report and the threshold evaluator consume.
        """
        with self._lock:
            registers = list(self._registers.values())
        return {
            register.name: {
                "type": register.kind,
                "values": register.summary(duration_seconds),
            }
            for register in registers
        }
