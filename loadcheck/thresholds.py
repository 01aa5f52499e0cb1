"""
Threshold expressions and their evaluation.

A profile declares its pass criteria per metric as a list of expressions::

    http_req_duration: ["p(95)<500", "p(99)<2000"]
    http_req_failed:   ["rate<0.01"]
    data_integrity:    ["rate>0.95"]

Each expression names an aggregation of the metric summary (``avg``,
``min``, ``med``, ``max``, ``count``, ``rate``, ``value`` or ``p(N)``), a
comparison operator and a number.  The run passes only if every
evaluated threshold holds.  A threshold whose metric (or aggregation) was
never recorded is reported as skipped; it neither passes nor fails the run.

Exit codes follow a three-state convention so that CI can distinguish
"thresholds breached" from "script crashed":

- ``0``: all thresholds passed
- ``1``: at least one threshold was breached
- ``2``: the run itself failed (bad configuration, unhealthy target)

Key Concepts Demonstrated:
- Declarative performance gating
- Parsing a tiny expression language with one regular expression
- Missing data reported, not silently passed or failed
"""

from __future__ import annotations

import operator
import re
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping

from loadcheck.exceptions import ConfigError

# Three-state exit codes so CI can tell "test failed" from "script crashed".
EXIT_PASS = 0
EXIT_THRESHOLD_BREACH = 1
EXIT_SCRIPT_ERROR = 2

_EXPRESSION = re.compile(
    r"^\s*(?P<agg>avg|min|max|med|count|rate|value|p\(\s*(?P<pct>\d+(?:\.\d+)?)\s*\))"
    r"\s*(?P<op><=|>=|==|!=|<|>)\s*(?P<limit>-?\d+(?:\.\d+)?)\s*$"
)

_OPERATORS: dict[str, Callable[[float, float], bool]] = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "==": operator.eq,
    "!=": operator.ne,
}


def _format_pct(value: str) -> str:
    number = float(value)
    return str(int(number)) if number.is_integer() else str(number)


@dataclass(frozen=True)
class Threshold:
    """One parsed ``aggregation operator limit`` expression on a metric."""

    metric: str
    expression: str
    aggregation: str
    op: str
    limit: float

    @classmethod
    def parse(cls, metric: str, expression: str) -> "Threshold":
        """
        Parse *expression* for *metric*.

        Raises:
            ConfigError: If the expression is not understood.
        """
        match = _EXPRESSION.match(str(expression))
        if match is None:
            raise ConfigError(f"Invalid threshold for {metric}: {expression!r}")

        aggregation = match.group("agg")
        if match.group("pct") is not None:
            aggregation = f"p({_format_pct(match.group('pct'))})"
        return cls(
            metric=metric,
            expression=str(expression).strip(),
            aggregation=aggregation,
            op=match.group("op"),
            limit=float(match.group("limit")),
        )

    def check(self, actual: float) -> bool:
        return _OPERATORS[self.op](actual, self.limit)


@dataclass(frozen=True)
class ThresholdResult:
    """
    Outcome of evaluating one threshold.

    ``passed`` is ``None`` when the metric had no data (skipped).
    """

    threshold: Threshold
    actual: float | None
    passed: bool | None

    @property
    def skipped(self) -> bool:
        return self.passed is None

    def as_dict(self) -> dict[str, Any]:
        return {
            "metric": self.threshold.metric,
            "expression": self.threshold.expression,
            "actual": self.actual,
            "status": "SKIP" if self.skipped else ("PASS" if self.passed else "FAIL"),
        }


def parse_thresholds(declared: Mapping[str, Iterable[str]] | None) -> list[Threshold]:
    """Parse a ``{metric: [expression, ...]}`` mapping."""
    parsed: list[Threshold] = []
    for metric, expressions in (declared or {}).items():
        if isinstance(expressions, str):
            expressions = [expressions]
        for expression in expressions:
            parsed.append(Threshold.parse(metric, expression))
    return parsed


def _lookup(values: Mapping[str, Any], aggregation: str) -> float | None:
    value = values.get(aggregation)
    if value is None and aggregation == "p(50)":
        value = values.get("med")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def evaluate_thresholds(
    declared: Mapping[str, Iterable[str]] | Iterable[Threshold] | None,
    metrics: Mapping[str, Mapping[str, Any]],
) -> list[ThresholdResult]:
    """
    Evaluate thresholds against a metric summary.

    Args:
        declared: Either the raw ``{metric: [expression]}`` mapping or
            already-parsed :class:`Threshold` objects.
        metrics: ``{name: {"type": kind, "values": {...}}}``, the shape
            produced by :meth:`MetricRegistry.summary` and
            :meth:`HttpSummary.as_metrics`.
    """
    if declared is None or isinstance(declared, Mapping):
        thresholds = parse_thresholds(declared)
    else:
        thresholds = list(declared)

    results: list[ThresholdResult] = []
    for threshold in thresholds:
        entry = metrics.get(threshold.metric) or {}
        actual = _lookup(entry.get("values") or {}, threshold.aggregation)
        passed = None if actual is None else threshold.check(actual)
        results.append(ThresholdResult(threshold=threshold, actual=actual, passed=passed))
    return results


def thresholds_passed(results: Iterable[ThresholdResult]) -> bool:
    """True when no evaluated threshold failed."""
    return all(result.passed is not False for result in results)


def exit_code_for(results: Iterable[ThresholdResult]) -> int:
    return EXIT_PASS if thresholds_passed(results) else EXIT_THRESHOLD_BREACH


def format_results(results: Iterable[ThresholdResult]) -> str:
    """Human-readable results table for logs and the text report."""
    lines = [
        f"{'Metric':<26}{'Threshold':<16}{'Actual':>12}{'Status':>8}",
        "-" * 62,
    ]
    for result in results:
        actual = "n/a" if result.actual is None else f"{result.actual:.4g}"
        status = result.as_dict()["status"]
        lines.append(f"{result.threshold.metric:<26}{result.threshold.expression:<16}{actual:>12}{status:>8}")
    return "\n".join(lines)
