"""
Post-run analysis: status, diagnosis, recommendations and verdict.

The engine reads three things once the run has finished:

- an :class:`HttpSummary` built from Locust's aggregate request stats
- the custom metric summary produced by the run's ``MetricRegistry``
- the run state (spike cycles, checkpoints, baselines)

and produces an :class:`AnalysisReport`:

1. **System status**: every breaking-point rule is evaluated and the
   most severe match wins (``HEALTHY < WARNING < SLOW < DEGRADED <
   CRITICAL``).
2. **Diagnosis**: one finding per metric that has data, graded OK,
   WARNING or CRITICAL, plus an overall stability verdict for runs that
   sampled memory.
3. **Recommendations**: one block of advice per breached trigger.  A run
   with nothing to report gets exactly one "no action needed" entry.
4. **Verdict**: pass/fail from the profile's declared thresholds only.

Every cut-off lives in :class:`AnalysisPolicy`, which profiles can
override from YAML.

Key Concepts Demonstrated:
- Ordered enum for "worst match wins" severity
- Policy object instead of magic numbers scattered through the code
- Pure functions over plain data so the heuristics are unit-testable
"""

from __future__ import annotations

import enum
import logging
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

from loadcheck import metrics
from loadcheck.exceptions import ConfigError
from loadcheck.state import RunState
from loadcheck.thresholds import ThresholdResult, evaluate_thresholds, thresholds_passed

logger = logging.getLogger(__name__)

NO_ACTION_NEEDED = "System performs well under the tested load - no immediate action needed"


class SystemStatus(enum.IntEnum):
    HEALTHY = 0
    WARNING = 1
    SLOW = 2
    DEGRADED = 3
    CRITICAL = 4


class Level(str, enum.Enum):
    """Grade of a single diagnosis finding."""

    OK = "OK"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


class MemoryTier(str, enum.Enum):
    STABLE = "stable"
    MODERATE = "moderate"
    LEAK_SUSPECTED = "leak-suspected"


class Stability(str, enum.Enum):
    EXCELLENT = "EXCELLENT"
    GOOD = "GOOD"
    ATTENTION_NEEDED = "ATTENTION NEEDED"


@dataclass(frozen=True)
class BreakingPointRule:
    """``status`` applies when ``metric`` (an HttpSummary field) exceeds ``above``."""

    status: SystemStatus
    metric: str
    above: float
    description: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BreakingPointRule":
        try:
            return cls(
                status=SystemStatus[str(data["status"]).upper()],
                metric=str(data["metric"]),
                above=float(data["above"]),
                description=str(data.get("description", "")),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid breaking-point rule: {dict(data)!r}") from exc


DEFAULT_BREAKING_POINTS = (
    BreakingPointRule(SystemStatus.CRITICAL, "failure_rate", 0.5, "Error rate exceeded 50%"),
    BreakingPointRule(SystemStatus.DEGRADED, "failure_rate", 0.3, "Error rate exceeded 30%"),
    BreakingPointRule(SystemStatus.SLOW, "p95_ms", 5000, "95th percentile response time exceeded 5 seconds"),
    BreakingPointRule(SystemStatus.WARNING, "p99_ms", 10000, "99th percentile response time exceeded 10 seconds"),
)


@dataclass
class AnalysisPolicy:
    """
    Every numeric cut-off used by the analysis engine.

    Tier pairs are ``(ok_limit, warning_limit)``: a value under the first
    is OK, under the second is a WARNING, anything else is CRITICAL.  For
    ``integrity_tiers`` the comparison is reversed (higher is better).
    """

    breaking_points: tuple[BreakingPointRule, ...] = DEFAULT_BREAKING_POINTS

    error_rate_tiers: tuple[float, float] = (0.1, 0.3)
    integrity_tiers: tuple[float, float] = (0.99, 0.95)
    recovery_tiers_ms: tuple[float, float] = (5000.0, 15000.0)
    memory_tiers_mb_per_hour: tuple[float, float] = (10.0, 50.0)
    degradation_tiers: tuple[float, float] = (0.05, 0.15)
    latency_tiers_ms: tuple[float, float] = (2000.0, 5000.0)

    stability_error_tiers: tuple[float, float] = (0.01, 0.05)

    advice_error_rate: float = 0.1
    advice_p95_ms: float = 3000.0
    advice_p99_ms: float = 10000.0
    advice_slow_requests: float = 100
    advice_spike_errors: float = 100
    advice_recovery_ms: float = 5000.0
    advice_integrity_rate: float = 0.99
    advice_memory_mb_per_hour: float = 10.0
    advice_degradation_rate: float = 0.10
    advice_leak_events: float = 10

    @classmethod
    def from_dict(cls, overrides: Mapping[str, Any] | None) -> "AnalysisPolicy":
        """
        Build a policy from YAML overrides.

        Raises:
            ConfigError: For unknown keys or malformed values.
        """
        overrides = dict(overrides or {})
        known = {f.name for f in fields(cls)}
        unknown = set(overrides) - known
        if unknown:
            raise ConfigError(f"Unknown analysis settings: {sorted(unknown)}")

        defaults = cls()
        values: dict[str, Any] = {}
        for key, value in overrides.items():
            if key == "breaking_points":
                values[key] = tuple(BreakingPointRule.from_dict(rule) for rule in value or [])
            elif isinstance(getattr(defaults, key), tuple):
                try:
                    low, high = value
                    values[key] = (float(low), float(high))
                except (TypeError, ValueError) as exc:
                    raise ConfigError(f"{key} must be a pair of numbers, got {value!r}") from exc
            else:
                try:
                    values[key] = float(value)
                except (TypeError, ValueError) as exc:
                    raise ConfigError(f"{key} must be a number, got {value!r}") from exc
        return cls(**values)


@dataclass
class HttpSummary:
    """Aggregate raw HTTP statistics of a run, as reported by the host runtime."""

    total_requests: int = 0
    failed_requests: int = 0
    failure_rate: float = 0.0
    avg_ms: float = 0.0
    min_ms: float = 0.0
    med_ms: float = 0.0
    max_ms: float = 0.0
    p90_ms: float = 0.0
    p95_ms: float = 0.0
    p99_ms: float = 0.0
    rps: float = 0.0
    bytes_received: int = 0
    duration_seconds: float = 0.0
    peak_users: int = 0

    @classmethod
    def from_locust_stats(
        cls,
        entry: Any,
        *,
        peak_users: int = 0,
        duration_seconds: float | None = None,
    ) -> "HttpSummary":
        """
        Build a summary from Locust's ``stats.total`` entry.

        Args:
            entry: A ``locust.stats.StatsEntry`` (usually ``env.stats.total``).
            peak_users: Highest concurrency observed during the run.
            duration_seconds: Run duration; derived from the entry's first
                and last request timestamps when omitted.
        """
        if duration_seconds is None:
            start = getattr(entry, "start_time", None) or 0.0
            last = getattr(entry, "last_request_timestamp", None) or start
            duration_seconds = max(0.0, last - start)

        if not entry.num_requests:
            return cls(duration_seconds=duration_seconds, peak_users=peak_users)

        return cls(
            total_requests=entry.num_requests,
            failed_requests=entry.num_failures,
            failure_rate=entry.fail_ratio,
            avg_ms=entry.avg_response_time,
            min_ms=entry.min_response_time or 0.0,
            med_ms=entry.median_response_time,
            max_ms=entry.max_response_time,
            p90_ms=entry.get_response_time_percentile(0.90),
            p95_ms=entry.get_response_time_percentile(0.95),
            p99_ms=entry.get_response_time_percentile(0.99),
            rps=entry.total_rps,
            bytes_received=entry.total_content_length,
            duration_seconds=duration_seconds,
            peak_users=peak_users,
        )

    def as_metrics(self) -> dict[str, dict[str, Any]]:
        """Expose the raw stats under the metric names thresholds refer to."""
        if not self.total_requests:
            duration = {"count": 0}
            failed: dict[str, Any] = {"rate": None, "passes": 0, "fails": 0, "total": 0}
        else:
            duration = {
                "count": self.total_requests,
                "avg": self.avg_ms,
                "min": self.min_ms,
                "med": self.med_ms,
                "max": self.max_ms,
                "p(90)": self.p90_ms,
                "p(95)": self.p95_ms,
                "p(99)": self.p99_ms,
            }
            failed = {
                "rate": self.failure_rate,
                "passes": self.failed_requests,
                "fails": self.total_requests - self.failed_requests,
                "total": self.total_requests,
            }
        return {
            "http_req_duration": {"type": "trend", "values": duration},
            "http_req_failed": {"type": "rate", "values": failed},
            "http_reqs": {"type": "counter", "values": {"count": self.total_requests, "rate": self.rps}},
            "data_received": {"type": "counter", "values": {"count": self.bytes_received}},
            "vus_max": {"type": "gauge", "values": {"value": self.peak_users}},
        }


@dataclass(frozen=True)
class Finding:
    """One graded diagnosis line."""

    metric: str
    level: Level
    message: str

    def __str__(self) -> str:
        return f"[{self.level.value}] {self.message}"


@dataclass
class MemoryAnalysis:
    growth_mb: float
    growth_per_hour: float
    tier: MemoryTier
    samples: int


@dataclass
class AnalysisReport:
    """Everything the report writers need, already reduced to plain values."""

    profile: str
    status: SystemStatus
    breaking_point: str | None
    findings: list[Finding]
    recommendations: list[str]
    thresholds: list[ThresholdResult]
    passed: bool
    http: HttpSummary
    metrics: dict[str, dict[str, Any]]
    memory: MemoryAnalysis | None = None
    stability: Stability | None = None
    run_state: dict[str, Any] = field(default_factory=dict)
    stages: list[str] = field(default_factory=list)
    target: str = ""
    generated_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def exit_code(self) -> int:
        return 0 if self.passed else 1

    def as_dict(self) -> dict[str, Any]:
        return {
            "profile": self.profile,
            "target": self.target,
            "generated_at": self.generated_at,
            "status": self.status.name,
            "breaking_point": self.breaking_point,
            "passed": self.passed,
            "stages": list(self.stages),
            "http": asdict(self.http),
            "diagnosis": [
                {"metric": f.metric, "level": f.level.value, "message": f.message} for f in self.findings
            ],
            "stability": self.stability.value if self.stability else None,
            "memory": (
                {**asdict(self.memory), "tier": self.memory.tier.value} if self.memory else None
            ),
            "recommendations": list(self.recommendations),
            "thresholds": [result.as_dict() for result in self.thresholds],
            "metrics": self.metrics,
            "run_state": self.run_state,
        }


# ---- helpers ---------------------------------------------------------------


def _value(summary: Mapping[str, Mapping[str, Any]], name: str, key: str) -> float | None:
    values = (summary.get(name) or {}).get("values") or {}
    value = values.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _grade(value: float, tiers: tuple[float, float], *, higher_is_better: bool = False) -> Level:
    ok_limit, warning_limit = tiers
    if higher_is_better:
        if value > ok_limit:
            return Level.OK
        if value > warning_limit:
            return Level.WARNING
        return Level.CRITICAL
    if value < ok_limit:
        return Level.OK
    if value < warning_limit:
        return Level.WARNING
    return Level.CRITICAL


# ---- status ------------------------------------------------------------------


def classify_status(http: HttpSummary, policy: AnalysisPolicy | None = None) -> tuple[SystemStatus, str | None]:
    """
    Evaluate every breaking-point rule and return the most severe match.

    Returns:
        ``(status, description)``; the description is ``None`` when healthy.
    """
    policy = policy or AnalysisPolicy()
    status, description = SystemStatus.HEALTHY, None
    for rule in policy.breaking_points:
        actual = getattr(http, rule.metric, None)
        if actual is None:
            raise ConfigError(f"Breaking-point rule refers to unknown metric {rule.metric!r}")
        if actual > rule.above and rule.status > status:
            status, description = rule.status, rule.description
    return status, description


# ---- memory ------------------------------------------------------------------


def memory_growth_per_hour(growth_mb: float, elapsed_minutes: float) -> float:
    if elapsed_minutes <= 0:
        return 0.0
    return growth_mb / elapsed_minutes * 60.0


def classify_memory(growth_per_hour: float, policy: AnalysisPolicy | None = None) -> MemoryTier:
    """Stable below the first tier, moderate below the second, else leak-suspected."""
    stable_below, moderate_below = (policy or AnalysisPolicy()).memory_tiers_mb_per_hour
    if growth_per_hour < stable_below:
        return MemoryTier.STABLE
    if growth_per_hour < moderate_below:
        return MemoryTier.MODERATE
    return MemoryTier.LEAK_SUSPECTED


def analyze_memory(
    metrics_summary: Mapping[str, Mapping[str, Any]],
    elapsed_minutes: float,
    policy: AnalysisPolicy | None = None,
) -> MemoryAnalysis | None:
    """Memory verdict from the ``memory_usage`` trend; ``None`` without samples."""
    samples = _value(metrics_summary, metrics.MEMORY_USAGE, "count")
    if not samples:
        return None
    growth = (_value(metrics_summary, metrics.MEMORY_USAGE, "max") or 0.0) - (
        _value(metrics_summary, metrics.MEMORY_USAGE, "min") or 0.0
    )
    per_hour = memory_growth_per_hour(growth, elapsed_minutes)
    return MemoryAnalysis(
        growth_mb=growth,
        growth_per_hour=per_hour,
        tier=classify_memory(per_hour, policy),
        samples=int(samples),
    )


# ---- diagnosis -----------------------------------------------------------------


def build_diagnosis(
    http: HttpSummary,
    metrics_summary: Mapping[str, Mapping[str, Any]],
    memory: MemoryAnalysis | None = None,
    policy: AnalysisPolicy | None = None,
) -> list[Finding]:
    """One graded finding per metric that has data."""
    policy = policy or AnalysisPolicy()
    findings: list[Finding] = []

    if http.total_requests:
        level = _grade(http.failure_rate, policy.error_rate_tiers)
        text = {
            Level.OK: "error rate is within tolerance",
            Level.WARNING: "some degradation, errors are elevated",
            Level.CRITICAL: "the system struggled, errors are high",
        }[level]
        findings.append(Finding("error_rate", level, f"Error rate {http.failure_rate:.2%}: {text}"))

    integrity = _value(metrics_summary, metrics.DATA_INTEGRITY, "rate")
    if integrity is not None:
        level = _grade(integrity, policy.integrity_tiers, higher_is_better=True)
        text = {
            Level.OK: "data stayed consistent",
            Level.WARNING: "good, with a few inconsistencies",
            Level.CRITICAL: "data consistency concerns",
        }[level]
        findings.append(Finding("data_integrity", level, f"Data integrity {integrity:.2%}: {text}"))

    recovery = _value(metrics_summary, metrics.RECOVERY_TIME, "avg")
    if recovery is not None:
        level = _grade(recovery, policy.recovery_tiers_ms)
        text = {
            Level.OK: "fast recovery",
            Level.WARNING: "moderate recovery",
            Level.CRITICAL: "slow recovery",
        }[level]
        findings.append(Finding("recovery_time", level, f"Average recovery {recovery:.0f}ms: {text}"))

    if memory is not None:
        level = _grade(memory.growth_per_hour, policy.memory_tiers_mb_per_hour)
        text = {
            Level.OK: "memory usage is stable",
            Level.WARNING: "moderate memory growth",
            Level.CRITICAL: "significant memory growth, a leak is likely",
        }[level]
        findings.append(
            Finding("memory_growth", level, f"Memory growth {memory.growth_per_hour:.2f} MB/h: {text}")
        )

    degradation = _value(metrics_summary, metrics.PERFORMANCE_DEGRADATION, "rate")
    if degradation is not None:
        level = _grade(degradation, policy.degradation_tiers)
        text = {
            Level.OK: "response times stayed consistent",
            Level.WARNING: "some performance degradation",
            Level.CRITICAL: "significant performance degradation",
        }[level]
        findings.append(
            Finding("performance_degradation", level, f"Degraded samples {degradation:.2%}: {text}")
        )

    if http.total_requests:
        level = _grade(http.p95_ms, policy.latency_tiers_ms)
        text = {
            Level.OK: "response times are acceptable",
            Level.WARNING: "response times are elevated",
            Level.CRITICAL: "response times are poor",
        }[level]
        findings.append(Finding("p95_latency", level, f"p95 latency {http.p95_ms:.0f}ms: {text}"))

    return findings


def stability_verdict(
    memory: MemoryAnalysis | None,
    metrics_summary: Mapping[str, Mapping[str, Any]],
    http: HttpSummary,
    policy: AnalysisPolicy | None = None,
) -> Stability | None:
    """Overall verdict for runs that sampled memory; ``None`` otherwise."""
    if memory is None:
        return None
    policy = policy or AnalysisPolicy()
    degradation = _value(metrics_summary, metrics.PERFORMANCE_DEGRADATION, "rate") or 0.0
    levels = (
        _grade(memory.growth_per_hour, policy.memory_tiers_mb_per_hour),
        _grade(degradation, policy.degradation_tiers),
        _grade(http.failure_rate, policy.stability_error_tiers),
    )
    if all(level is Level.OK for level in levels):
        return Stability.EXCELLENT
    if all(level is not Level.CRITICAL for level in levels):
        return Stability.GOOD
    return Stability.ATTENTION_NEEDED


# ---- recommendations -------------------------------------------------------------


def build_recommendations(
    http: HttpSummary,
    metrics_summary: Mapping[str, Mapping[str, Any]],
    status: SystemStatus,
    memory: MemoryAnalysis | None = None,
    policy: AnalysisPolicy | None = None,
) -> list[str]:
    """
    Collect advice for every breached trigger, without duplicates.

    Returns:
        The advice list, or ``[NO_ACTION_NEEDED]`` when nothing was breached.
    """
    policy = policy or AnalysisPolicy()
    advice: list[str] = []

    def add(*lines: str) -> None:
        for line in lines:
            if line not in advice:
                advice.append(line)

    if http.failure_rate > policy.advice_error_rate:
        add(
            "Implement circuit breakers to handle failures gracefully",
            "Add retry logic with exponential backoff",
            "Scale horizontally to distribute load",
        )
    if http.p95_ms > policy.advice_p95_ms:
        add(
            "Optimize database queries and add proper indexing",
            "Implement caching for frequently accessed data",
            "Consider read replicas for read-heavy traffic",
        )
    if status in (SystemStatus.CRITICAL, SystemStatus.DEGRADED):
        add(
            "Implement rate limiting to protect the system from overload",
            "Configure auto-scaling based on load",
            "Review resource-intensive operations",
        )

    slow = _value(metrics_summary, metrics.SLOW_REQUESTS, "count") or 0.0
    if slow > policy.advice_slow_requests:
        add(
            "Analyze slow query logs",
            "Implement request timeout handling",
            "Consider asynchronous processing for heavy operations",
        )

    spike_errors = _value(metrics_summary, metrics.SPIKE_ERRORS, "count") or 0.0
    if spike_errors > policy.advice_spike_errors:
        add(
            "Implement request queuing to absorb traffic spikes",
            "Add connection pooling and rate limiting",
            "Configure more aggressive auto-scaling policies",
        )

    recovery = _value(metrics_summary, metrics.RECOVERY_TIME, "avg")
    if recovery is not None and recovery > policy.advice_recovery_ms:
        add(
            "Optimize system recovery mechanisms",
            "Add health-check based routing",
            "Use circuit breakers to shed load and recover faster",
        )

    integrity = _value(metrics_summary, metrics.DATA_INTEGRITY, "rate")
    if integrity is not None and integrity < policy.advice_integrity_rate:
        add(
            "Use database transactions for write operations",
            "Add retry logic for database writes",
            "Add validation layers for data consistency",
        )

    if http.p99_ms > policy.advice_p99_ms:
        add(
            "Implement request timeout handling",
            "Add caching layers for frequently accessed data",
            "Optimize database queries and add proper indexing",
        )

    if memory is not None and memory.growth_per_hour > policy.advice_memory_mb_per_hour:
        add(
            "Investigate potential memory leaks",
            "Review object lifecycle and cleanup",
            "Monitor garbage collection behaviour",
        )

    degradation = _value(metrics_summary, metrics.PERFORMANCE_DEGRADATION, "rate")
    if degradation is not None and degradation > policy.advice_degradation_rate:
        add(
            "Analyze performance bottlenecks over time",
            "Review resource cleanup processes",
            "Consider connection pooling improvements",
        )

    leaks = _value(metrics_summary, metrics.POTENTIAL_LEAKS, "count") or 0.0
    if leaks > policy.advice_leak_events:
        add(
            "Profile memory usage in detail",
            "Check for unclosed connections or file handles",
            "Review caching strategies",
        )

    return advice or [NO_ACTION_NEEDED]


# ---- entry point -----------------------------------------------------------------


def analyze(
    http: HttpSummary,
    metrics_summary: Mapping[str, Mapping[str, Any]],
    *,
    profile: str = "",
    thresholds: Mapping[str, Iterable[str]] | None = None,
    policy: AnalysisPolicy | None = None,
    state: RunState | None = None,
    elapsed_minutes: float | None = None,
    target: str = "",
    stages: list[str] | None = None,
) -> AnalysisReport:
    """
    Produce the full analysis of a finished run.

    Args:
        http: Raw HTTP aggregate stats.
        metrics_summary: ``MetricRegistry.summary()`` output.
        profile: Profile name, for the report header.
        thresholds: The profile's declared thresholds.
        policy: Cut-offs; defaults to :class:`AnalysisPolicy`.
        state: Run state, included in the report as a snapshot.
        elapsed_minutes: Run duration used for memory-per-hour maths;
            defaults to the HTTP summary's duration.
        target: Base URL of the target.
        stages: Human-readable stage descriptions.
    """
    policy = policy or AnalysisPolicy()
    if elapsed_minutes is None:
        elapsed_minutes = http.duration_seconds / 60.0

    status, breaking_point = classify_status(http, policy)
    memory = analyze_memory(metrics_summary, elapsed_minutes, policy)
    findings = build_diagnosis(http, metrics_summary, memory, policy)
    recommendations = build_recommendations(http, metrics_summary, status, memory, policy)
    stability = stability_verdict(memory, metrics_summary, http, policy)

    all_metrics = {**dict(metrics_summary), **http.as_metrics()}
    results = evaluate_thresholds(thresholds, all_metrics)
    passed = thresholds_passed(results)

    if status is not SystemStatus.HEALTHY:
        logger.warning("System status %s: %s", status.name, breaking_point)
    logger.info(
        "Analysis of %s: status=%s, thresholds %s",
        profile or "run",
        status.name,
        "passed" if passed else "failed",
    )

    return AnalysisReport(
        profile=profile,
        status=status,
        breaking_point=breaking_point,
        findings=findings,
        recommendations=recommendations,
        thresholds=results,
        passed=passed,
        http=http,
        metrics=all_metrics,
        memory=memory,
        stability=stability,
        run_state=state.snapshot() if state is not None else {},
        stages=list(stages or []),
        target=target,
    )
