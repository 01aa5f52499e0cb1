"""
Per-run wiring shared by the Locust users, hooks and the CLI.

A :class:`RunContext` owns everything that exists once per run: the
profile, the metric registry, the run state, the spike monitor, the
workload and the random source.  Each simulated client gets its own
:class:`~loadcheck.scenarios.ScenarioContext` that points at these shared
objects plus its own HTTP session.

Key Concepts Demonstrated:
- Single composition root for the shared run objects
- Stable client indices allocated from one counter
"""

from __future__ import annotations

import itertools
import logging
import random
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable

from loadcheck.analysis import AnalysisReport, HttpSummary, analyze
from loadcheck.client import TargetClient
from loadcheck.metrics import MetricRegistry
from loadcheck.profiles import ProfileSettings
from loadcheck.scenarios import ScenarioContext
from loadcheck.spike import SpikeMonitor
from loadcheck.state import RunState
from loadcheck.workloads import Workload

logger = logging.getLogger(__name__)


@dataclass
class RunContext:
    """Shared objects of one run."""

    profile: ProfileSettings
    host: str
    registry: MetricRegistry
    state: RunState
    monitor: SpikeMonitor
    workload: Workload
    rng: random.Random
    headers: dict[str, str] = field(default_factory=dict)
    think_scale: float = 1.0
    clock: Callable[[], float] = time.monotonic
    aborted: bool = False

    def __post_init__(self) -> None:
        self._indices = itertools.count()
        self._index_lock = threading.Lock()

    @classmethod
    def create(
        cls,
        profile: ProfileSettings,
        host: str,
        *,
        seed: int | None = None,
        think_scale: float = 1.0,
        headers: dict[str, str] | None = None,
        registry: MetricRegistry | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> "RunContext":
        registry = registry or MetricRegistry()
        state = RunState(started_at=clock(), cache_capacity=profile.cache_capacity)
        monitor = SpikeMonitor(
            state,
            registry,
            high_water_mark=profile.high_water_mark,
            dwell_seconds=profile.recovery_dwell_seconds,
        )
        logger.info(
            "Prepared %s run against %s: %s",
            profile.name,
            host,
            ", ".join(profile.plan.describe()) or "no stages",
        )
        return cls(
            profile=profile,
            host=host,
            registry=registry,
            state=state,
            monitor=monitor,
            workload=profile.build_workload(monitor),
            rng=random.Random(seed),
            headers=dict(headers or {}),
            think_scale=think_scale,
            clock=clock,
        )

    def restart_clock(self) -> None:
        """Re-anchor elapsed time at the moment load actually starts."""
        self.state.started_at = self.clock()

    def next_client_index(self) -> int:
        with self._index_lock:
            return next(self._indices)

    def scenario_context(
        self,
        session: Any,
        *,
        pause: Callable[[float], None] = time.sleep,
        label_requests: bool = True,
    ) -> ScenarioContext:
        """Build the context one simulated client runs its scenarios with."""
        client = TargetClient(
            session,
            self.host,
            timeout=self.profile.request_timeout,
            headers=self.headers,
            label_requests=label_requests,
        )
        return ScenarioContext(
            client=client,
            state=self.state,
            registry=self.registry,
            rng=self.rng,
            settings=self.profile.scenario,
            clock=self.clock,
            pause=pause,
            think_scale=self.think_scale,
            client_index=self.next_client_index(),
        )

    def elapsed_minutes(self) -> float:
        return self.state.elapsed_minutes(self.clock())

    def analyze(self, http: HttpSummary) -> AnalysisReport:
        """Run the analysis engine over everything this run collected."""
        elapsed_seconds = self.state.elapsed_seconds(self.clock())
        return analyze(
            http,
            self.registry.summary(duration_seconds=elapsed_seconds or None),
            profile=self.profile.name,
            thresholds=self.profile.thresholds,
            policy=self.profile.analysis,
            state=self.state,
            elapsed_minutes=elapsed_seconds / 60.0,
            target=self.host,
            stages=self.profile.plan.describe(),
        )
