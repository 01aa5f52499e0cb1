"""
Per-profile workloads: what one simulated client does in one iteration.

A workload turns the scenario library into a profile's behaviour.  Each
iteration may pause between scenarios (``ctx.think``) the way a real user
reads a page before clicking on; the pause between iterations is returned
by :meth:`Workload.think_time` and handed to Locust as the user's
``wait_time``.

Key Concepts Demonstrated:
- Weighted scenario selection from a seeded random source
- Think time that adapts to the live user count or elapsed run time
- Spike monitor fed from inside the iteration so every client observes load
"""

from __future__ import annotations

from typing import Mapping

from loadcheck import scenarios
from loadcheck.exceptions import ConfigError
from loadcheck.scenarios import ScenarioContext, weighted_choice
from loadcheck.spike import SpikeMonitor, SpikePhase


class Workload:
    """Base class; subclasses implement :meth:`run_iteration`."""

    name = "base"
    default_think = (1.0, 3.0)

    def __init__(
        self,
        *,
        think_range: tuple[float, float] | None = None,
        weights: Mapping[str, float] | None = None,
    ) -> None:
        self.think_range = tuple(think_range) if think_range else self.default_think
        self.weights = dict(weights or {})

    def run_iteration(self, ctx: ScenarioContext, live_users: int) -> None:
        raise NotImplementedError

    def think_range_for(self, ctx: ScenarioContext, live_users: int) -> tuple[float, float]:
        return self.think_range

    def think_time(self, ctx: ScenarioContext, live_users: int) -> float:
        """Seconds to wait before this client's next iteration."""
        low, high = self.think_range_for(ctx, live_users)
        return ctx.rng.uniform(low, high) * ctx.think_scale


class SmokeWorkload(Workload):
    """Touch every endpoint once per iteration with strict latency checks."""

    name = "smoke"
    default_think = (1.0, 1.0)

    def run_iteration(self, ctx: ScenarioContext, live_users: int) -> None:
        scenarios.health_check(ctx)
        ctx.think(1.0, 1.0)
        scenarios.main_page(ctx)
        scenarios.smoke_checks(ctx)


class LoadWorkload(Workload):
    """Normal browsing traffic with an occasional new post."""

    name = "load"
    default_think = (1.0, 4.0)

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.create_probability = self.weights.get("create", 0.1)

    def run_iteration(self, ctx: ScenarioContext, live_users: int) -> None:
        scenarios.main_page(ctx)
        ctx.think(1.0, 2.0)
        scenarios.browse(ctx, page=1)
        ctx.think(1.0, 3.0)
        scenarios.browse_users(ctx)
        if ctx.rng.random() < self.create_probability:
            ctx.think(1.0, 2.0)
            scenarios.write_post(ctx, label="Load Test")


class StressWorkload(Workload):
    """
    Weighted mix of aggressive traffic patterns.

    Think time shrinks as the live user count grows so the pressure on the
    target keeps rising with the stages.
    """

    name = "stress"
    default_weights = {"read_heavy": 5, "write_heavy": 2, "mixed": 2, "burst": 1}
    # (users above, think range); the first matching row wins
    think_tiers = ((400, (0.0, 0.5)), (200, (0.5, 1.5)))

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        if not self.weights:
            self.weights = dict(self.default_weights)
        unknown = set(self.weights) - set(scenarios.STRESS_PATTERNS)
        if unknown:
            raise ConfigError(f"Unknown stress patterns: {sorted(unknown)}")

    def run_iteration(self, ctx: ScenarioContext, live_users: int) -> None:
        pattern = weighted_choice(ctx.rng, self.weights)
        scenarios.STRESS_PATTERNS[pattern](ctx)

    def think_range_for(self, ctx: ScenarioContext, live_users: int) -> tuple[float, float]:
        for users_above, think in self.think_tiers:
            if live_users > users_above:
                return think
        return self.think_range


class SpikeWorkload(Workload):
    """
    Spike traffic above the high-water mark, probing recovery below it.

    Every iteration reports the live user count to the spike monitor.  While
    the monitor is RECOVERING, low-load iterations run a recovery probe and
    feed the result back so the recovery time can be confirmed.
    """

    name = "spike"
    default_weights = {"read": 70, "write": 20, "integrity": 10}
    spike_think = (0.0, 0.5)

    def __init__(
        self,
        monitor: SpikeMonitor,
        *,
        spike_timeout: float = 15.0,
        integrity_probability: float = 0.2,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.monitor = monitor
        self.spike_timeout = spike_timeout
        self.integrity_probability = integrity_probability
        if not self.weights:
            self.weights = dict(self.default_weights)

    def is_spiking(self, live_users: int) -> bool:
        return live_users > self.monitor.high_water_mark

    def run_iteration(self, ctx: ScenarioContext, live_users: int) -> None:
        phase = self.monitor.observe_concurrency(live_users, ctx.now())

        if self.is_spiking(live_users):
            action = weighted_choice(ctx.rng, self.weights)
            if action == "read":
                scenarios.read_spike(ctx, timeout=self.spike_timeout)
            elif action == "write":
                scenarios.write_post(ctx, label="Spike Test", spike=True)
            else:
                scenarios.integrity_check(ctx)
            return

        if phase is SpikePhase.RECOVERING:
            responsive = scenarios.recovery_probe(ctx)
            self.monitor.record_probe(responsive, ctx.now())

        scenarios.browse(ctx, with_detail=False)
        if ctx.rng.random() < self.integrity_probability:
            scenarios.integrity_check(ctx)

    def think_range_for(self, ctx: ScenarioContext, live_users: int) -> tuple[float, float]:
        if self.is_spiking(live_users):
            return self.spike_think
        return self.think_range


class SoakWorkload(Workload):
    """
    Long-running realistic traffic with periodic health sampling.

    Every ``monitor_every``-th iteration of a client samples memory and
    response time; think time grows with the elapsed run time to mimic
    user engagement tailing off.
    """

    name = "soak"
    default_think = (3.0, 5.0)
    # (elapsed minutes below, think range); past the last row ``late_think`` applies
    think_tiers = ((30, (3.0, 5.0)), (90, (5.0, 10.0)))
    late_think = (7.0, 15.0)

    def __init__(
        self,
        *,
        monitor_every: int = 10,
        resource_probability: float = 0.1,
        users_probability: float = 0.3,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.monitor_every = max(1, monitor_every)
        self.resource_probability = resource_probability
        self.users_probability = users_probability

    def run_iteration(self, ctx: ScenarioContext, live_users: int) -> None:
        scenarios.browse(ctx, page=ctx.rng.randint(1, 3))
        if ctx.rng.random() < self.users_probability:
            ctx.think(1.0, 2.0)
            scenarios.browse_users(ctx)

        if ctx.rng.random() < self.resource_probability:
            scenarios.resource_intensive_task(ctx)

        if ctx.iteration % self.monitor_every == 0:
            scenarios.health_monitor(ctx)
            scenarios.performance_check(ctx)

    def think_range_for(self, ctx: ScenarioContext, live_users: int) -> tuple[float, float]:
        elapsed = ctx.state.elapsed_minutes(ctx.now())
        for minutes_below, think in self.think_tiers:
            if elapsed < minutes_below:
                return think
        return self.late_think


WORKLOADS: dict[str, type[Workload]] = {
    "smoke": SmokeWorkload,
    "load": LoadWorkload,
    "stress": StressWorkload,
    "spike": SpikeWorkload,
    "soak": SoakWorkload,
}
