"""
Unit tests for per-profile workloads.

Scenario functions are replaced with recorders so these tests check which
scenarios a workload chooses, never what the scenarios do over HTTP.

Key SDET Concepts Demonstrated:
- Test doubles via ``monkeypatch`` at the module boundary
- Seeded random sources for reproducible weighted draws
- Think-time tiers checked at their boundaries
"""

import random

import pytest

from loadcheck import scenarios
from loadcheck.exceptions import ConfigError
from loadcheck.scenarios import ScenarioContext, weighted_choice
from loadcheck.spike import SpikeMonitor, SpikePhase
from loadcheck.workloads import (
    WORKLOADS,
    LoadWorkload,
    SmokeWorkload,
    SoakWorkload,
    SpikeWorkload,
    StressWorkload,
)

pytestmark = pytest.mark.unit


@pytest.fixture
def calls(monkeypatch):
    """Replace every scenario the workloads use with a call recorder."""
    recorded = []

    def recorder(name, result=True):
        def _scenario(ctx, *args, **kwargs):
            recorded.append(name)
            return result

        return _scenario

    for name in (
        "health_check",
        "main_page",
        "smoke_checks",
        "browse",
        "browse_users",
        "write_post",
        "read_spike",
        "integrity_check",
        "resource_intensive_task",
        "health_monitor",
        "performance_check",
    ):
        monkeypatch.setattr(scenarios, name, recorder(name))
    monkeypatch.setattr(scenarios, "recovery_probe", recorder("recovery_probe", result=True))
    for name in list(scenarios.STRESS_PATTERNS):
        monkeypatch.setitem(scenarios.STRESS_PATTERNS, name, recorder(name))
    return recorded


@pytest.fixture
def ctx(run_state, registry, clock):
    return ScenarioContext(
        client=None,
        state=run_state,
        registry=registry,
        rng=random.Random(99),
        clock=clock,
        pause=lambda seconds: None,
    )


class TestWeightedChoice:
    """Tests for weighted scenario selection."""

    def test_distribution_follows_weights(self):
        """Test that a 70/20/10 split is drawn roughly in proportion."""
        # Arrange
        rng = random.Random(1)
        weights = {"read": 70, "write": 20, "integrity": 10}

        # Act
        draws = [weighted_choice(rng, weights) for _ in range(5000)]

        # Assert
        assert 0.65 < draws.count("read") / 5000 < 0.75
        assert 0.07 < draws.count("integrity") / 5000 < 0.13

    def test_zero_weights_are_never_drawn(self):
        rng = random.Random(1)
        assert {weighted_choice(rng, {"a": 1, "b": 0}) for _ in range(100)} == {"a"}

    def test_no_positive_weight_raises(self):
        with pytest.raises(ValueError):
            weighted_choice(random.Random(1), {"a": 0})


class TestSmokeAndLoad:
    """Tests for the simple workloads."""

    def test_smoke_iteration(self, ctx, calls):
        SmokeWorkload().run_iteration(ctx, live_users=1)
        assert calls == ["health_check", "main_page", "smoke_checks"]

    def test_load_always_creates_with_probability_one(self, ctx, calls):
        """Test that the create weight is the probability of writing a post."""
        # Arrange
        workload = LoadWorkload(weights={"create": 1.0})

        # Act
        workload.run_iteration(ctx, live_users=10)

        # Assert
        assert calls == ["main_page", "browse", "browse_users", "write_post"]

    def test_load_never_creates_with_probability_zero(self, ctx, calls):
        LoadWorkload(weights={"create": 0}).run_iteration(ctx, live_users=10)
        assert "write_post" not in calls

    def test_think_time_is_scaled(self, ctx):
        """Test that think_scale shrinks the pause between iterations."""
        # Arrange
        workload = LoadWorkload(think_range=(2.0, 2.0))
        ctx.think_scale = 0.5

        # Act
        pause = workload.think_time(ctx, live_users=10)

        # Assert
        assert pause == pytest.approx(1.0)

    def test_zero_scale_means_no_pause(self, ctx):
        ctx.think_scale = 0
        assert SmokeWorkload().think_time(ctx, live_users=1) == 0


class TestStress:
    """Tests for the stress workload."""

    def test_runs_a_weighted_pattern(self, ctx, calls):
        workload = StressWorkload(weights={"burst": 1})
        workload.run_iteration(ctx, live_users=100)
        assert calls == ["burst"]

    def test_default_weights(self):
        assert StressWorkload().weights == {"read_heavy": 5, "write_heavy": 2, "mixed": 2, "burst": 1}

    def test_unknown_pattern_rejected(self):
        with pytest.raises(ConfigError):
            StressWorkload(weights={"teleport": 1})

    @pytest.mark.parametrize(
        "live,expected",
        [(100, (1.0, 3.0)), (200, (1.0, 3.0)), (201, (0.5, 1.5)), (400, (0.5, 1.5)), (401, (0.0, 0.5))],
    )
    def test_think_tightens_with_load(self, ctx, live, expected):
        workload = StressWorkload(think_range=(1.0, 3.0))
        assert workload.think_range_for(ctx, live) == expected


class TestSpike:
    """Tests for the spike workload and its monitor wiring."""

    @pytest.fixture
    def monitor(self, run_state, registry):
        return SpikeMonitor(run_state, registry, high_water_mark=100, dwell_seconds=0)

    def test_spiking_iteration_runs_one_spike_action(self, ctx, calls, monitor):
        """Test that above the mark a single weighted spike action runs."""
        # Arrange
        workload = SpikeWorkload(monitor, weights={"read": 1})

        # Act
        workload.run_iteration(ctx, live_users=300)

        # Assert
        assert calls == ["read_spike"]
        assert monitor.phase is SpikePhase.SPIKING
        assert workload.think_range_for(ctx, 300) == (0.0, 0.5)

    def test_recovering_iteration_probes_and_confirms(self, ctx, calls, monitor, registry, clock):
        """Test that the first low-load iteration after a spike probes recovery."""
        # Arrange
        workload = SpikeWorkload(monitor, integrity_probability=0)
        workload.run_iteration(ctx, live_users=300)
        calls.clear()
        clock.advance(30)

        # Act
        workload.run_iteration(ctx, live_users=10)

        # Assert
        assert calls == ["recovery_probe", "browse"]
        assert monitor.phase is SpikePhase.NORMAL
        assert registry.trend("recovery_time").summary()["count"] == 1

    def test_normal_iteration_does_not_probe(self, ctx, calls, monitor):
        workload = SpikeWorkload(monitor, integrity_probability=1.0)
        workload.run_iteration(ctx, live_users=10)
        assert calls == ["browse", "integrity_check"]


class TestSoak:
    """Tests for the soak workload."""

    def test_monitoring_every_nth_iteration(self, ctx, calls):
        """Test that health and performance sampling happen on iteration 0, 10, ..."""
        # Arrange
        workload = SoakWorkload(monitor_every=10, resource_probability=0, users_probability=0)

        # Act
        for iteration in range(12):
            ctx.iteration = iteration
            workload.run_iteration(ctx, live_users=50)

        # Assert
        assert calls.count("browse") == 12
        assert calls.count("health_monitor") == 2
        assert calls.count("performance_check") == 2
        assert "resource_intensive_task" not in calls

    @pytest.mark.parametrize("minutes,expected", [(0, (3.0, 5.0)), (45, (5.0, 10.0)), (120, (7.0, 15.0))])
    def test_think_grows_with_elapsed_time(self, ctx, clock, minutes, expected):
        clock.advance(minutes * 60)
        assert SoakWorkload().think_range_for(ctx, live_users=50) == expected


def test_every_profile_has_a_workload():
    assert set(WORKLOADS) == {"smoke", "load", "stress", "spike", "soak"}
