"""
End-to-end runs: real Locust runners in library mode against the stub target.

Each test drives a short profile through ``execute_run`` (stage shape,
simulated clients, hooks, analysis and report writing) and asserts on the
final analysis and the files written.

Key SDET Concepts Demonstrated:
- Full-stack runs without spawning a separate process
- Short stage plans so the suite stays fast
- Fault injection at the target to exercise the failing path
"""

import dataclasses

import pytest

from loadcheck.analysis import NO_ACTION_NEEDED, SystemStatus
from loadcheck.cli import execute_run
from loadcheck.profiles import load_profile
from loadcheck.report import load_results
from loadcheck.stages import StagePlan

pytestmark = pytest.mark.e2e


def short_profile(name, *, duration="3s", users=2):
    """Packaged profile with its stage plan replaced by a short plateau."""
    return dataclasses.replace(
        load_profile(name),
        plan=StagePlan.from_list([{"duration": duration, "target": users, "kind": "plateau"}]),
    )


def run(profile, stub, tmp_path):
    return execute_run(
        profile,
        stub.url,
        seed=7,
        think_scale=0.05,
        stop_timeout=2,
        results_dir=tmp_path,
    )


class TestSmokeRun:
    """Smoke profile against a healthy and a failing target."""

    def test_healthy_target_passes(self, stub, tmp_path):
        """Test that a healthy target yields HEALTHY, a pass and no advice."""
        # Act
        report = run(short_profile("smoke"), stub, tmp_path)

        # Assert
        assert report.http.total_requests > 0
        assert report.status is SystemStatus.HEALTHY
        assert report.passed is True
        assert report.exit_code == 0
        assert report.recommendations == [NO_ACTION_NEEDED]
        assert report.http.peak_users >= 1
        for suffix in ("summary.txt", "report.html", "results.json"):
            assert (tmp_path / f"smoke-{suffix}").exists()

    def test_failing_target_is_critical(self, stub, tmp_path):
        """Test that a target failing every request is CRITICAL and breaches thresholds."""
        # Arrange
        stub.controls.failure_rate = 1.0

        # Act
        report = run(short_profile("smoke"), stub, tmp_path)

        # Assert
        assert report.status is SystemStatus.CRITICAL
        assert report.passed is False
        assert report.exit_code == 1
        assert "Implement circuit breakers to handle failures gracefully" in report.recommendations
        data = load_results(tmp_path / "smoke-results.json")
        assert data["passed"] is False
        assert any(result["status"] == "FAIL" for result in data["thresholds"])


class TestOtherProfiles:
    """Short runs of the remaining workloads."""

    def test_load_run_writes_and_browses(self, stub, tmp_path):
        # Arrange
        profile = short_profile("load", users=3)
        profile.weights = {"create": 1.0}
        profile.scenario.like_probability = 1.0

        # Act
        report = run(profile, stub, tmp_path)

        # Assert
        assert report.passed is True
        assert report.run_state["created_entities"] >= 1
        assert report.metrics["api_duration"]["values"]["count"] > 0

    def test_soak_run_samples_memory(self, stub, tmp_path):
        """Test that a soak run samples memory and reaches a stability verdict."""
        # Arrange
        stub.controls.heap_used = [50 * 1024 * 1024]
        profile = short_profile("soak")
        profile.workload_options = {**profile.workload_options, "monitor_every": 1}

        # Act
        report = run(profile, stub, tmp_path)

        # Assert
        assert report.memory is not None
        assert report.stability is not None
        assert report.run_state["checkpoints"]

    def test_spike_run_tracks_recovery_and_integrity(self, stub, tmp_path):
        """Test that a spike run completes a recovery cycle and verifies the posts it wrote."""
        # Arrange
        base = load_profile("spike")
        profile = dataclasses.replace(
            base,
            plan=StagePlan.from_list(
                [
                    {"duration": "2s", "target": 4, "kind": "plateau"},
                    {"duration": "3s", "target": 1, "kind": "plateau"},
                ]
            ),
            high_water_mark=2,
            recovery_dwell_seconds=0,
            weights={"write": 1.0, "integrity": 1.0},
            workload_options={**base.workload_options, "integrity_probability": 1.0},
        )

        # Act
        report = run(profile, stub, tmp_path)

        # Assert
        assert report.profile == "spike"
        assert report.http.peak_users > 2
        assert len(report.run_state["spike_cycles"]) >= 1
        assert report.metrics["recovery_time"]["values"]["count"] >= 1
        assert report.run_state["created_entities"] > 0
        assert report.metrics["data_integrity"]["values"]["total"] >= 1
        assert report.metrics["data_integrity"]["values"]["rate"] == 1.0
        assert 0 < report.run_state["verified_entities"] <= report.run_state["created_entities"]
