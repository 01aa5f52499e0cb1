"""
Unit tests for the command-line interface and the run context.

Key SDET Concepts Demonstrated:
- Exit-code contract of a CI-facing tool (0 / 1 / 2)
- ``capsys`` for asserting on printed output
"""

import json
import random

import pytest

from loadcheck.cli import build_parser, main
from loadcheck.profiles import load_profile
from loadcheck.run import RunContext
from loadcheck.workloads import SmokeWorkload

pytestmark = pytest.mark.unit


def write_dump(tmp_path, p95, error_rate):
    path = tmp_path / "smoke-results.json"
    path.write_text(
        json.dumps(
            {
                "metrics": {
                    "http_req_duration": {"type": "trend", "values": {"p(95)": p95}},
                    "http_req_failed": {"type": "rate", "values": {"rate": error_rate}},
                    "errors": {"type": "rate", "values": {"rate": error_rate}},
                }
            }
        ),
        encoding="utf-8",
    )
    return path


class TestCheckCommand:
    """Tests for ``loadcheck check``."""

    def test_passing_dump_exits_zero(self, tmp_path, capsys):
        # Arrange
        path = write_dump(tmp_path, p95=120.0, error_rate=0.0)

        # Act
        code = main(["check", str(path), "--profile", "smoke"])

        # Assert
        assert code == 0
        assert "Overall: PASS" in capsys.readouterr().out

    def test_breached_dump_exits_one(self, tmp_path, capsys):
        path = write_dump(tmp_path, p95=900.0, error_rate=0.0)
        assert main(["check", str(path), "--profile", "smoke"]) == 1
        assert "FAIL" in capsys.readouterr().out

    def test_unreadable_dump_exits_two(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        assert main(["check", str(path), "--profile", "smoke"]) == 2

    def test_unknown_profile_exits_two(self, tmp_path):
        path = write_dump(tmp_path, p95=120.0, error_rate=0.0)
        assert main(["check", str(path), "--profile", "marathon"]) == 2

    def test_malformed_profile_number_exits_two(self, tmp_path):
        """Test that a non-numeric profile setting is a configuration error, not a crash."""
        # Arrange
        path = write_dump(tmp_path, p95=120.0, error_rate=0.0)
        profiles = tmp_path / "profiles.yml"
        profiles.write_text(
            "profiles:\n  smoke:\n    initial_target: lots\n    stages: [{duration: 1m, target: 1}]\n",
            encoding="utf-8",
        )

        # Act
        code = main(["check", str(path), "--profile", "smoke", "--profiles-file", str(profiles)])

        # Assert
        assert code == 2

    def test_parser_requires_a_command(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestRunContext:
    """Tests for the per-run composition root."""

    def test_create_wires_shared_objects(self, clock):
        """Test that the context builds the profile's workload and a seeded rng."""
        # Arrange
        profile = load_profile("smoke")

        # Act
        context = RunContext.create(profile, "http://localhost:4000", seed=7, clock=clock)

        # Assert
        assert isinstance(context.workload, SmokeWorkload)
        assert context.state.started_at == clock()
        assert context.monitor.high_water_mark == profile.high_water_mark
        assert context.rng.random() == pytest.approx(random.Random(7).random())

    def test_scenario_contexts_share_state_but_not_index(self, clock):
        context = RunContext.create(load_profile("load"), "http://localhost:4000", clock=clock)
        first = context.scenario_context(session=None)
        second = context.scenario_context(session=None)
        assert first.state is second.state
        assert first.registry is second.registry
        assert (first.client_index, second.client_index) == (0, 1)
        assert first.client.timeout == 10

    def test_restart_clock(self, clock):
        context = RunContext.create(load_profile("smoke"), "http://localhost:4000", clock=clock)
        clock.advance(30)
        context.restart_clock()
        assert context.elapsed_minutes() == 0
