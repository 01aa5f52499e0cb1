"""
Unit tests for stage plans and the Locust load shape.

Key SDET Concepts Demonstrated:
- Property-style checks over many sample points
- Parametrized duration parsing, valid and invalid
- Replacing Locust's run clock with ``monkeypatch``
"""

import pytest

from loadcheck.exceptions import ConfigError
from loadcheck.shape import StagedLoadShape
from loadcheck.stages import Stage, StageKind, StagePlan, parse_duration

pytestmark = pytest.mark.unit


LOAD_PLAN = [
    {"duration": "2m", "target": 50},
    {"duration": "5m", "target": 50},
    {"duration": "2m", "target": 100},
    {"duration": "5m", "target": 100},
    {"duration": "2m", "target": 0},
]


class TestParseDuration:
    """Tests for duration strings."""

    @pytest.mark.parametrize(
        "value,expected",
        [("30s", 30), ("2m", 120), ("1h30m", 5400), ("500ms", 0.5), (45, 45), ("90", 90), ("1.5m", 90)],
    )
    def test_valid_durations(self, value, expected):
        assert parse_duration(value) == pytest.approx(expected)

    @pytest.mark.parametrize("value", ["", "abc", "2x", "m5", -1, "5m junk", True])
    def test_invalid_durations_raise_config_error(self, value):
        with pytest.raises(ConfigError):
            parse_duration(value)


class TestStagePlan:
    """Tests for interpolation, stage lookup and kind inference."""

    def test_ramp_interpolates_linearly(self):
        """Test the midpoint of a 0→50 ramp over 2 minutes."""
        # Arrange
        plan = StagePlan.from_list(LOAD_PLAN)

        # Act
        midpoint = plan.target_at(60)

        # Assert
        assert midpoint == pytest.approx(25)

    def test_plateau_holds_target(self):
        plan = StagePlan.from_list(LOAD_PLAN)
        assert plan.target_at(4 * 60) == 50

    def test_kinds_are_inferred(self):
        """Test that equal consecutive targets become plateaus."""
        plan = StagePlan.from_list(LOAD_PLAN)
        assert plan.kinds() == [
            StageKind.RAMP,
            StageKind.PLATEAU,
            StageKind.RAMP,
            StageKind.PLATEAU,
            StageKind.RAMP,
        ]

    def test_explicit_plateau_is_a_step_change(self):
        """Test that an explicit plateau jumps straight to its target."""
        # Arrange
        plan = StagePlan.from_list([{"duration": "1m", "target": 1, "kind": "plateau"}])

        # Act & Assert
        assert plan.target_at(0) == 1
        assert plan.target_at(30) == 1
        assert plan.spawn_rate_at(0) == 1

    def test_totals_and_stage_lookup(self):
        """Test total duration, max target and the active stage."""
        # Arrange
        plan = StagePlan.from_list(
            [{"duration": "30s", "target": 300, "name": "spike1_ramp"}, {"duration": "2m", "target": 300}]
        )

        # Act & Assert
        assert plan.total_duration == 150
        assert plan.max_target == 300
        assert plan.stage_at(10).name == "spike1_ramp"
        assert plan.stage_at(150) is None
        assert plan.target_at(1000) == 300

    def test_target_never_exceeds_max(self):
        """Test that C(t) stays within [0, max_target] at every sample point."""
        # Arrange
        plan = StagePlan.from_list(
            [
                {"duration": "1m", "target": 10},
                {"duration": "30s", "target": 300},
                {"duration": "2m", "target": 300},
                {"duration": "30s", "target": 10},
                {"duration": "30s", "target": 500},
                {"duration": "30s", "target": 0},
            ]
        )

        # Act
        samples = [plan.target_at(t / 4) for t in range(int(plan.total_duration * 4) + 8)]

        # Assert
        assert all(0 <= sample <= plan.max_target for sample in samples)

    def test_spawn_rate_follows_slope(self):
        """Test that a 10→300 ramp over 30s spawns at least its slope."""
        plan = StagePlan.from_list([{"duration": "1m", "target": 10}, {"duration": "30s", "target": 300}])
        assert plan.spawn_rate_at(70) == pytest.approx(290 / 30)

    def test_empty_plan(self):
        plan = StagePlan()
        assert plan.total_duration == 0
        assert plan.target_at(5) == 0
        assert plan.describe() == []

    def test_describe(self):
        plan = StagePlan.from_list(LOAD_PLAN[:2])
        assert plan.describe() == ["0→50 users (2m)", "50 users (5m)"]

    @pytest.mark.parametrize(
        "entry",
        [{"target": 5}, {"duration": "1m"}, {"duration": "1m", "target": "many"}, {"duration": "1m", "target": 5, "kind": "wave"}],
    )
    def test_invalid_stage_entries(self, entry):
        with pytest.raises(ConfigError):
            Stage.from_dict(entry)


class TestStagedLoadShape:
    """Tests for the Locust shape wrapper."""

    def test_tick_follows_plan(self, monkeypatch):
        """Test that tick returns the rounded target and spawn rate."""
        # Arrange
        shape = StagedLoadShape(StagePlan.from_list([{"duration": "10s", "target": 10}]))
        monkeypatch.setattr(shape, "get_run_time", lambda: 5.0)

        # Act
        users, spawn_rate = shape.tick()

        # Assert
        assert users == 5
        assert spawn_rate == 1

    def test_tick_ends_after_plan(self, monkeypatch):
        shape = StagedLoadShape(StagePlan.from_list([{"duration": "10s", "target": 10}]))
        monkeypatch.setattr(shape, "get_run_time", lambda: 10.0)
        assert shape.tick() is None

    def test_empty_plan_ends_immediately(self, monkeypatch):
        shape = StagedLoadShape(StagePlan())
        monkeypatch.setattr(shape, "get_run_time", lambda: 0.0)
        assert shape.tick() is None
