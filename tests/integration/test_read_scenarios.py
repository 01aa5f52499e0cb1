"""
Integration tests for read-side scenarios against the stub target.

Key SDET Concepts Demonstrated:
- Asserting on side effects in the target (view and like counters)
- Metric assertions instead of return-value-only checks
"""

import pytest

from loadcheck import metrics
from loadcheck.scenarios import (
    browse,
    browse_users,
    health_check,
    main_page,
    read_spike,
    smoke_checks,
    view_post,
)

pytestmark = pytest.mark.integration


class TestBrowse:
    """Tests for browsing posts."""

    def test_browse_lists_and_views_a_post(self, make_context, stub, registry, run_state):
        """Test that browsing lists a page, views one post and likes it."""
        # Arrange
        ctx = make_context(like_probability=1.0)

        # Act
        posts = browse(ctx, page=1)

        # Assert
        assert len(posts) == ctx.settings.page_size
        viewed = [post for post in stub.store.values() if post["views"]]
        assert len(viewed) == 1
        assert viewed[0]["likes"] == 1
        assert registry.rate(metrics.ERRORS).summary()["rate"] == 0
        assert registry.trend(metrics.API_DURATION).summary()["count"] == 2
        assert run_state.open_session_count == 0

    def test_browse_without_detail(self, make_context, stub):
        ctx = make_context()
        browse(ctx, with_detail=False)
        assert all(post["views"] == 0 for post in stub.store.values())

    def test_browse_failure_records_error(self, make_context, stub, registry):
        """Test that a failed listing returns nothing and counts one error."""
        # Arrange
        stub.controls.failure_rate = 1.0
        ctx = make_context()

        # Act
        posts = browse(ctx)

        # Assert
        assert posts == []
        assert registry.rate(metrics.ERRORS).summary() == {"rate": 1.0, "passes": 1, "fails": 0, "total": 1}

    def test_view_missing_post(self, make_context, registry):
        assert view_post(make_context(), "post-does-not-exist") is False
        assert registry.rate(metrics.ERRORS).summary()["rate"] == 1.0

    def test_browse_users(self, make_context):
        assert browse_users(make_context()) is True


class TestSmoke:
    """Tests for smoke probes."""

    def test_healthy_target_passes_every_check(self, make_context, registry):
        # Arrange
        ctx = make_context()

        # Act
        healthy = health_check(ctx)
        landed = main_page(ctx)
        failures = smoke_checks(ctx)

        # Assert
        assert healthy and landed
        assert failures == 0
        assert registry.rate(metrics.ERRORS).summary()["passes"] == 0

    def test_unhealthy_target_fails_health_check(self, make_context, stub):
        stub.controls.healthy = False
        assert health_check(make_context()) is False

    def test_latency_budget_is_enforced(self, make_context, stub):
        """Test that slow but correct answers still fail the smoke checks."""
        # Arrange
        stub.controls.delay_ms = 30

        # Act
        failures = smoke_checks(make_context(), max_latency_ms=5)

        # Assert
        assert failures == 3


class TestReadSpike:
    """Tests for spike reads."""

    def test_failures_count_as_spike_errors(self, make_context, stub, registry):
        """Test that every failed spike read increments spike_errors."""
        # Arrange
        stub.controls.failure_rate = 1.0

        # Act
        failed = read_spike(make_context(), timeout=5)

        # Assert
        assert failed == 2  # the stub never fails /api/health
        assert registry.counter(metrics.SPIKE_ERRORS).summary()["count"] == 2

    def test_healthy_spike_reads(self, make_context, registry):
        assert read_spike(make_context()) == 0
        assert metrics.SPIKE_ERRORS not in registry
