"""
Traffic patterns used to push the target past its limits.

Every request made here is measured the same way: its latency goes into
the ``response_time`` trend, latency over ``slow_request_ms`` counts as a
slow request, and a request that fails or is slow counts as an API error.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

from loadcheck import metrics
from loadcheck.client import Outcome
from loadcheck.scenarios.base import ScenarioContext, record_error
from loadcheck.scenarios.writes import create_post

READ_HEAVY_ENDPOINTS = (
    "/api/posts",
    "/api/posts?page=1&pageSize=20",
    "/api/posts?sortBy=views",
    "/api/users",
    "/api/users?search=test",
)


def _measure(ctx: ScenarioContext, outcome: Outcome, passed: bool, *, record: bool = True) -> bool:
    slow_ms = ctx.settings.slow_request_ms
    ctx.registry.trend(metrics.RESPONSE_TIME).add(outcome.latency_ms)
    if outcome.latency_ms > slow_ms:
        ctx.registry.counter(metrics.SLOW_REQUESTS).add(1)

    passed = passed and outcome.latency_ms < slow_ms
    if not passed:
        ctx.registry.counter(metrics.API_ERRORS).add(1)
    if record:
        record_error(ctx, not passed)
    return passed


def read_heavy(ctx: ScenarioContext) -> bool:
    path = ctx.rng.choice(READ_HEAVY_ENDPOINTS)
    outcome = ctx.client.get(path, name=path)
    return _measure(ctx, outcome, outcome.status == 200)


def write_heavy(ctx: ScenarioContext) -> bool:
    """Create a post with a large body; the created post is tracked for verification."""
    entity_id, outcome = create_post(
        ctx,
        label="Stress Test",
        content_repeat=ctx.settings.write_content_repeat,
    )
    # create_post has already recorded the errors observation.
    return _measure(ctx, outcome, entity_id is not None, record=False)


def mixed(ctx: ScenarioContext, *, read_share: float = 0.8) -> bool:
    if ctx.rng.random() < read_share:
        return read_heavy(ctx)
    return write_heavy(ctx)


def burst(ctx: ScenarioContext) -> int:
    """
    Request several pages of posts at the same time.

    Returns:
        Number of requests in the burst that passed.
    """
    size = max(1, ctx.settings.burst_size)
    paths = [f"/api/posts?page={page}&pageSize=10" for page in range(1, size + 1)]
    with ThreadPoolExecutor(max_workers=size) as pool:
        outcomes = list(pool.map(lambda path: ctx.client.get(path, name="/api/posts?page=[burst]"), paths))
    return sum(1 for outcome in outcomes if _measure(ctx, outcome, outcome.status == 200))


PATTERNS = {
    "read_heavy": read_heavy,
    "write_heavy": write_heavy,
    "mixed": mixed,
    "burst": burst,
}
