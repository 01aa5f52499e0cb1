"""
Read-side scenarios: browsing posts and users, main page, smoke probes.

Key Concepts Demonstrated:
- Templated request names so Locust groups ``/api/posts/<id>`` together
- Session bookkeeping in the shared run state
- Probabilistic follow-up actions drawn from the injected random source
"""

from __future__ import annotations

import logging
from typing import Any

from loadcheck import metrics
from loadcheck.client import Outcome
from loadcheck.scenarios.base import ScenarioContext, checked_get, record_error

logger = logging.getLogger(__name__)

SPIKE_READ_ENDPOINTS = ("/api/posts", "/api/users", "/api/health")


def _record_api(ctx: ScenarioContext, outcome: Outcome, passed: bool) -> None:
    ctx.registry.trend(metrics.API_DURATION).add(outcome.latency_ms)
    record_error(ctx, not passed)


def main_page(ctx: ScenarioContext) -> bool:
    """Load ``/`` the way a browser landing on the site would."""
    outcome = ctx.client.get("/", name="/")
    passed = outcome.status == 200
    record_error(ctx, not passed)
    return passed


def health_check(ctx: ScenarioContext) -> bool:
    """Health endpoint must answer 200 with ``status: healthy``."""
    outcome = ctx.client.get("/api/health", name="/api/health", timeout=ctx.settings.probe_timeout)
    passed = outcome.status == 200 and outcome.body.get("status") == "healthy"
    record_error(ctx, not passed)
    return passed


def smoke_checks(ctx: ScenarioContext, *, max_latency_ms: float = 500.0) -> int:
    """
    One pass over every read endpoint plus a view increment.

    Returns:
        Number of checks that failed.
    """
    failures = 0
    post_id = ctx.settings.sample_post_id
    for path, name in (
        ("/api/posts", "/api/posts"),
        ("/api/users", "/api/users"),
        (f"/api/posts/{post_id}", "/api/posts/[id]"),
    ):
        _, passed = checked_get(ctx, path, name=name, max_latency_ms=max_latency_ms)
        failures += 0 if passed else 1

    outcome = ctx.client.post(f"/api/posts/{post_id}/view", name="/api/posts/[id]/view")
    viewed = outcome.status in (200, 204)
    record_error(ctx, not viewed)
    failures += 0 if viewed else 1
    return failures


def view_post(ctx: ScenarioContext, post_id: str, *, like_probability: float | None = None) -> bool:
    """
    Open one post, bump its view counter and maybe like it.

    Returns:
        ``True`` when the detail request returned the post.
    """
    outcome = ctx.client.get(f"/api/posts/{post_id}", name="/api/posts/[id]")
    data = outcome.data
    passed = outcome.ok and outcome.envelope_ok and isinstance(data, dict) and "content" in data
    _record_api(ctx, outcome, passed)
    if not passed:
        return False

    viewed = ctx.client.post(f"/api/posts/{post_id}/view", name="/api/posts/[id]/view")
    record_error(ctx, viewed.status not in (200, 204))

    chance = ctx.settings.like_probability if like_probability is None else like_probability
    if ctx.rng.random() < chance:
        liked = ctx.client.post(f"/api/posts/{post_id}/like", name="/api/posts/[id]/like")
        record_error(ctx, liked.status not in (200, 204))
    return True


def browse(
    ctx: ScenarioContext,
    *,
    page: int = 1,
    with_detail: bool = True,
    like_probability: float | None = None,
) -> list[dict[str, Any]]:
    """
    List a page of posts and optionally drill into one of them.

    The client's session id stays in the tracker's open sessions for the
    duration of the scenario.

    Returns:
        The posts on the listed page (empty on failure).
    """
    session_id = ctx.session_id
    ctx.state.open_session(session_id)
    try:
        outcome = ctx.client.get(
            f"/api/posts?page={page}&pageSize={ctx.settings.page_size}",
            name="/api/posts?page=[n]",
        )
        posts = outcome.data
        passed = outcome.ok and outcome.envelope_ok and isinstance(posts, list)
        _record_api(ctx, outcome, passed)
        if not passed:
            return []

        if with_detail and posts:
            post = ctx.rng.choice(posts)
            if isinstance(post, dict) and post.get("id"):
                view_post(ctx, str(post["id"]), like_probability=like_probability)
        return posts
    finally:
        ctx.state.close_session(session_id)


def browse_users(ctx: ScenarioContext) -> bool:
    outcome = ctx.client.get("/api/users", name="/api/users")
    passed = outcome.ok and outcome.envelope_ok and isinstance(outcome.data, list)
    _record_api(ctx, outcome, passed)
    return passed


def read_spike(ctx: ScenarioContext, *, timeout: float = 15.0) -> int:
    """
    Hit every read endpoint once with the long spike timeout.

    Each failed request adds one to ``spike_errors``.

    Returns:
        Number of failed requests.
    """
    failed = 0
    for path in SPIKE_READ_ENDPOINTS:
        outcome = ctx.client.get(path, name=path, timeout=timeout)
        passed = outcome.status == 200
        record_error(ctx, not passed)
        if not passed:
            ctx.registry.counter(metrics.SPIKE_ERRORS).add(1)
            failed += 1
    return failed
