"""
Write-side scenarios: creating posts and verifying they round-trip.

Created posts are remembered in the run state together with the payload
that was submitted, so the integrity check can refetch one later and
compare what the target stored against what was sent.
"""

from __future__ import annotations

import logging
from typing import Any

from loadcheck import metrics
from loadcheck.client import Outcome
from loadcheck.payloads import post_payload
from loadcheck.scenarios.base import ScenarioContext, record_error

logger = logging.getLogger(__name__)


def create_post(
    ctx: ScenarioContext,
    *,
    label: str = "Load Test",
    content_repeat: int = 1,
    spike: bool = False,
) -> tuple[str | None, Outcome]:
    """
    Create one post and register it for later verification.

    Args:
        ctx: Scenario context.
        label: Title prefix of the generated post.
        content_repeat: Content multiplier for larger bodies.
        spike: Count failures into ``spike_errors`` as well.

    Returns:
        ``(post id or None, outcome)``.
    """
    payload = post_payload(ctx.rng, label=label, content_repeat=content_repeat)
    outcome = ctx.client.post("/api/posts", json=payload, name="/api/posts [create]")

    data = outcome.data
    entity_id = data.get("id") if isinstance(data, dict) else None
    created = outcome.status == 201 and outcome.envelope_ok and bool(entity_id)
    record_error(ctx, not created)
    if not created:
        if spike:
            ctx.registry.counter(metrics.SPIKE_ERRORS).add(1)
        logger.debug("Post creation failed with status %s", outcome.status)
        return None, outcome

    ctx.state.register_created(str(entity_id), payload)
    return str(entity_id), outcome


def write_post(ctx: ScenarioContext, **kwargs: Any) -> str | None:
    """Create one post; return its id or ``None``."""
    entity_id, _ = create_post(ctx, **kwargs)
    return entity_id


def verify_entity(ctx: ScenarioContext, entity_id: str) -> bool | None:
    """
    Refetch *entity_id* and compare it with the submitted payload.

    Returns:
        ``True``/``False`` for a recorded verification, ``None`` when the
        id is unknown or already verified (nothing is recorded then).
    """
    if ctx.state.is_verified(entity_id):
        return None
    expected = ctx.state.created_payload(entity_id)
    if expected is None:
        return None

    integrity = ctx.registry.rate(metrics.DATA_INTEGRITY)
    outcome = ctx.client.get(f"/api/posts/{entity_id}", name="/api/posts/[id] [verify]")
    data = outcome.data
    if not (outcome.status == 200 and outcome.envelope_ok and isinstance(data, dict)):
        integrity.add(0)
        return False

    matches = data.get("title") == expected.get("title") and data.get("content") == expected.get("content")
    if not matches:
        logger.error("Data integrity violation for post %s", entity_id)
        integrity.add(0)
        return False

    # Another client may have verified the same id while this request was in flight.
    if not ctx.state.mark_verified(entity_id):
        return None
    integrity.add(1)
    return True


def integrity_check(ctx: ScenarioContext) -> bool | None:
    """Verify a random created, not-yet-verified post; skip when there is none."""
    picked = ctx.state.pick_unverified(ctx.rng)
    if picked is None:
        return None
    entity_id, _ = picked
    return verify_entity(ctx, entity_id)
