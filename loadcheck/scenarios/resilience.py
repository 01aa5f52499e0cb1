"""
Scenarios that watch the target's health over time.

- ``recovery_probe``: short-timeout health request used by the spike monitor
- ``resource_intensive_task``: large page reads that build memory pressure
- ``health_monitor``: memory sampling and leak-rate estimation
- ``performance_check``: response time against the run's baseline, with
  periodic checkpoints
"""

from __future__ import annotations

import logging

from loadcheck import metrics
from loadcheck.payloads import unique_token
from loadcheck.scenarios.base import ScenarioContext, record_error
from loadcheck.state import Checkpoint, utc_timestamp

logger = logging.getLogger(__name__)

BYTES_PER_MB = 1024 * 1024


def recovery_probe(ctx: ScenarioContext) -> bool:
    """Return ``True`` when the target answers health quickly enough."""
    outcome = ctx.client.get(
        "/api/health",
        name="/api/health [probe]",
        timeout=ctx.settings.probe_timeout,
    )
    return outcome.status == 200 and outcome.latency_ms < ctx.settings.responsive_latency_ms


def resource_intensive_task(ctx: ScenarioContext) -> bool:
    """
    Read a large page of posts while the task is tracked as in flight.

    When ``retain_responses`` is set the body is kept in the run's bounded
    cache; the cache evicts its oldest entry past capacity.
    """
    task_id = unique_token(ctx.rng, prefix="task")
    ctx.state.begin_task(task_id, ctx.now())
    try:
        outcome = ctx.client.get(
            f"/api/posts?pageSize={ctx.settings.heavy_page_size}",
            name="/api/posts?pageSize=[heavy]",
        )
        passed = outcome.ok and outcome.envelope_ok
        record_error(ctx, not passed)
        if not passed:
            return False
        if ctx.settings.retain_responses:
            ctx.state.cache_put(task_id, outcome.text)
        return True
    finally:
        ctx.state.end_task(task_id)


def health_monitor(ctx: ScenarioContext) -> float | None:
    """
    Sample the target's heap usage and flag suspicious growth.

    Returns:
        The sampled memory in MB, or ``None`` when the health body carries
        no memory figure.
    """
    outcome = ctx.client.get(
        "/api/health",
        name="/api/health [monitor]",
        timeout=ctx.settings.probe_timeout,
    )
    record_error(ctx, outcome.status != 200)
    if outcome.status != 200:
        return None

    memory = outcome.body.get("memory")
    heap_used = memory.get("heapUsed") if isinstance(memory, dict) else None
    if not isinstance(heap_used, (int, float)) or isinstance(heap_used, bool):
        return None

    current_mb = heap_used / BYTES_PER_MB
    ctx.registry.trend(metrics.MEMORY_USAGE).add(current_mb)
    ctx.registry.gauge(metrics.CURRENT_MEMORY).add(current_mb)
    ctx.state.record_memory(current_mb)
    baseline_mb = ctx.state.set_baseline_memory(current_mb)

    elapsed_minutes = ctx.state.elapsed_minutes(ctx.now())
    if elapsed_minutes > 0:
        growth_per_minute = (current_mb - baseline_mb) / elapsed_minutes
        if growth_per_minute > ctx.settings.leak_threshold_mb_per_minute:
            logger.warning("Potential memory leak: %.2f MB/min growth", growth_per_minute)
            ctx.registry.counter(metrics.POTENTIAL_LEAKS).add(1)
    return current_mb


def performance_check(ctx: ScenarioContext) -> float:
    """
    Time one post listing against the baseline and maybe write a checkpoint.

    The first measured response time of the run becomes the baseline.  A
    sample counts as degraded when it is slower than the baseline by more
    than ``degradation_tolerance`` (relative).

    Returns:
        The measured response time in milliseconds.
    """
    outcome = ctx.client.get("/api/posts", name="/api/posts [perf]")
    record_error(ctx, not outcome.ok)
    response_ms = outcome.latency_ms

    baseline_ms = ctx.state.set_baseline_response_time(response_ms)
    degraded = baseline_ms > 0 and (response_ms - baseline_ms) / baseline_ms > ctx.settings.degradation_tolerance
    ctx.registry.rate(metrics.PERFORMANCE_DEGRADATION).add(1 if degraded else 0)

    interval = max(1, ctx.settings.checkpoint_interval_minutes)
    minute = int(ctx.state.elapsed_minutes(ctx.now()))
    bucket = minute - minute % interval
    if not ctx.state.has_checkpoint(bucket):
        checkpoint = Checkpoint(
            minute=bucket,
            recorded_at=utc_timestamp(),
            response_time_ms=response_ms,
            open_sessions=ctx.state.open_session_count,
            memory_mb=ctx.state.last_memory_mb,
        )
        if ctx.state.write_checkpoint(checkpoint):
            logger.info(
                "Checkpoint at %d minutes: %.0fms response, %d open sessions",
                bucket,
                response_ms,
                checkpoint.open_sessions,
            )
    return response_ms
