"""
Shared building blocks for scenarios.

Every scenario is a plain function taking a :class:`ScenarioContext`.  The
context carries the target client, the shared run state, the metric
registry, the random source, the clock and the tunables of the active
profile.  Scenarios issue requests, record what happened, and return;
they never raise for request or parse failures.

Key Concepts Demonstrated:
- One context object instead of a long positional signature
- Injectable random source and clock so tests are reproducible
- Weighted random draws for scenario selection
"""

from __future__ import annotations

import random
import time
from dataclasses import dataclass, field
from typing import Callable, Mapping, TypeVar

from loadcheck import metrics
from loadcheck.client import Outcome, TargetClient
from loadcheck.exceptions import ConfigError
from loadcheck.metrics import MetricRegistry
from loadcheck.state import RunState

T = TypeVar("T")


@dataclass
class ScenarioSettings:
    """
    Tunables that scenarios read; loaded per profile from ``profiles.yml``.

    Attributes:
        page_size: ``pageSize`` used when browsing the post list.
        like_probability: Chance of liking a post after viewing it.
        sample_post_id: Known post id used by the smoke profile.
        probe_timeout: Timeout for health and recovery probes (seconds).
        responsive_latency_ms: Probe latency under which the target counts
            as responsive.
        heavy_page_size: ``pageSize`` of the resource-intensive read.
        retain_responses: Keep resource-intensive bodies in the bounded cache.
        leak_threshold_mb_per_minute: Memory growth rate that counts as a
            potential leak event.
        degradation_tolerance: Relative slowdown versus the baseline
            response time that counts as degradation.
        checkpoint_interval_minutes: Width of a checkpoint bucket.
        slow_request_ms: Latency above which a stress request is "slow".
        burst_size: Number of pages requested together by a burst.
        write_content_repeat: Content multiplier for write-heavy traffic.
    """

    page_size: int = 10
    like_probability: float = 0.3
    sample_post_id: str = "post-1"
    probe_timeout: float = 5.0
    responsive_latency_ms: float = 500.0
    heavy_page_size: int = 50
    retain_responses: bool = True
    leak_threshold_mb_per_minute: float = 1.0
    degradation_tolerance: float = 0.2
    checkpoint_interval_minutes: int = 10
    slow_request_ms: float = 3000.0
    burst_size: int = 5
    write_content_repeat: int = 50

    @classmethod
    def from_dict(cls, data: Mapping[str, object] | None) -> "ScenarioSettings":
        """
        Build settings from a profile's ``scenario`` section.

        Raises:
            ConfigError: For keys that are not scenario tunables.
        """
        values = dict(data or {})
        unknown = set(values) - set(cls.__dataclass_fields__)
        if unknown:
            raise ConfigError(f"Unknown scenario settings: {sorted(unknown)}")
        return cls(**values)  # type: ignore[arg-type]


@dataclass
class ScenarioContext:
    """
    Everything one simulated client needs to run scenarios.

    The ``state``, ``registry`` and ``rng`` objects are shared by every
    client in the run; ``client_index`` and ``iteration`` belong to this
    client alone.
    """

    client: TargetClient
    state: RunState
    registry: MetricRegistry
    rng: random.Random = field(default_factory=random.Random)
    settings: ScenarioSettings = field(default_factory=ScenarioSettings)
    clock: Callable[[], float] = time.monotonic
    pause: Callable[[float], None] = time.sleep
    think_scale: float = 1.0
    client_index: int = 0
    iteration: int = 0

    def now(self) -> float:
        return self.clock()

    def think(self, low: float, high: float) -> None:
        """Pause for a random think time in ``[low, high]`` seconds, scaled."""
        seconds = self.rng.uniform(low, high) * self.think_scale
        if seconds > 0:
            self.pause(seconds)

    @property
    def session_id(self) -> str:
        return f"session-{self.client_index}-{self.iteration}"


def weighted_choice(rng: random.Random, weights: Mapping[T, float]) -> T:
    """
    Draw one key from *weights* with probability proportional to its weight.

    Raises:
        ValueError: If there are no positive weights.
    """
    options = [(key, weight) for key, weight in weights.items() if weight > 0]
    if not options:
        raise ValueError("weighted_choice needs at least one positive weight")
    keys, values = zip(*options)
    return rng.choices(keys, weights=values, k=1)[0]


def record_error(ctx: ScenarioContext, failed: bool) -> None:
    """Record one observation into the ``errors`` rate (truthy means failed)."""
    ctx.registry.rate(metrics.ERRORS).add(1 if failed else 0)


def checked_get(
    ctx: ScenarioContext,
    path: str,
    *,
    name: str | None = None,
    max_latency_ms: float | None = None,
    require_envelope: bool = True,
    timeout: float | None = None,
) -> tuple[Outcome, bool]:
    """
    GET *path* and record whether it passed its checks.

    A request passes when it returns 2xx, optionally carries a
    ``{success: true}`` envelope, and optionally finishes under
    *max_latency_ms*.
    """
    outcome = ctx.client.get(path, name=name, timeout=timeout)
    passed = outcome.ok
    if require_envelope:
        passed = passed and "success" in outcome.body
    if max_latency_ms is not None:
        passed = passed and outcome.latency_ms < max_latency_ms
    record_error(ctx, not passed)
    return outcome, passed
