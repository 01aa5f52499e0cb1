"""
Spike/recovery state machine.

The phase is derived from the run's :class:`~loadcheck.state.SpikeWindow`:

    NORMAL ──live > mark──▶ SPIKING ──live ≤ mark──▶ RECOVERING
       ▲                                                  │
       └────── probes responsive for the dwell time ──────┘

When recovery is confirmed the ``recovery_started_at → now`` duration is
recorded into the ``recovery_time`` trend, the cycle is appended to the
run state and the window is cleared so a later spike starts a new cycle.
Climbing back over the mark while still recovering returns the machine to
SPIKING; the pending recovery is dropped, never counted.
"""

from __future__ import annotations

import enum
import logging

from loadcheck import metrics
from loadcheck.metrics import MetricRegistry
from loadcheck.state import RunState, SpikeCycle

logger = logging.getLogger(__name__)


class SpikePhase(str, enum.Enum):
    NORMAL = "NORMAL"
    SPIKING = "SPIKING"
    RECOVERING = "RECOVERING"


class SpikeMonitor:
    """
    Drive the spike window of a run from concurrency and probe observations.

    Args:
        state: The shared run state that owns the window.
        registry: Registry receiving ``recovery_time`` samples.
        high_water_mark: Live user count above which the run is spiking.
        dwell_seconds: How long probes must stay responsive before a
            recovery is confirmed.
    """

    def __init__(
        self,
        state: RunState,
        registry: MetricRegistry,
        *,
        high_water_mark: int = 100,
        dwell_seconds: float = 5.0,
    ) -> None:
        self.state = state
        self.registry = registry
        self.high_water_mark = high_water_mark
        self.dwell_seconds = dwell_seconds

    @property
    def phase(self) -> SpikePhase:
        window = self.state.spike_window
        with self.state.lock:
            if window.started_at is None:
                return SpikePhase.NORMAL
            if window.recovery_started_at is None:
                return SpikePhase.SPIKING
            return SpikePhase.RECOVERING

    def observe_concurrency(self, live: int, now: float) -> SpikePhase:
        """Apply the concurrency-driven transitions and return the new phase."""
        self.state.observe_concurrency(live)
        window = self.state.spike_window
        with self.state.lock:
            if live > self.high_water_mark:
                if window.started_at is None:
                    window.started_at = now
                    logger.info(
                        "Spike started at +%.1fs with %d users",
                        self.state.elapsed_seconds(now),
                        live,
                    )
                elif window.recovery_started_at is not None:
                    logger.info("Load climbed back to %d users before recovery was confirmed", live)
                    window.recovery_started_at = None
                    window.responsive_since = None
            elif window.started_at is not None and window.recovery_started_at is None:
                window.recovery_started_at = now
                window.responsive_since = None
                logger.info(
                    "Recovery started at +%.1fs with %d users",
                    self.state.elapsed_seconds(now),
                    live,
                )
        return self.phase

    def record_probe(self, responsive: bool, now: float) -> float | None:
        """
        Feed one recovery-probe result into the machine.

        Returns:
            The confirmed recovery time in milliseconds when this probe
            completes a recovery, otherwise ``None``.
        """
        window = self.state.spike_window
        with self.state.lock:
            if window.started_at is None or window.recovery_started_at is None:
                return None

            if not responsive:
                window.responsive_since = None
                return None

            if window.responsive_since is None:
                window.responsive_since = now
            if now - window.responsive_since < self.dwell_seconds:
                return None

            cycle = SpikeCycle(
                started_at=window.started_at,
                recovery_started_at=window.recovery_started_at,
                recovered_at=now,
            )
            self.state.append_cycle(cycle)
            window.clear()

        self.registry.trend(metrics.RECOVERY_TIME).add(cycle.recovery_ms)
        logger.info("System recovered in %.0fms", cycle.recovery_ms)
        return cycle.recovery_ms
