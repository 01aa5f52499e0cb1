"""
Run-State Tracker.

One :class:`RunState` exists per test run.  Every simulated client holds a
reference to it and every mutation goes through one of its methods, which
apply changes serially under a single lock.  The operations are
idempotent inserts keyed by entity id or session id, so two clients
racing on the same key cannot corrupt the tracker:

- ``created_entities`` only grows; an id is registered once.
- ``verified_entities`` is write-once per id.
- ``baseline`` values are set by the first writer and never overwritten.
- ``checkpoints`` are written at most once per bucket.

Key Concepts Demonstrated:
- Single-owner mutation of shared state without per-field locking
- Bounded FIFO cache that simulates memory pressure without growing
  without limit
"""

from __future__ import annotations

import random
import threading
from collections import OrderedDict
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any


@dataclass
class Baseline:
    """First observed measurements, used for relative-degradation maths."""

    response_time_ms: float | None = None
    memory_mb: float | None = None


@dataclass
class SpikeWindow:
    """Timestamps (monotonic seconds) of the spike currently being tracked."""

    started_at: float | None = None
    recovery_started_at: float | None = None
    responsive_since: float | None = None

    def clear(self) -> None:
        self.started_at = None
        self.recovery_started_at = None
        self.responsive_since = None


@dataclass(frozen=True)
class SpikeCycle:
    """One completed spike → recovery cycle."""

    started_at: float
    recovery_started_at: float
    recovered_at: float

    @property
    def recovery_ms(self) -> float:
        return (self.recovered_at - self.recovery_started_at) * 1000.0


@dataclass(frozen=True)
class Checkpoint:
    """Snapshot taken once per elapsed-minute bucket during long runs."""

    minute: int
    recorded_at: str
    response_time_ms: float
    open_sessions: int
    memory_mb: float | None = None


class BoundedCache:
    """
    Insertion-ordered cache that evicts its oldest entry past *capacity*.

    Not thread-safe on its own; :class:`RunState` serialises access.
    """

    def __init__(self, capacity: int = 100) -> None:
        if capacity < 1:
            raise ValueError("cache capacity must be at least 1")
        self.capacity = capacity
        self._entries: OrderedDict[str, Any] = OrderedDict()
        self.evictions = 0

    def put(self, key: str, value: Any) -> None:
        self._entries[key] = value
        self._entries.move_to_end(key)
        while len(self._entries) > self.capacity:
            self._entries.popitem(last=False)
            self.evictions += 1

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def keys(self) -> list[str]:
        return list(self._entries)


class RunState:
    """
    Process-wide state shared by every simulated client in one run.

    Args:
        started_at: Monotonic timestamp of the run start.
        cache_capacity: Capacity of the resource-intensive task cache.
    """

    def __init__(self, started_at: float, cache_capacity: int = 100) -> None:
        self.started_at = started_at
        self._lock = threading.RLock()

        self._created: dict[str, dict[str, Any]] = {}
        self._verified: set[str] = set()
        self._open_sessions: set[str] = set()
        self._active_tasks: dict[str, float] = {}
        self._checkpoints: dict[int, Checkpoint] = {}
        self._cycles: list[SpikeCycle] = []
        self._cache = BoundedCache(cache_capacity)

        self.baseline = Baseline()
        self.spike_window = SpikeWindow()
        self.last_memory_mb: float | None = None
        self.peak_concurrency = 0

    @property
    def lock(self) -> threading.RLock:
        """Lock used by collaborators (e.g. the spike monitor) that mutate the window."""
        return self._lock

    def elapsed_seconds(self, now: float) -> float:
        return max(0.0, now - self.started_at)

    def elapsed_minutes(self, now: float) -> float:
        return self.elapsed_seconds(now) / 60.0

    # ---- created / verified entities -------------------------------

    def register_created(self, entity_id: str, payload: dict[str, Any]) -> bool:
        """Record the payload submitted for *entity_id*; ``False`` if already known."""
        with self._lock:
            if entity_id in self._created:
                return False
            self._created[entity_id] = dict(payload)
            return True

    def created_payload(self, entity_id: str) -> dict[str, Any] | None:
        with self._lock:
            payload = self._created.get(entity_id)
            return dict(payload) if payload is not None else None

    def pick_unverified(self, rng: random.Random) -> tuple[str, dict[str, Any]] | None:
        """Choose a created, not-yet-verified entity at random."""
        with self._lock:
            candidates = [key for key in self._created if key not in self._verified]
            if not candidates:
                return None
            entity_id = rng.choice(candidates)
            return entity_id, dict(self._created[entity_id])

    def mark_verified(self, entity_id: str) -> bool:
        """Add *entity_id* to the verified set; ``False`` if it was already there."""
        with self._lock:
            if entity_id in self._verified:
                return False
            self._verified.add(entity_id)
            return True

    def is_verified(self, entity_id: str) -> bool:
        with self._lock:
            return entity_id in self._verified

    @property
    def created_count(self) -> int:
        with self._lock:
            return len(self._created)

    @property
    def verified_entities(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._verified)

    @property
    def created_entities(self) -> dict[str, dict[str, Any]]:
        with self._lock:
            return {key: dict(value) for key, value in self._created.items()}

    # ---- sessions and in-flight tasks --------------------------------

    def open_session(self, session_id: str) -> None:
        with self._lock:
            self._open_sessions.add(session_id)

    def close_session(self, session_id: str) -> None:
        with self._lock:
            self._open_sessions.discard(session_id)

    @property
    def open_session_count(self) -> int:
        with self._lock:
            return len(self._open_sessions)

    def begin_task(self, task_id: str, now: float) -> None:
        with self._lock:
            self._active_tasks[task_id] = now

    def end_task(self, task_id: str) -> None:
        with self._lock:
            self._active_tasks.pop(task_id, None)

    @property
    def active_task_count(self) -> int:
        with self._lock:
            return len(self._active_tasks)

    def cache_put(self, key: str, value: Any) -> None:
        with self._lock:
            self._cache.put(key, value)

    @property
    def cache(self) -> BoundedCache:
        return self._cache

    # ---- baselines -----------------------------------------------------

    def set_baseline_response_time(self, value_ms: float) -> float:
        """Set the baseline response time if unset; return the effective baseline."""
        with self._lock:
            if self.baseline.response_time_ms is None:
                self.baseline.response_time_ms = value_ms
            return self.baseline.response_time_ms

    def set_baseline_memory(self, value_mb: float) -> float:
        """Set the baseline memory sample if unset; return the effective baseline."""
        with self._lock:
            if self.baseline.memory_mb is None:
                self.baseline.memory_mb = value_mb
            return self.baseline.memory_mb

    def record_memory(self, value_mb: float) -> None:
        with self._lock:
            self.last_memory_mb = value_mb

    def observe_concurrency(self, live: int) -> None:
        with self._lock:
            self.peak_concurrency = max(self.peak_concurrency, live)

    # ---- checkpoints and spike cycles -------------------------------

    def write_checkpoint(self, checkpoint: Checkpoint) -> bool:
        """Store *checkpoint* unless its bucket already has one."""
        with self._lock:
            if checkpoint.minute in self._checkpoints:
                return False
            self._checkpoints[checkpoint.minute] = checkpoint
            return True

    def has_checkpoint(self, minute: int) -> bool:
        with self._lock:
            return minute in self._checkpoints

    @property
    def checkpoints(self) -> dict[int, Checkpoint]:
        with self._lock:
            return dict(sorted(self._checkpoints.items()))

    def append_cycle(self, cycle: SpikeCycle) -> None:
        with self._lock:
            self._cycles.append(cycle)

    @property
    def spike_cycles(self) -> list[SpikeCycle]:
        with self._lock:
            return list(self._cycles)

    def snapshot(self) -> dict[str, Any]:
        """Plain-data view of the tracker for the JSON report."""
        with self._lock:
            return {
                "created_entities": len(self._created),
                "verified_entities": len(self._verified),
                "open_sessions": len(self._open_sessions),
                "active_tasks": len(self._active_tasks),
                "cached_entries": len(self._cache),
                "cache_evictions": self._cache.evictions,
                "baseline": asdict(self.baseline),
                "last_memory_mb": self.last_memory_mb,
                "peak_concurrency": self.peak_concurrency,
                "spike_cycles": [
                    {**asdict(cycle), "recovery_ms": cycle.recovery_ms} for cycle in self._cycles
                ],
                "checkpoints": {
                    str(minute): asdict(checkpoint)
                    for minute, checkpoint in sorted(self._checkpoints.items())
                },
            }


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp for checkpoint records."""
    return datetime.now(timezone.utc).isoformat()


__all__ = [
    "Baseline",
    "BoundedCache",
    "Checkpoint",
    "RunState",
    "SpikeCycle",
    "SpikeWindow",
    "utc_timestamp",
]
