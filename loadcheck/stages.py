"""
Stage plans: declarative concurrency over time.

A :class:`StagePlan` is an ordered list of :class:`Stage` objects.  Each
stage either *ramps* linearly from the previous stage's target to its own
target, or holds a *plateau* at its own target.  The kind is an explicit
field; when a profile omits it the plan infers it by comparing each
target with the previous one.

``StagePlan.target_at(t)`` gives the target concurrency ``C(t)`` for any
elapsed time; the Locust shape in :mod:`loadcheck.shape` turns that into
spawn/retire decisions once per tick.
"""

from __future__ import annotations

import bisect
import enum
import re
from dataclasses import dataclass, field
from typing import Any, Iterable

from loadcheck.exceptions import ConfigError

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")


def parse_duration(value: str | int | float) -> float:
    """
    Convert ``"30s"``, ``"2m"``, ``"1h30m"`` or a plain number to seconds.

    Raises:
        ConfigError: If the value is negative or not a recognised format.
    """
    if isinstance(value, bool):
        raise ConfigError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        if value < 0:
            raise ConfigError(f"Duration cannot be negative: {value!r}")
        return float(value)

    text = str(value).strip().lower()
    if not text:
        raise ConfigError("Duration is empty")
    try:
        return parse_duration(float(text))
    except ValueError:
        pass

    total = 0.0
    position = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != position:
            raise ConfigError(f"Invalid duration: {value!r}")
        amount, unit = float(match.group(1)), match.group(2)
        total += amount * {"ms": 0.001, "s": 1, "m": 60, "h": 3600}[unit]
        position = match.end()
    if position != len(text):
        raise ConfigError(f"Invalid duration: {value!r}")
    return total


class StageKind(str, enum.Enum):
    RAMP = "ramp"
    PLATEAU = "plateau"


@dataclass(frozen=True)
class Stage:
    """One ``(duration, target)`` interval of a load profile."""

    duration: float
    target: int
    kind: StageKind | None = None
    name: str | None = None

    def __post_init__(self) -> None:
        if self.duration < 0:
            raise ConfigError(f"Stage duration cannot be negative: {self.duration}")
        if self.target < 0:
            raise ConfigError(f"Stage target cannot be negative: {self.target}")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Stage":
        """Build a stage from a profile entry such as ``{duration: 2m, target: 50}``."""
        try:
            duration = parse_duration(data["duration"])
            target = int(data["target"])
        except KeyError as exc:
            raise ConfigError(f"Stage is missing {exc.args[0]!r}: {data!r}") from exc
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid stage: {data!r}") from exc

        kind = data.get("kind")
        try:
            stage_kind = StageKind(kind) if kind is not None else None
        except ValueError as exc:
            raise ConfigError(f"Unknown stage kind {kind!r}") from exc
        return cls(duration=duration, target=target, kind=stage_kind, name=data.get("name"))


@dataclass(frozen=True)
class _Segment:
    start: float
    end: float
    start_target: float
    end_target: int
    stage: Stage
    kind: StageKind


@dataclass
class StagePlan:
    """
    Ordered stages plus the concurrency the run starts from.

    Attributes:
        stages: The declared stages, in order.
        initial_target: Concurrency before the first stage (default 0).
    """

    stages: list[Stage] = field(default_factory=list)
    initial_target: int = 0

    def __post_init__(self) -> None:
        self._segments: list[_Segment] = []
        self._starts: list[float] = []
        cursor = 0.0
        previous = self.initial_target
        for stage in self.stages:
            kind = stage.kind
            if kind is None:
                kind = StageKind.PLATEAU if stage.target == previous else StageKind.RAMP
            segment = _Segment(
                start=cursor,
                end=cursor + stage.duration,
                start_target=previous,
                end_target=stage.target,
                stage=stage,
                kind=kind,
            )
            self._segments.append(segment)
            self._starts.append(cursor)
            cursor = segment.end
            previous = stage.target

    @classmethod
    def from_list(cls, entries: Iterable[dict[str, Any]], initial_target: int = 0) -> "StagePlan":
        return cls([Stage.from_dict(entry) for entry in entries], initial_target=initial_target)

    @property
    def total_duration(self) -> float:
        return self._segments[-1].end if self._segments else 0.0

    @property
    def max_target(self) -> int:
        return max([self.initial_target, *(stage.target for stage in self.stages)])

    def kinds(self) -> list[StageKind]:
        """Resolved kind of every stage, inferred ones included."""
        return [segment.kind for segment in self._segments]

    def stage_index_at(self, elapsed: float) -> int | None:
        """Index of the stage active at *elapsed* seconds, or ``None`` outside the plan."""
        if not self._segments or elapsed < 0 or elapsed >= self.total_duration:
            return None
        index = bisect.bisect_right(self._starts, elapsed) - 1
        # Zero-length stages share a start time with their successor.
        while index < len(self._segments) - 1 and self._segments[index].end <= elapsed:
            index += 1
        return index

    def _segment_at(self, elapsed: float) -> _Segment | None:
        index = self.stage_index_at(elapsed)
        return self._segments[index] if index is not None else None

    def stage_at(self, elapsed: float) -> Stage | None:
        """Return the stage active at *elapsed* seconds, or ``None`` outside the plan."""
        segment = self._segment_at(elapsed)
        return segment.stage if segment else None

    def target_at(self, elapsed: float) -> float:
        """
        Interpolated target concurrency ``C(t)``.

        Before the plan starts this is ``initial_target``; after it ends it
        is the last stage's target.
        """
        if not self._segments:
            return float(self.initial_target)
        if elapsed <= 0:
            first = self._segments[0]
            if first.kind is StageKind.PLATEAU:
                return float(first.end_target)
            return float(self.initial_target)
        segment = self._segment_at(elapsed)
        if segment is None:
            return float(self._segments[-1].end_target)
        if segment.kind is StageKind.PLATEAU or segment.end == segment.start:
            return float(segment.end_target)

        progress = (elapsed - segment.start) / (segment.end - segment.start)
        return segment.start_target + (segment.end_target - segment.start_target) * progress

    def spawn_rate_at(self, elapsed: float) -> float:
        """
        Users per second needed to follow the plan at *elapsed*.

        For a ramp this is the segment's slope; for a plateau it is the
        size of the step into it, so a step change completes in one tick.
        Never below 1.
        """
        segment = self._segment_at(elapsed)
        if segment is None:
            return 1.0
        delta = abs(segment.end_target - segment.start_target)
        if segment.kind is StageKind.RAMP and segment.end > segment.start:
            return max(1.0, delta / (segment.end - segment.start))
        return max(1.0, float(delta))

    def describe(self) -> list[str]:
        """Human-readable stage list used by the report, e.g. ``0→50 users (2m)``."""
        lines = []
        for segment in self._segments:
            duration = _format_seconds(segment.end - segment.start)
            if segment.kind is StageKind.PLATEAU:
                lines.append(f"{segment.end_target} users ({duration})")
            else:
                lines.append(f"{int(segment.start_target)}→{segment.end_target} users ({duration})")
        return lines


def _format_seconds(seconds: float) -> str:
    if seconds >= 3600 and seconds % 3600 == 0:
        return f"{int(seconds // 3600)}h"
    if seconds >= 60 and seconds % 60 == 0:
        return f"{int(seconds // 60)}m"
    return f"{seconds:g}s"
