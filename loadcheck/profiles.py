"""
Load profiles: stage plan, thresholds and tunables per test type.

Profiles are read from YAML (the packaged ``profiles.yml`` unless another
file is configured).  The ``defaults`` section is merged under every
profile; its ``scenario`` and ``analysis`` mappings are merged key by key
so a profile only lists what it changes.

Key Concepts Demonstrated:
- Declarative profiles loaded with ``yaml.safe_load``
- Early validation: every bad value surfaces as ``ConfigError`` before
  the run starts, never halfway through it
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from loadcheck.analysis import AnalysisPolicy
from loadcheck.exceptions import ConfigError
from loadcheck.scenarios import ScenarioSettings
from loadcheck.spike import SpikeMonitor
from loadcheck.stages import StagePlan, parse_duration
from loadcheck.thresholds import parse_thresholds
from loadcheck.workloads import WORKLOADS, SpikeWorkload, Workload

DEFAULT_PROFILES_FILE = Path(__file__).with_name("profiles.yml")

_MERGED_SECTIONS = ("scenario", "analysis", "workload")


@dataclass
class ProfileSettings:
    """Everything needed to run one profile."""

    name: str
    plan: StagePlan
    thresholds: dict[str, list[str]] = field(default_factory=dict)
    description: str = ""
    workload_name: str = ""
    request_timeout: float = 10.0
    think_time: tuple[float, float] | None = None
    weights: dict[str, float] = field(default_factory=dict)
    workload_options: dict[str, Any] = field(default_factory=dict)
    scenario: ScenarioSettings = field(default_factory=ScenarioSettings)
    analysis: AnalysisPolicy = field(default_factory=AnalysisPolicy)
    high_water_mark: int = 100
    recovery_dwell_seconds: float = 5.0
    cache_capacity: int = 100

    def build_workload(self, monitor: SpikeMonitor) -> Workload:
        """Instantiate this profile's workload; the spike workload also gets *monitor*."""
        workload_cls = WORKLOADS[self.workload_name or self.name]
        options: dict[str, Any] = {
            "think_range": self.think_time,
            "weights": self.weights,
            **self.workload_options,
        }
        try:
            if issubclass(workload_cls, SpikeWorkload):
                return workload_cls(monitor, **options)
            return workload_cls(**options)
        except TypeError as exc:
            raise ConfigError(f"Invalid workload options for profile {self.name!r}: {exc}") from exc

    @classmethod
    def from_dict(cls, name: str, data: Mapping[str, Any]) -> "ProfileSettings":
        """
        Build settings from one merged profile entry.

        Raises:
            ConfigError: For any missing or malformed field.
        """
        stages = data.get("stages")
        if not isinstance(stages, list):
            raise ConfigError(f"Profile {name!r} must define a list of stages")

        workload_name = str(data.get("workload_type", name))
        if workload_name not in WORKLOADS:
            raise ConfigError(
                f"Profile {name!r} uses unknown workload {workload_name!r}; "
                f"expected one of {sorted(WORKLOADS)}"
            )

        thresholds = {
            metric: [expressions] if isinstance(expressions, str) else list(expressions)
            for metric, expressions in (data.get("thresholds") or {}).items()
        }
        parse_thresholds(thresholds)

        think = data.get("think_time")
        think_time = None
        if think is not None:
            try:
                low, high = think
                think_time = (float(low), float(high))
            except (TypeError, ValueError) as exc:
                raise ConfigError(f"think_time of {name!r} must be [low, high], got {think!r}") from exc
            if think_time[0] > think_time[1] or think_time[0] < 0:
                raise ConfigError(f"think_time of {name!r} must satisfy 0 <= low <= high")

        try:
            weights = {str(key): float(value) for key, value in (data.get("weights") or {}).items()}
            high_water_mark = int(data.get("high_water_mark", 100))
            cache_capacity = int(data.get("cache_capacity", 100))
            initial_target = int(data.get("initial_target", 0))
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid numeric setting in profile {name!r}: {exc}") from exc

        try:
            scenario = ScenarioSettings.from_dict(data.get("scenario"))
        except TypeError as exc:
            raise ConfigError(f"Invalid scenario settings in profile {name!r}: {exc}") from exc

        return cls(
            name=name,
            plan=StagePlan.from_list(stages, initial_target=initial_target),
            thresholds=thresholds,
            description=str(data.get("description", "")),
            workload_name=workload_name,
            request_timeout=parse_duration(data.get("request_timeout", 10)),
            think_time=think_time,
            weights=weights,
            workload_options=dict(data.get("workload") or {}),
            scenario=scenario,
            analysis=AnalysisPolicy.from_dict(data.get("analysis")),
            high_water_mark=high_water_mark,
            recovery_dwell_seconds=parse_duration(data.get("recovery_dwell", 5)),
            cache_capacity=cache_capacity,
        )


def _merge(defaults: Mapping[str, Any], profile: Mapping[str, Any]) -> dict[str, Any]:
    merged = {**defaults, **profile}
    for section in _MERGED_SECTIONS:
        merged[section] = {**(defaults.get(section) or {}), **(profile.get(section) or {})}
    return merged


def load_profiles(path: str | Path | None = None) -> dict[str, ProfileSettings]:
    """
    Read every profile from *path* (the packaged file by default).

    Raises:
        ConfigError: If the file is missing, not valid YAML, or any profile
            is malformed.
    """
    path = Path(path) if path else DEFAULT_PROFILES_FILE
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except OSError as exc:
        raise ConfigError(f"Cannot read profiles file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Profiles file {path} is not valid YAML: {exc}") from exc

    if not isinstance(data, dict) or not isinstance(data.get("profiles"), dict):
        raise ConfigError(f"Profiles file {path} must contain a 'profiles' mapping")

    defaults = data.get("defaults") or {}
    return {
        str(name): ProfileSettings.from_dict(str(name), _merge(defaults, entry or {}))
        for name, entry in data["profiles"].items()
    }


def load_profile(name: str, path: str | Path | None = None) -> ProfileSettings:
    """Return one profile by name; raises ``ConfigError`` if it does not exist."""
    profiles = load_profiles(path)
    try:
        return profiles[name]
    except KeyError:
        raise ConfigError(f"Unknown profile {name!r}; available: {', '.join(sorted(profiles))}") from None
