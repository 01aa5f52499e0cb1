"""Exception types raised by loadcheck outside of scenario code.

Scenario code never raises for request or parse failures; those become
metric observations.  Only configuration problems and a target that is
unhealthy before the run starts are surfaced as exceptions.
"""

from __future__ import annotations


class LoadcheckError(Exception):
    """Base class for all loadcheck errors."""


class ConfigError(LoadcheckError, ValueError):
    """Raised for unreadable profiles, bad durations or bad threshold expressions."""


class SetupError(LoadcheckError):
    """Raised when the target fails its pre-run health check."""

    def __init__(self, base_url: str, reason: str) -> None:
        super().__init__(f"Target at {base_url} is not healthy before the run: {reason}")
        self.base_url = base_url
        self.reason = reason
