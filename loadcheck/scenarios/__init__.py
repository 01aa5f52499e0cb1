"""Scenario library: scripted behaviours that simulated clients execute."""

from loadcheck.scenarios.base import (
    ScenarioContext,
    ScenarioSettings,
    checked_get,
    record_error,
    weighted_choice,
)
from loadcheck.scenarios.browse import (
    browse,
    browse_users,
    health_check,
    main_page,
    read_spike,
    smoke_checks,
    view_post,
)
from loadcheck.scenarios.resilience import (
    health_monitor,
    performance_check,
    recovery_probe,
    resource_intensive_task,
)
from loadcheck.scenarios.stress import PATTERNS as STRESS_PATTERNS
from loadcheck.scenarios.stress import burst, mixed, read_heavy, write_heavy
from loadcheck.scenarios.writes import create_post, integrity_check, verify_entity, write_post

__all__ = [
    "STRESS_PATTERNS",
    "ScenarioContext",
    "ScenarioSettings",
    "browse",
    "browse_users",
    "burst",
    "checked_get",
    "create_post",
    "health_check",
    "health_monitor",
    "integrity_check",
    "main_page",
    "mixed",
    "performance_check",
    "read_heavy",
    "read_spike",
    "record_error",
    "recovery_probe",
    "resource_intensive_task",
    "smoke_checks",
    "verify_entity",
    "view_post",
    "weighted_choice",
    "write_heavy",
    "write_post",
]
