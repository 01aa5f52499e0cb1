# ruff: noqa: E402
"""
Locust entrypoint for loadcheck profiles.

This is the file that the ``locust`` CLI discovers and loads.  The
profile is chosen with ``LOADCHECK_PROFILE``; only that profile's user
class and stage shape are exposed to Locust, and the loadcheck hooks are
registered so the run is health-checked before it starts and analysed
when it ends.

Usage examples::

    # Smoke test against a local target:
    LOADCHECK_PROFILE=smoke locust -f loadcheck/locustfile.py --headless \\
        --host http://localhost:4000

    # Spike test with a fixed seed and reports in ./results/spike:
    LOADCHECK_PROFILE=spike LOADCHECK_SEED=7 LOADCHECK_RESULTS_DIR=results/spike \\
        locust -f loadcheck/locustfile.py --headless

Key Concepts Demonstrated:
- Stage-driven ``LoadTestShape`` instead of ``-u``/``-r`` flags
- Locust ``events`` hooks for pre-run health check and post-run analysis
- ``sys.path`` manipulation so imports resolve regardless of the
  working directory Locust is launched from
"""

from __future__ import annotations

import sys
from pathlib import Path

from locust import events

# Locust may be invoked from any directory (project root, CI workspace,
# etc.).  Inserting the project root onto ``sys.path`` guarantees that
# ``from loadcheck.…`` imports resolve even without an installed package.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from loadcheck import hooks
from loadcheck.config import get_config
from loadcheck.profiles import load_profile
from loadcheck.shape import StagedLoadShape
from loadcheck.users import user_class_for

settings = get_config()
profile = load_profile(settings.PROFILE, settings.PROFILES_FILE)

# Binding only the selected class keeps Locust from spawning the others.
ProfileUserClass = user_class_for(profile.workload_name)


class ProfileShape(StagedLoadShape):
    """Stage plan of the selected profile."""

    plan = profile.plan


hooks.register(events, profile, settings=settings)

__all__ = ["ProfileShape", "ProfileUserClass"]
