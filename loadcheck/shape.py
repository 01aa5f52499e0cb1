"""
Locust load shape driven by a :class:`~loadcheck.stages.StagePlan`.

Locust calls :meth:`StagedLoadShape.tick` about once per second; the
returned ``(user_count, spawn_rate)`` moves the live user count towards
the plan's interpolated target.  Returning ``None`` ends the run.

Key Concepts Demonstrated:
- Custom ``LoadTestShape`` for piecewise-linear ramps and plateaus
- Abstract base so Locust only picks up the concrete shape a locustfile
  defines
"""

from __future__ import annotations

from locust import LoadTestShape

from loadcheck.stages import StagePlan


class StagedLoadShape(LoadTestShape):
    """
    Follow a stage plan.

    Subclasses (or instances) set :attr:`plan`.  ``abstract = True`` keeps
    Locust from treating this base class as the shape of a locustfile that
    merely imports it.
    """

    abstract = True
    plan: StagePlan = StagePlan()

    def __init__(self, plan: StagePlan | None = None) -> None:
        super().__init__()
        if plan is not None:
            self.plan = plan

    def tick(self) -> tuple[int, float] | None:
        elapsed = self.get_run_time()
        if elapsed >= self.plan.total_duration:
            return None
        users = round(self.plan.target_at(elapsed))
        return users, self.plan.spawn_rate_at(elapsed)
