"""
Locust user classes, one per load profile.

Provides an abstract :class:`ProfileUser` that binds each simulated client
to the run's shared :class:`~loadcheck.run.RunContext`, plus a thin
concrete subclass per profile.  The concrete classes carry no behaviour
of their own: one ``@task`` runs the profile workload's iteration and
``wait_time`` delegates to the workload's think time.

Key Concepts Demonstrated:
- Abstract Locust base classes for DRY scenario authoring
- ``wait_time`` as a method, so think time can depend on live load
- ``StopUser`` to keep clients from running when setup failed
"""

from __future__ import annotations

from locust import HttpUser, task
from locust.exception import StopUser

from loadcheck.config import get_config
from loadcheck.run import RunContext
from loadcheck.scenarios import ScenarioContext


def get_run_context(environment) -> RunContext:
    """Return the run context the ``init`` hook attached to *environment*."""
    context = getattr(environment, "run_context", None)
    if context is None:
        raise StopUser("No run context attached to the Locust environment")
    return context


class ProfileUser(HttpUser):
    """
    Base user that runs the active profile's workload.

    ``abstract = True`` tells Locust not to spawn this class directly,
    only its concrete subclasses.

    Attributes:
        run_context: The shared run context.
        ctx: This client's scenario context (own session, shared state).
    """

    abstract = True
    host = get_config().BASE_URL

    run_context: RunContext
    ctx: ScenarioContext

    def on_start(self) -> None:
        """Attach to the run context and build this client's scenario context."""
        self.run_context = get_run_context(self.environment)
        if self.run_context.aborted:
            raise StopUser("Run aborted before start")
        self.ctx = self.run_context.scenario_context(self.client)

    def live_users(self) -> int:
        runner = self.environment.runner
        return runner.user_count if runner is not None else 1

    def wait_time(self) -> float:
        return self.run_context.workload.think_time(self.ctx, self.live_users())

    @task
    def iterate(self) -> None:
        """Run one workload iteration."""
        live = self.live_users()
        self.run_context.state.observe_concurrency(live)
        self.run_context.workload.run_iteration(self.ctx, live)
        self.ctx.iteration += 1


class SmokeUser(ProfileUser):
    """Single user touching every endpoint."""


class LoadUser(ProfileUser):
    """Normal browsing traffic."""


class StressUser(ProfileUser):
    """Aggressive traffic patterns to find the breaking point."""


class SpikeUser(ProfileUser):
    """Spike traffic and recovery probing."""


class SoakUser(ProfileUser):
    """Sustained traffic with memory and degradation sampling."""


USER_CLASSES: dict[str, type[ProfileUser]] = {
    "smoke": SmokeUser,
    "load": LoadUser,
    "stress": StressUser,
    "spike": SpikeUser,
    "soak": SoakUser,
}


def user_class_for(workload_name: str) -> type[ProfileUser]:
    return USER_CLASSES[workload_name]
