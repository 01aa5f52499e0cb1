"""
Locust event listeners that wrap a run with setup and analysis.

- ``init``: apply the configured ``stop_timeout``, build the
  :class:`~loadcheck.run.RunContext` and attach it to the environment.
- ``test_start``: pre-run health check of the target.  An unhealthy target
  is fatal: the run is aborted before any user executes a scenario and the
  process exits with code 2.
- ``quitting``: run the analysis engine, write the reports and set
  ``process_exit_code`` from the threshold verdict.

Key Concepts Demonstrated:
- Locust ``events`` hooks for setup/teardown around a headless run
- Three-state exit codes (pass, threshold breach, setup error)
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable

import gevent

from loadcheck.analysis import AnalysisReport, HttpSummary
from loadcheck.client import check_target_health, resolve_auth_headers
from loadcheck.config import Config, get_config
from loadcheck.exceptions import SetupError
from loadcheck.profiles import ProfileSettings
from loadcheck.report import write_reports
from loadcheck.run import RunContext
from loadcheck.thresholds import EXIT_SCRIPT_ERROR

logger = logging.getLogger(__name__)


def build_run_context(environment, profile: ProfileSettings, settings: type[Config]) -> RunContext:
    """Create the run context for *environment* and attach it as ``environment.run_context``."""
    host = environment.host or settings.BASE_URL
    context = RunContext.create(
        profile,
        host,
        seed=settings.SEED,
        think_scale=settings.THINK_SCALE,
    )
    context.headers = resolve_auth_headers(
        cookie=settings.SSO_COOKIE,
        token=settings.AUTH_TOKEN,
        login_url=settings.SSO_LOGIN_URL,
        username=settings.SSO_USER,
        password=settings.SSO_PASS,
        registry=context.registry,
    )
    environment.run_context = context
    return context


def apply_stop_timeout(environment, settings: type[Config]) -> None:
    """
    Give retiring users ``settings.STOP_TIMEOUT`` seconds to finish their iteration.

    Locust's default of no timeout stops a ramped-down user mid-iteration.
    A ``--stop-timeout`` passed on the command line is left alone.
    """
    options = getattr(environment, "parsed_options", None)
    if environment.stop_timeout or getattr(options, "stop_timeout", None) not in (None, 0, "0"):
        return
    environment.stop_timeout = settings.STOP_TIMEOUT


def finish_run(environment, context: RunContext, results_dir: str | Path | None) -> AnalysisReport:
    """Analyse the finished run, write reports and return the analysis."""
    http = HttpSummary.from_locust_stats(
        environment.stats.total,
        peak_users=context.state.peak_concurrency,
        duration_seconds=context.state.elapsed_seconds(context.clock()),
    )
    report = context.analyze(http)
    if results_dir:
        written = write_reports(report, results_dir)
        logger.info("Reports written: %s", ", ".join(str(path) for path in written))
    return report


def register(
    events,
    profile: ProfileSettings,
    *,
    settings: type[Config] | None = None,
    results_dir: str | Path | None = None,
    on_report: Callable[[AnalysisReport], Any] | None = None,
) -> None:
    """
    Attach the loadcheck listeners to a Locust ``events`` object.

    Args:
        events: ``locust.events`` or an ``Environment``'s own ``Events``.
        profile: The profile being run.
        settings: Configuration class; defaults to :func:`get_config`.
        results_dir: Where reports are written; ``settings.RESULTS_DIR``
            when omitted.
        on_report: Optional callback receiving the final analysis.
    """
    settings = settings or get_config()
    results_dir = results_dir if results_dir is not None else settings.RESULTS_DIR

    @events.init.add_listener
    def _on_init(environment, **_kwargs):
        apply_stop_timeout(environment, settings)
        build_run_context(environment, profile, settings)

    @events.test_start.add_listener
    def _on_test_start(environment, **_kwargs):
        context: RunContext = environment.run_context
        try:
            check_target_health(context.host, timeout=settings.HEALTH_TIMEOUT)
        except SetupError as exc:
            logger.error("%s", exc)
            context.aborted = True
            environment.process_exit_code = EXIT_SCRIPT_ERROR
            if environment.runner is not None:
                gevent.spawn(environment.runner.quit)
            return
        context.restart_clock()

    @events.quitting.add_listener
    def _on_quitting(environment, **_kwargs):
        context: RunContext | None = getattr(environment, "run_context", None)
        if context is None or context.aborted:
            environment.process_exit_code = EXIT_SCRIPT_ERROR
            return

        report = finish_run(environment, context, results_dir)
        environment.process_exit_code = report.exit_code
        if on_report is not None:
            on_report(report)
