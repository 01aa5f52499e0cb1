"""
Command-line interface.

Two sub-commands:

- ``loadcheck run``: run a profile in Locust library mode, print the
  text summary, write the reports and exit with the verdict.
- ``loadcheck check``: re-evaluate a saved JSON dump against a
  profile's thresholds.

Exit codes follow a three-state convention so that CI can distinguish
"thresholds breached" from "script crashed":

- ``0``: all thresholds passed
- ``1``: at least one threshold was breached
- ``2``: configuration error or the target was unhealthy before the run

Key Concepts Demonstrated:
- Locust library mode (``Environment``, ``create_local_runner``,
  ``start_shape``) for runs driven from Python
- ``argparse`` sub-commands mapped onto the configuration classes
"""

from __future__ import annotations

# Locust monkey-patches the standard library on import; importing it
# before ``requests`` (pulled in by loadcheck.client) avoids SSL warnings.
from locust.env import Environment
from locust.event import Events

import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence

from loadcheck import hooks
from loadcheck.analysis import AnalysisReport
from loadcheck.client import check_target_health, resolve_auth_headers
from loadcheck.config import Config, get_config
from loadcheck.exceptions import ConfigError, SetupError
from loadcheck.metrics import MetricRegistry
from loadcheck.profiles import ProfileSettings, load_profile
from loadcheck.report import load_results, render_text
from loadcheck.run import RunContext
from loadcheck.shape import StagedLoadShape
from loadcheck.thresholds import (
    EXIT_SCRIPT_ERROR,
    evaluate_thresholds,
    exit_code_for,
    format_results,
)
from loadcheck.users import user_class_for

logger = logging.getLogger(__name__)


def execute_run(
    profile: ProfileSettings,
    host: str,
    *,
    seed: int | None = None,
    think_scale: float = 1.0,
    stop_timeout: float = 30.0,
    headers: dict[str, str] | None = None,
    results_dir: str | Path | None = None,
    health_timeout: float = 5.0,
    registry: MetricRegistry | None = None,
) -> AnalysisReport:
    """
    Run *profile* against *host* in-process and return the analysis.

    Raises:
        SetupError: If the target fails the pre-run health check; no stage
            is started in that case.
    """
    check_target_health(host, timeout=health_timeout)

    context = RunContext.create(
        profile,
        host,
        seed=seed,
        think_scale=think_scale,
        headers=headers,
        registry=registry,
    )
    user_class = user_class_for(profile.workload_name)
    user_class.host = host

    env = Environment(
        user_classes=[user_class],
        shape_class=StagedLoadShape(profile.plan),
        host=host,
        events=Events(),
        stop_timeout=stop_timeout,
    )
    env.run_context = context
    runner = env.create_local_runner()

    context.restart_clock()
    runner.start_shape()
    shape_greenlet = runner.shape_greenlet
    if shape_greenlet is not None:
        shape_greenlet.join()
    runner.quit()

    return hooks.finish_run(env, context, results_dir)


def _run(args: argparse.Namespace, settings: type[Config]) -> int:
    profile = load_profile(args.profile or settings.PROFILE, args.profiles_file or settings.PROFILES_FILE)
    registry = MetricRegistry()
    headers = resolve_auth_headers(
        cookie=settings.SSO_COOKIE,
        token=settings.AUTH_TOKEN,
        login_url=settings.SSO_LOGIN_URL,
        username=settings.SSO_USER,
        password=settings.SSO_PASS,
        registry=registry,
    )
    report = execute_run(
        profile,
        args.host or settings.BASE_URL,
        seed=args.seed if args.seed is not None else settings.SEED,
        think_scale=args.think_scale if args.think_scale is not None else settings.THINK_SCALE,
        stop_timeout=settings.STOP_TIMEOUT,
        headers=headers,
        results_dir=args.results_dir or settings.RESULTS_DIR,
        health_timeout=settings.HEALTH_TIMEOUT,
        registry=registry,
    )
    print(render_text(report))
    return report.exit_code


def _check(args: argparse.Namespace, settings: type[Config]) -> int:
    profile = load_profile(args.profile or settings.PROFILE, args.profiles_file or settings.PROFILES_FILE)
    try:
        data = load_results(args.results)
    except (OSError, ValueError) as exc:
        raise ConfigError(f"Cannot read results file {args.results}: {exc}") from exc

    results = evaluate_thresholds(profile.thresholds, data.get("metrics") or {})
    code = exit_code_for(results)
    print(f"Threshold check for {profile.name}")
    print(format_results(results))
    print(f"Overall: {'PASS' if code == 0 else 'FAIL'}")
    return code


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="loadcheck", description="Load-test orchestration and analysis.")
    parser.add_argument("--env", default=None, help="Configuration environment (development, testing, ci)")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run a load profile against the target")
    run.add_argument("--profile", help="Profile name (default: LOADCHECK_PROFILE)")
    run.add_argument("--host", help="Target base URL (default: BASE_URL)")
    run.add_argument("--profiles-file", type=Path, help="Profiles YAML file")
    run.add_argument("--results-dir", type=Path, help="Directory for reports")
    run.add_argument("--seed", type=int, help="Seed for scenario selection")
    run.add_argument("--think-scale", type=float, help="Multiplier for every think-time pause")
    run.set_defaults(handler=_run)

    check = sub.add_parser("check", help="Check a saved JSON dump against a profile's thresholds")
    check.add_argument("results", type=Path, help="Path to a *-results.json file")
    check.add_argument("--profile", help="Profile whose thresholds apply")
    check.add_argument("--profiles-file", type=Path, help="Profiles YAML file")
    check.set_defaults(handler=_check)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """
    Entry point for the ``loadcheck`` console script.

    Returns:
        ``0`` pass, ``1`` threshold breach, ``2`` configuration or setup error.
    """
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    args = build_parser().parse_args(argv)
    settings = get_config(args.env)

    try:
        return args.handler(args, settings)
    except (ConfigError, SetupError) as exc:
        logger.error("%s", exc)
        return EXIT_SCRIPT_ERROR


if __name__ == "__main__":
    sys.exit(main())
