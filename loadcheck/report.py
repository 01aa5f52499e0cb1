"""
Report writers: text summary, HTML report and JSON dump.

The text summary is what CI logs show; the HTML report is for people; the
JSON dump holds every collected metric and can be re-checked later with
``loadcheck check``.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from jinja2 import Environment, PackageLoader, select_autoescape

from loadcheck.analysis import AnalysisReport
from loadcheck.thresholds import format_results

logger = logging.getLogger(__name__)

_templates = Environment(
    loader=PackageLoader("loadcheck", "templates"),
    autoescape=select_autoescape(["html"]),
)


def format_checkpoints(run_state: dict[str, Any]) -> list[str]:
    """One line per checkpoint bucket, in elapsed-minute order."""
    lines = []
    for checkpoint in sorted((run_state.get("checkpoints") or {}).values(), key=lambda cp: cp["minute"]):
        line = (
            f"{checkpoint['minute']}min: response {checkpoint['response_time_ms']:.0f}ms, "
            f"sessions {checkpoint['open_sessions']}"
        )
        if checkpoint.get("memory_mb") is not None:
            line += f", memory {checkpoint['memory_mb']:.1f} MB"
        lines.append(line)
    return lines


def format_spike_cycles(run_state: dict[str, Any]) -> list[str]:
    return [
        f"#{number}: recovered in {cycle['recovery_ms']:.0f}ms"
        for number, cycle in enumerate(run_state.get("spike_cycles") or [], start=1)
    ]


def render_text(report: AnalysisReport) -> str:
    """Plain-text summary for stdout and CI logs."""
    http = report.http
    lines = [
        f"{report.profile.upper() or 'RUN'} TEST ANALYSIS",
        "=" * 62,
        f"Target:          {report.target}",
        f"System status:   {report.status.name}",
    ]
    if report.breaking_point:
        lines.append(f"Breaking point:  {report.breaking_point}")
    lines += [
        f"Requests:        {http.total_requests} ({http.failed_requests} failed, {http.failure_rate:.2%})",
        f"Latency (ms):    avg {http.avg_ms:.0f}  p95 {http.p95_ms:.0f}  p99 {http.p99_ms:.0f}  max {http.max_ms:.0f}",
        f"Peak users:      {http.peak_users}",
    ]
    if report.memory is not None:
        lines.append(
            f"Memory growth:   {report.memory.growth_mb:.2f} MB "
            f"({report.memory.growth_per_hour:.2f} MB/h, {report.memory.tier.value})"
        )
    if report.stability is not None:
        lines.append(f"Stability:       {report.stability.value}")

    cycles = format_spike_cycles(report.run_state)
    if cycles:
        lines += ["", "Spike cycles:"] + [f"  {line}" for line in cycles]
    checkpoints = format_checkpoints(report.run_state)
    if checkpoints:
        lines += ["", "Checkpoints:"] + [f"  {line}" for line in checkpoints]

    lines += ["", "Diagnosis:"]
    lines += [f"  {finding}" for finding in report.findings] or ["  (no data)"]
    lines += ["", "Recommendations:"]
    lines += [f"  - {item}" for item in report.recommendations]
    lines += ["", format_results(report.thresholds), "", f"Overall: {'PASS' if report.passed else 'FAIL'}"]
    return "\n".join(lines)


def render_html(report: AnalysisReport) -> str:
    template = _templates.get_template("report.html")
    return template.render(report=report, data=report.as_dict())


def to_json(report: AnalysisReport) -> dict[str, Any]:
    return report.as_dict()


def write_reports(report: AnalysisReport, results_dir: str | Path, *, prefix: str | None = None) -> list[Path]:
    """
    Write ``<prefix>-summary.txt``, ``<prefix>-report.html`` and
    ``<prefix>-results.json`` into *results_dir*.

    Returns:
        The written paths.
    """
    directory = Path(results_dir)
    directory.mkdir(parents=True, exist_ok=True)
    prefix = prefix or report.profile or "run"

    text_path = directory / f"{prefix}-summary.txt"
    html_path = directory / f"{prefix}-report.html"
    json_path = directory / f"{prefix}-results.json"

    text_path.write_text(render_text(report) + "\n", encoding="utf-8")
    html_path.write_text(render_html(report), encoding="utf-8")
    with json_path.open("w", encoding="utf-8") as handle:
        json.dump(to_json(report), handle, indent=2, default=str)

    logger.debug("Wrote %s, %s, %s", text_path, html_path, json_path)
    return [text_path, html_path, json_path]


def load_results(path: str | Path) -> dict[str, Any]:
    """Read a JSON dump written by :func:`write_reports`."""
    with Path(path).open("r", encoding="utf-8") as handle:
        return json.load(handle)
