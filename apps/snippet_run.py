from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import Any

from runners.go import GoRunner
from runners.java import JavaRunner
from runners.python import PythonRunner
from runners.shell import ShellRunner
from runners.typescript import TypeScriptRunner
from snippet_harness.api import HarnessOutcome, run_harness
from snippet_harness.configuration import ConfigError, load_harness_config, parse_override
from snippet_harness.contracts import HarnessConfig, ReportConfig, RunnerAdapter
from snippet_harness.orchestration import DictRunnerRegistry
from snippet_harness.reporting import (
    EXIT_CONFIG_ERROR,
    EXIT_HARNESS_FAULT,
    render_annotations,
    render_json,
    render_summary,
)

logger = logging.getLogger("snippet_harness.cli")

RUNNER_FACTORIES: Mapping[str, Callable[..., RunnerAdapter]] = {
    "shell": ShellRunner,
    "curl": ShellRunner,
    "python": PythonRunner,
    "typescript": TypeScriptRunner,
    "go": GoRunner,
    "java": JavaRunner,
}


def build_registry(config: HarnessConfig) -> DictRunnerRegistry:
    """One adapter per language, honouring configured command overrides."""
    runners = {
        language: factory(command=config.runner_command(language))
        for language, factory in RUNNER_FACTORIES.items()
    }
    return DictRunnerRegistry(runners=runners)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Execute every documentation snippet and report pass/fail per example."
    )
    parser.add_argument("--config", type=Path, default=None, help="Harness YAML config")
    parser.add_argument("--root", type=Path, default=None, help="Snippet tree root")
    parser.add_argument(
        "--language",
        dest="languages",
        action="append",
        default=None,
        help="Only run this language (repeatable); others are reported as skipped",
    )
    parser.add_argument("--global-timeout", type=float, default=None, help="Seconds")
    parser.add_argument("--workers", type=int, default=None, help="Worker pool size")
    parser.add_argument(
        "--report",
        type=Path,
        default=None,
        help="Write the JSON report here instead of stdout",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Dot-path config override, e.g. retry.max_retries=1",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    return parser.parse_args(argv)


def collect_overrides(args: argparse.Namespace) -> dict[str, Any]:
    overrides: dict[str, Any] = dict(parse_override(token) for token in args.overrides)
    if args.global_timeout is not None:
        overrides["execution.global_timeout_s"] = args.global_timeout
    if args.workers is not None:
        overrides["execution.workers"] = args.workers
    if args.report is not None:
        overrides["report.path"] = str(args.report)
    if args.log_level is not None:
        overrides["log_level"] = args.log_level
    return overrides


def emit_report(outcome: HarnessOutcome, report_config: ReportConfig) -> None:
    payload = render_json(
        outcome.report,
        include_output=report_config.include_output,
        max_output_chars=report_config.max_output_chars,
    )
    if report_config.path:
        path = Path(report_config.path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(payload + "\n", encoding="utf-8")
        logger.info("Wrote report to %s", path)
    else:
        sys.stdout.write(payload + "\n")

    sys.stderr.write(render_summary(outcome.report) + "\n")
    if report_config.annotations:
        # workflow commands are only picked up from stdout
        for line in render_annotations(outcome.report):
            sys.stdout.write(line + "\n")


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        config = load_harness_config(args.config, overrides=collect_overrides(args))
    except ConfigError as exc:
        logging.basicConfig(level=logging.WARNING)
        logger.error("Invalid configuration: %s", exc)
        return EXIT_CONFIG_ERROR

    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    outcome = run_harness(
        config,
        registry=build_registry(config),
        languages=args.languages,
        root=args.root,
    )
    try:
        emit_report(outcome, config.report)
    except OSError:
        logger.error("Could not write the report", exc_info=True)
        return EXIT_HARNESS_FAULT
    return outcome.exit_code


if __name__ == "__main__":
    raise SystemExit(main())
