from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from snippet_harness.configuration import config_fingerprint, load_harness_config
from snippet_harness.contracts import (
    ExecutionContext,
    HarnessConfig,
    RateBudget,
    RunBatch,
    RunnerRegistry,
    Snippet,
)
from snippet_harness.discovery import DiscoveryError, DiscoverySettings, discover
from snippet_harness.orchestration import (
    Orchestrator,
    OrchestratorSettings,
    RetryPolicy,
    SemaphoreBudget,
)
from snippet_harness.reporting import HarnessReport, build_fault_report, build_report
from snippet_harness.runtime import resolve_workspace_root

logger = logging.getLogger("snippet_harness.api")

LANGUAGE_FILTER_REASON = "excluded by language filter"
RUNNER_DISABLED_REASON = "runner disabled by configuration"


class HarnessFault(RuntimeError):
    """The harness itself could not complete (as opposed to a snippet failing)."""

    def __init__(self, message: str, *, batch: RunBatch | None = None) -> None:
        super().__init__(message)
        self.batch = batch


@dataclass(frozen=True, slots=True)
class HarnessOutcome:
    report: HarnessReport
    batch: RunBatch | None = None

    @property
    def exit_code(self) -> int:
        return self.report.exit_code


def run_harness(
    config: HarnessConfig,
    *,
    registry: RunnerRegistry,
    budget: RateBudget | None = None,
    secrets: Mapping[str, str] | None = None,
    languages: Sequence[str] | None = None,
    root: str | Path | None = None,
) -> HarnessOutcome:
    """
    Discover, run and report every snippet under the configured root.

    Snippet failures never raise; they end up in the report. A discovery or
    orchestration fault produces a report carrying `fault` and exit code 1.
    """
    started = datetime.now(UTC).isoformat()
    snippet_root = Path(root if root is not None else config.snippets.root)
    fingerprint = config_fingerprint(config)

    try:
        snippets = discover(snippet_root, settings=DiscoverySettings.from_config(config))
    except DiscoveryError as exc:
        logger.error("Discovery failed: %s", exc)
        return HarnessOutcome(
            report=build_fault_report(
                str(exc),
                root=str(snippet_root),
                started_at_utc=started,
                config_hash=fingerprint,
            )
        )

    selected = languages if languages else config.snippets.languages
    if selected:
        snippets = apply_language_filter(snippets, selected)
    disabled = [language for language, runner in config.runners.items() if not runner.enabled]
    if disabled:
        snippets = _skip_languages(snippets, disabled, RUNNER_DISABLED_REASON)
    logger.info("Discovered %d snippets under %s", len(snippets), snippet_root)

    try:
        batch = _run_to_completion(
            config, snippets, registry=registry, budget=budget, secrets=secrets
        )
    except HarnessFault as fault:
        logger.error("Harness fault: %s", fault, exc_info=True)
        return HarnessOutcome(
            report=build_fault_report(
                str(fault),
                root=str(snippet_root),
                started_at_utc=started,
                config_hash=fingerprint,
                snippets=snippets,
                resolved=fault.batch.results() if fault.batch is not None else (),
            )
        )

    report = build_report(
        batch,
        root=str(snippet_root),
        config_hash=fingerprint,
        fail_on=config.report.fail_on,
    )
    return HarnessOutcome(report=report, batch=batch)


def run_from_yaml(
    path: str | Path | None,
    *,
    registry: RunnerRegistry,
    overrides: Mapping[str, Any] | None = None,
    languages: Sequence[str] | None = None,
    root: str | Path | None = None,
) -> HarnessOutcome:
    config = load_harness_config(path, overrides=overrides)
    return run_harness(config, registry=registry, languages=languages, root=root)


def _run_to_completion(
    config: HarnessConfig,
    snippets: Sequence[Snippet],
    *,
    registry: RunnerRegistry,
    budget: RateBudget | None,
    secrets: Mapping[str, str] | None,
) -> RunBatch:
    batch: RunBatch | None = None
    try:
        orchestrator = Orchestrator(
            registry=registry,
            budget=budget if budget is not None else build_budget(config),
            context=build_execution_context(config),
            secrets=secrets if secrets is not None else secrets_from_environment(config),
            retry_policy=RetryPolicy.from_config(config.retry),
            settings=OrchestratorSettings.from_config(config.execution),
        )
        batch = orchestrator.start_batch(snippets)
        orchestrator.drive(batch)
        batch.finalize()
    except Exception as exc:
        raise HarnessFault(f"Orchestration failed: {exc}", batch=batch) from exc
    return batch


def apply_language_filter(
    snippets: Sequence[Snippet], languages: Sequence[str]
) -> tuple[Snippet, ...]:
    """
    Mark snippets outside `languages` as skipped rather than dropping them.

    Snippets that already carry a skip reason or a discovery error keep it.
    """
    wanted = set(languages)
    excluded = {snippet.language for snippet in snippets} - wanted
    return _skip_languages(snippets, excluded, LANGUAGE_FILTER_REASON)


def _skip_languages(
    snippets: Iterable[Snippet], languages: Iterable[str], reason: str
) -> tuple[Snippet, ...]:
    targets = set(languages)
    return tuple(
        replace(snippet, skip_reason=reason)
        if snippet.language in targets
        and snippet.skip_reason is None
        and snippet.discovery_error is None
        else snippet
        for snippet in snippets
    )


def build_budget(config: HarnessConfig) -> SemaphoreBudget:
    return SemaphoreBudget(
        config.execution.service_concurrency,
        min_interval_s=config.execution.min_request_interval_s,
    )


def build_execution_context(config: HarnessConfig) -> ExecutionContext:
    return ExecutionContext(
        workspace_root=resolve_workspace_root(config.execution.workspace_root),
        env_passthrough=tuple(config.execution.env_passthrough),
        secret_placeholders={
            secret.name: tuple(secret.placeholders) for secret in config.secrets
        },
        keep_workdirs=config.execution.keep_workdirs,
    )


def secrets_from_environment(config: HarnessConfig) -> dict[str, str]:
    """Read configured secrets from the harness environment; empty values count as missing."""
    found: dict[str, str] = {}
    for name in config.secret_names():
        value = os.environ.get(name)
        if value:
            found[name] = value
    return found
