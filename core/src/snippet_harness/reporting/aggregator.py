from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime

from snippet_harness.contracts import BatchCounts, RunBatch, RunResult, Snippet, count_results

EXIT_OK = 0
EXIT_HARNESS_FAULT = 1
EXIT_CONFIG_ERROR = 2
EXIT_SNIPPET_FAILURES = 3


@dataclass(frozen=True, slots=True)
class ReportEntry:
    snippet_id: str
    language: str
    status: str
    source_path: str
    exit_code: int | None
    duration_ms: int
    retry_count: int
    message: str | None
    stdout: str
    stderr: str

    @classmethod
    def from_result(cls, result: RunResult, *, source_path: str) -> ReportEntry:
        return cls(
            snippet_id=result.snippet_id,
            language=result.language,
            status=result.status,
            source_path=source_path,
            exit_code=result.exit_code,
            duration_ms=result.duration_ms,
            retry_count=result.retry_count,
            message=result.message,
            stdout=result.stdout,
            stderr=result.stderr,
        )


@dataclass(frozen=True, slots=True)
class HarnessReport:
    """
    Deterministic view of one harness invocation.

    Entries are ordered by snippet id regardless of completion order.
    """

    started_at_utc: str
    ended_at_utc: str
    root: str
    config_hash: str | None
    counts: BatchCounts
    entries: Sequence[ReportEntry] = field(default_factory=list)
    fault: str | None = None
    exit_code: int = EXIT_OK

    @property
    def ok(self) -> bool:
        return self.fault is None


def build_report(
    batch: RunBatch,
    *,
    root: str,
    config_hash: str | None = None,
    fail_on: Iterable[str] = (),
) -> HarnessReport:
    """Fold a finalized batch into a report and decide the exit code."""
    results = batch.results()
    entries = [
        ReportEntry.from_result(
            result, source_path=str(batch.snippets[result.snippet_id].source_path)
        )
        for result in results
    ]
    counts = batch.counts()
    return HarnessReport(
        started_at_utc=batch.started_at_utc,
        ended_at_utc=batch.ended_at_utc or datetime.now(UTC).isoformat(),
        root=root,
        config_hash=config_hash,
        counts=counts,
        entries=sorted(entries, key=lambda entry: entry.snippet_id),
        exit_code=decide_exit_code(counts.by_status, fault=None, fail_on=fail_on),
    )


def build_fault_report(
    fault: str,
    *,
    root: str,
    started_at_utc: str,
    config_hash: str | None = None,
    snippets: Iterable[Snippet] = (),
    resolved: Iterable[RunResult] = (),
    exit_code: int = EXIT_HARNESS_FAULT,
) -> HarnessReport:
    """
    Report for a run the harness could not complete.

    Every discovered snippet still gets an entry: results that resolved before
    the fault are kept, the rest are recorded as toolchain errors.
    """
    by_id = {snippet.id: snippet for snippet in snippets}
    results = {result.snippet_id: result for result in resolved if result.snippet_id in by_id}
    for snippet_id, snippet in by_id.items():
        if snippet_id not in results:
            results[snippet_id] = RunResult.toolchain_error(
                snippet_id, snippet.language, f"Not completed: harness fault ({fault})"
            )
    entries = [
        ReportEntry.from_result(
            results[snippet_id], source_path=str(by_id[snippet_id].source_path)
        )
        for snippet_id in sorted(results)
    ]
    return HarnessReport(
        started_at_utc=started_at_utc,
        ended_at_utc=datetime.now(UTC).isoformat(),
        root=root,
        config_hash=config_hash,
        counts=count_results(results.values()),
        entries=entries,
        fault=fault,
        exit_code=exit_code,
    )


def decide_exit_code(
    by_status: Mapping[str, int],
    *,
    fault: str | None,
    fail_on: Iterable[str] = (),
) -> int:
    """
    Harness exit code.

    Snippet outcomes only matter when `fail_on` names their status; by default
    failures are reported, not propagated.
    """
    if fault is not None:
        return EXIT_HARNESS_FAULT
    if any(by_status.get(status, 0) > 0 for status in fail_on):
        return EXIT_SNIPPET_FAILURES
    return EXIT_OK
