from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Literal

from snippet_harness.contracts.run_contracts.run_result import RUN_STATUSES, RunResult
from snippet_harness.contracts.snippet_contracts.snippet import Snippet

SnippetState = Literal[
    "discovered",
    "queued",
    "running",
    "pass",
    "fail",
    "toolchain_error",
    "timeout",
    "skipped",
    "reported",
]

TERMINAL_STATES: frozenset[str] = frozenset(RUN_STATUSES)

_ALLOWED_RESOLUTIONS: Mapping[str, frozenset[str]] = {
    "discovered": frozenset({"skipped", "toolchain_error"}),
    "queued": frozenset({"timeout", "toolchain_error"}),
    "running": TERMINAL_STATES - {"skipped"},
}


class BatchStateError(RuntimeError):
    pass


@dataclass(frozen=True, slots=True)
class BatchCounts:
    by_status: Mapping[str, int]
    by_language: Mapping[str, Mapping[str, int]]
    total: int


@dataclass
class RunBatch:
    """
    All outcomes of one harness invocation.

    The orchestrator is the only writer. Every snippet moves through
    discovered -> queued -> running -> terminal -> reported, skipped snippets
    resolve straight from discovered, and running -> running is only allowed
    as a bounded retry revision.
    """

    snippets: Mapping[str, Snippet]
    max_revisions: int = 1
    started_at_utc: str = field(default_factory=lambda: datetime.now(UTC).isoformat())
    ended_at_utc: str | None = None
    _states: dict[str, SnippetState] = field(default_factory=dict, repr=False)
    _revisions: dict[str, list[RunResult]] = field(default_factory=dict, repr=False)
    _results: dict[str, RunResult] = field(default_factory=dict, repr=False)

    @classmethod
    def start(cls, snippets: Iterable[Snippet], *, max_revisions: int = 1) -> RunBatch:
        by_id: dict[str, Snippet] = {}
        for snippet in snippets:
            if snippet.id in by_id:
                raise BatchStateError(f"Duplicate snippet id: {snippet.id}")
            by_id[snippet.id] = snippet
        batch = cls(snippets=by_id, max_revisions=max(1, max_revisions))
        for snippet_id in by_id:
            batch._states[snippet_id] = "discovered"
            batch._revisions[snippet_id] = []
        return batch

    @property
    def finalized(self) -> bool:
        return self.ended_at_utc is not None

    @property
    def unresolved(self) -> list[str]:
        return sorted(
            snippet_id
            for snippet_id, state in self._states.items()
            if state not in TERMINAL_STATES and state != "reported"
        )

    def state(self, snippet_id: str) -> SnippetState:
        return self._states[self._known(snippet_id)]

    def result(self, snippet_id: str) -> RunResult | None:
        return self._results.get(snippet_id)

    def revisions(self, snippet_id: str) -> list[RunResult]:
        return list(self._revisions[self._known(snippet_id)])

    def mark_queued(self, snippet_id: str) -> None:
        self._transition(snippet_id, expected={"discovered"}, target="queued")

    def mark_running(self, snippet_id: str) -> None:
        self._transition(snippet_id, expected={"queued"}, target="running")

    def record_revision(self, result: RunResult) -> None:
        """Record a non-final attempt (running -> running)."""
        self._ensure_open()
        snippet_id = self._known(result.snippet_id)
        if self._states[snippet_id] != "running":
            raise BatchStateError(
                f"{snippet_id}: revision recorded while {self._states[snippet_id]}"
            )
        if len(self._revisions[snippet_id]) + 1 >= self.max_revisions:
            raise BatchStateError(f"{snippet_id}: retry bound of {self.max_revisions} exceeded")
        self._revisions[snippet_id].append(result)

    def resolve(self, result: RunResult) -> None:
        """Record the terminal RunResult for a snippet."""
        self._ensure_open()
        snippet_id = self._known(result.snippet_id)
        current = self._states[snippet_id]
        allowed = _ALLOWED_RESOLUTIONS.get(current, frozenset())
        if result.status not in allowed:
            raise BatchStateError(f"{snippet_id}: cannot resolve {result.status} from {current}")
        self._revisions[snippet_id].append(result)
        self._results[snippet_id] = result
        self._states[snippet_id] = result.status

    def finalize(self) -> list[RunResult]:
        """Close the batch and return final results ordered by snippet id."""
        self._ensure_open()
        pending = self.unresolved
        if pending:
            raise BatchStateError(f"Cannot finalize with unresolved snippets: {pending}")
        self.ended_at_utc = datetime.now(UTC).isoformat()
        for snippet_id in self._states:
            self._states[snippet_id] = "reported"
        return self.results()

    def results(self) -> list[RunResult]:
        return [self._results[snippet_id] for snippet_id in sorted(self._results)]

    def counts(self) -> BatchCounts:
        return count_results(self._results.values())

    def _transition(self, snippet_id: str, *, expected: set[str], target: SnippetState) -> None:
        self._ensure_open()
        snippet_id = self._known(snippet_id)
        current = self._states[snippet_id]
        if current not in expected:
            raise BatchStateError(f"{snippet_id}: cannot move from {current} to {target}")
        self._states[snippet_id] = target

    def _known(self, snippet_id: str) -> str:
        if snippet_id not in self._states:
            raise BatchStateError(f"Unknown snippet id: {snippet_id}")
        return snippet_id

    def _ensure_open(self) -> None:
        if self.finalized:
            raise BatchStateError("RunBatch is already finalized")


def count_results(results: Iterable[RunResult]) -> BatchCounts:
    by_status: Counter[str] = Counter({status: 0 for status in RUN_STATUSES})
    by_language: dict[str, Counter[str]] = {}
    total = 0
    for result in results:
        total += 1
        by_status[result.status] += 1
        language_counts = by_language.setdefault(
            result.language, Counter({status: 0 for status in RUN_STATUSES})
        )
        language_counts[result.status] += 1
    return BatchCounts(
        by_status=dict(by_status),
        by_language={language: dict(by_language[language]) for language in sorted(by_language)},
        total=total,
    )
