from __future__ import annotations

import threading
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from snippet_harness.contracts import (
    ExecutionContext,
    RunnerAdapter,
    RunnerInfo,
    RunResult,
    RunStatus,
    Snippet,
)


@dataclass(frozen=True, slots=True)
class FakeOutcome:
    """One scripted attempt; `delay_s` simulates wall time spent running."""

    status: RunStatus = "pass"
    stdout: str = ""
    stderr: str = ""
    exit_code: int | None = None
    delay_s: float = 0.0
    message: str | None = None


@dataclass(frozen=True, slots=True)
class FakeCall:
    snippet_id: str
    secrets: Mapping[str, str]
    timeout: float


class FakeRunner(RunnerAdapter):
    """
    In-memory adapter that plays back scripted outcomes per snippet id.

    Each execute() consumes the next outcome for the snippet; the last one
    repeats once the script is exhausted. Unscripted snippets pass.
    """

    def __init__(
        self,
        *,
        languages: Sequence[str] = ("python",),
        key: str = "fake",
        script: Mapping[str, Sequence[FakeOutcome]] | None = None,
        default: FakeOutcome | None = None,
    ) -> None:
        self._languages = tuple(languages)
        self._key = key
        self._script = {snippet_id: list(steps) for snippet_id, steps in (script or {}).items()}
        self._default = default or FakeOutcome()
        self._lock = threading.Lock()
        self._running = 0
        self.calls: list[FakeCall] = []
        self.peak_concurrency = 0

    @property
    def info(self) -> RunnerInfo:
        return RunnerInfo(
            key=self._key,
            name="Fake Runner",
            languages=self._languages,
            version="0.0.0",
        )

    def attempts(self, snippet_id: str) -> int:
        with self._lock:
            return sum(1 for call in self.calls if call.snippet_id == snippet_id)

    def execute(
        self,
        snippet: Snippet,
        secrets: Mapping[str, str],
        timeout: float,
        *,
        context: ExecutionContext,
    ) -> RunResult:
        with self._lock:
            self.calls.append(FakeCall(snippet.id, dict(secrets), timeout))
            outcome = self._next_outcome(snippet.id)
            self._running += 1
            self.peak_concurrency = max(self.peak_concurrency, self._running)
        started = time.monotonic()
        try:
            if outcome.delay_s > 0:
                if context.cancel.wait(min(outcome.delay_s, max(timeout, 0.0))):
                    return RunResult.timed_out(
                        snippet.id,
                        snippet.language,
                        "Cancelled by global deadline",
                        duration_ms=int((time.monotonic() - started) * 1000),
                    )
                if outcome.delay_s > timeout:
                    return RunResult.timed_out(
                        snippet.id,
                        snippet.language,
                        f"Exceeded {timeout:.1f}s timeout",
                        duration_ms=int((time.monotonic() - started) * 1000),
                    )
            return RunResult(
                snippet_id=snippet.id,
                language=snippet.language,
                status=outcome.status,
                stdout=outcome.stdout,
                stderr=outcome.stderr,
                exit_code=outcome.exit_code,
                duration_ms=int((time.monotonic() - started) * 1000),
                message=outcome.message,
            )
        finally:
            with self._lock:
                self._running -= 1

    def _next_outcome(self, snippet_id: str) -> FakeOutcome:
        steps = self._script.get(snippet_id)
        if not steps:
            return self._default
        if len(steps) == 1:
            return steps[0]
        return steps.pop(0)


def make_snippet(
    snippet_id: str,
    *,
    language: str = "python",
    body: str = "print('ok')\n",
    required_secrets: Sequence[str] = (),
    calls_service: bool | None = None,
    timeout_s: float | None = None,
    skip_reason: str | None = None,
    discovery_error: str | None = None,
) -> Snippet:
    return Snippet(
        id=snippet_id,
        language=language,
        source_path=Path("snippets") / f"{snippet_id}.txt",
        body=body,
        required_secrets=tuple(required_secrets),
        calls_service=bool(required_secrets) if calls_service is None else calls_service,
        timeout_s=timeout_s,
        skip_reason=skip_reason,
        discovery_error=discovery_error,
    )


def transient_failure(message: str = "HTTP/1.1 503 Service Unavailable") -> FakeOutcome:
    return FakeOutcome(status="fail", stderr=message, exit_code=1)


def client_failure(message: str = "HTTP/1.1 400 Bad Request") -> FakeOutcome:
    return FakeOutcome(status="fail", stderr=message, exit_code=1)
