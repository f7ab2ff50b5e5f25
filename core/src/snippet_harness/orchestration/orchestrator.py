from __future__ import annotations

import logging
import queue
import threading
import time
from collections.abc import Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from typing import Literal

from snippet_harness.contracts import (
    RUN_STATUSES,
    ExecutionConfig,
    ExecutionContext,
    RateBudget,
    RunBatch,
    RunnerAdapter,
    RunnerNotFoundError,
    RunnerRegistry,
    RunResult,
    Snippet,
)
from snippet_harness.orchestration.retry import RetryPolicy

logger = logging.getLogger("snippet_harness.orchestrator")

RUNNABLE_OUTCOMES: frozenset[str] = frozenset(RUN_STATUSES) - {"skipped"}

EventKind = Literal["running", "revision", "resolved"]


@dataclass(frozen=True, slots=True)
class OrchestratorSettings:
    workers: int = 4
    snippet_timeout_s: float = 120.0
    global_timeout_s: float = 1800.0
    cancel_grace_s: float = 10.0

    @classmethod
    def from_config(cls, config: ExecutionConfig) -> OrchestratorSettings:
        return cls(
            workers=config.workers,
            snippet_timeout_s=config.snippet_timeout_s,
            global_timeout_s=config.global_timeout_s,
            cancel_grace_s=config.cancel_grace_s,
        )


@dataclass(frozen=True, slots=True)
class _Event:
    kind: EventKind
    snippet_id: str
    result: RunResult | None = None


class Orchestrator:
    """
    Turn discovered snippets into a completed RunBatch.

    Workers run snippets on a bounded thread pool and report back through an
    event queue; only the thread calling `run()` writes the RunBatch.
    """

    def __init__(
        self,
        *,
        registry: RunnerRegistry,
        budget: RateBudget,
        context: ExecutionContext,
        secrets: Mapping[str, str] | None = None,
        retry_policy: RetryPolicy | None = None,
        settings: OrchestratorSettings | None = None,
    ) -> None:
        self._registry = registry
        self._budget = budget
        self._context = context
        self._secrets = dict(secrets or {})
        self._retry = retry_policy or RetryPolicy()
        self._settings = settings or OrchestratorSettings()

    def start_batch(self, snippets: Sequence[Snippet]) -> RunBatch:
        return RunBatch.start(snippets, max_revisions=self._retry.max_retries + 1)

    def run(self, snippets: Sequence[Snippet]) -> RunBatch:
        batch = self.start_batch(snippets)
        self.drive(batch)
        return batch

    def drive(self, batch: RunBatch) -> None:
        """Run every snippet of a freshly started batch until each one is resolved."""
        cancel = threading.Event()
        global_deadline = time.monotonic() + self._settings.global_timeout_s
        events: queue.Queue[_Event] = queue.Queue()

        runnable: list[tuple[Snippet, RunnerAdapter]] = []
        for snippet_id in sorted(batch.snippets):
            snippet = batch.snippets[snippet_id]
            early, adapter = self._resolve_without_running(snippet)
            if early is not None:
                batch.resolve(early)
                self._log_resolution(early)
            elif adapter is not None:
                runnable.append((snippet, adapter))

        logger.info(
            "Running %d of %d snippets with %d workers",
            len(runnable),
            len(batch.snippets),
            self._settings.workers,
        )
        executor = ThreadPoolExecutor(
            max_workers=self._settings.workers, thread_name_prefix="snippet-worker"
        )
        try:
            for snippet, adapter in runnable:
                batch.mark_queued(snippet.id)
                executor.submit(self._work, snippet, adapter, events, cancel, global_deadline)
            self._collect(batch, events, cancel, global_deadline)
        finally:
            cancel.set()
            executor.shutdown(wait=True, cancel_futures=True)

        # workers may have reported after the grace period ended
        while True:
            try:
                self._apply(batch, events.get_nowait())
            except queue.Empty:
                break

        for snippet_id in batch.unresolved:
            snippet = batch.snippets[snippet_id]
            result = RunResult.timed_out(
                snippet_id, snippet.language, "Cancelled by global deadline before completion"
            )
            batch.resolve(result)
            self._log_resolution(result)

    def _resolve_without_running(
        self, snippet: Snippet
    ) -> tuple[RunResult | None, RunnerAdapter | None]:
        if snippet.discovery_error is not None:
            return (
                RunResult.toolchain_error(
                    snippet.id, snippet.language, f"Discovery failed: {snippet.discovery_error}"
                ),
                None,
            )
        if snippet.skip_reason is not None:
            return RunResult.skipped(snippet.id, snippet.language, snippet.skip_reason), None
        try:
            adapter = self._registry.get(snippet.language)
        except RunnerNotFoundError:
            return (
                RunResult.toolchain_error(
                    snippet.id,
                    snippet.language,
                    f"No runner adapter registered for language '{snippet.language}'",
                ),
                None,
            )
        missing = [name for name in snippet.required_secrets if not self._secrets.get(name)]
        if missing:
            return (
                RunResult.skipped(
                    snippet.id, snippet.language, f"missing secret {', '.join(missing)}"
                ),
                None,
            )
        return None, adapter

    def _collect(
        self,
        batch: RunBatch,
        events: queue.Queue[_Event],
        cancel: threading.Event,
        global_deadline: float,
    ) -> None:
        grace_deadline: float | None = None
        while batch.unresolved:
            now = time.monotonic()
            if grace_deadline is None and now >= global_deadline:
                logger.warning(
                    "Global deadline of %.1fs reached; cancelling %d unresolved snippets",
                    self._settings.global_timeout_s,
                    len(batch.unresolved),
                )
                cancel.set()
                grace_deadline = now + self._settings.cancel_grace_s
            if grace_deadline is not None and now >= grace_deadline:
                logger.error(
                    "Snippets still unresolved after cancellation grace: %s",
                    ", ".join(batch.unresolved),
                )
                return
            wait_until = grace_deadline if grace_deadline is not None else global_deadline
            try:
                event = events.get(timeout=max(wait_until - now, 0.001))
            except queue.Empty:
                continue
            self._apply(batch, event)

    def _apply(self, batch: RunBatch, event: _Event) -> None:
        if event.kind == "running":
            batch.mark_running(event.snippet_id)
            return
        if event.result is None:
            raise ValueError(f"{event.kind} event for {event.snippet_id} carries no result")
        if event.kind == "revision":
            batch.record_revision(event.result)
            logger.info(
                "%s attempt %d failed transiently: %s",
                event.snippet_id,
                event.result.retry_count + 1,
                event.result.message,
            )
            return
        batch.resolve(event.result)
        self._log_resolution(event.result)

    def _work(
        self,
        snippet: Snippet,
        adapter: RunnerAdapter,
        events: queue.Queue[_Event],
        cancel: threading.Event,
        global_deadline: float,
    ) -> None:
        if cancel.is_set():
            result = RunResult.timed_out(
                snippet.id, snippet.language, "Cancelled by global deadline before start"
            )
            events.put(_Event("resolved", snippet.id, result))
            return

        events.put(_Event("running", snippet.id))
        logger.debug("Starting %s with %s", snippet.short_name(), adapter.info.key)
        started = time.monotonic()
        try:
            result = self._execute_with_retry(snippet, adapter, events, cancel, global_deadline)
        except Exception as exc:
            logger.exception("Runner %s crashed on %s", adapter.info.key, snippet.id)
            result = RunResult.toolchain_error(
                snippet.id,
                snippet.language,
                f"Runner crashed: {exc}",
                duration_ms=int((time.monotonic() - started) * 1000),
            )
        events.put(_Event("resolved", snippet.id, result))

    def _execute_with_retry(
        self,
        snippet: Snippet,
        adapter: RunnerAdapter,
        events: queue.Queue[_Event],
        cancel: threading.Event,
        global_deadline: float,
    ) -> RunResult:
        timeout_s = snippet.timeout_s or self._settings.snippet_timeout_s
        secrets = {name: self._secrets[name] for name in snippet.required_secrets}
        context = replace(
            self._context,
            cancel=cancel,
            logger=logging.getLogger(f"snippet_harness.run.{snippet.language}"),
        )
        retries = 0
        while True:
            attempt_deadline = min(time.monotonic() + timeout_s, global_deadline)
            attempt = self._attempt(snippet, adapter, secrets, context, attempt_deadline)
            result = _checked_result(snippet, adapter, attempt).with_retry_count(retries)
            if not self._retry.should_retry(result, retries):
                return result

            delay = self._retry.backoff_for(retries + 1)
            if time.monotonic() + delay >= global_deadline:
                logger.info("%s: no time left before the global deadline to retry", snippet.id)
                return result

            events.put(_Event("revision", snippet.id, result))
            if cancel.wait(delay):
                return RunResult.timed_out(
                    snippet.id,
                    snippet.language,
                    "Cancelled by global deadline during retry backoff",
                    retry_count=retries,
                )
            retries += 1

    def _attempt(
        self,
        snippet: Snippet,
        adapter: RunnerAdapter,
        secrets: Mapping[str, str],
        context: ExecutionContext,
        deadline: float,
    ) -> RunResult:
        if not snippet.calls_service:
            return adapter.execute(snippet, secrets, deadline - time.monotonic(), context=context)

        waited_from = time.monotonic()
        if not self._budget.acquire(deadline=deadline, cancel=context.cancel):
            reason = (
                "Cancelled by global deadline while waiting for the service budget"
                if context.cancelled
                else "Timed out waiting for the service budget"
            )
            return RunResult.timed_out(
                snippet.id,
                snippet.language,
                reason,
                duration_ms=int((time.monotonic() - waited_from) * 1000),
            )
        try:
            return adapter.execute(snippet, secrets, deadline - time.monotonic(), context=context)
        finally:
            self._budget.release()

    @staticmethod
    def _log_resolution(result: RunResult) -> None:
        logger.info(
            "%s -> %s (%dms, retries=%d)%s",
            result.snippet_id,
            result.status,
            result.duration_ms,
            result.retry_count,
            f": {result.message}" if result.message else "",
        )


def _checked_result(snippet: Snippet, adapter: RunnerAdapter, result: object) -> RunResult:
    """A result an adapter returns for a snippet it ran; anything else is a toolchain error."""
    if (
        isinstance(result, RunResult)
        and result.snippet_id == snippet.id
        and result.status in RUNNABLE_OUTCOMES
    ):
        return result
    logger.error(
        "Runner %s returned an invalid result for %s: %r", adapter.info.key, snippet.id, result
    )
    return RunResult.toolchain_error(
        snippet.id,
        snippet.language,
        "Runner returned an invalid result",
        duration_ms=result.duration_ms if isinstance(result, RunResult) else 0,
    )
