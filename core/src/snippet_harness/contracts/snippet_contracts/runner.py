from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from snippet_harness.contracts.run_contracts.execution_context import ExecutionContext
from snippet_harness.contracts.run_contracts.run_result import RunResult
from snippet_harness.contracts.snippet_contracts.snippet import Snippet


@dataclass(frozen=True, slots=True)
class RunnerInfo:
    key: str
    name: str
    languages: tuple[str, ...]
    version: str = "0.1.0"
    description: str | None = None


@runtime_checkable
class RunnerAdapter(Protocol):
    """
    Language runner contract.

    Adapters are stateless: every call materializes, runs and cleans up one
    snippet and keeps no reference to it afterwards. Retries belong to the
    orchestrator, never to the adapter.
    """

    @property
    def info(self) -> RunnerInfo: ...

    def execute(
        self,
        snippet: Snippet,
        secrets: Mapping[str, str],
        timeout: float,
        *,
        context: ExecutionContext,
    ) -> RunResult:
        """
        Run `snippet` once and classify the outcome.

        `secrets` holds only the values the snippet declared as required.
        """
        ...
