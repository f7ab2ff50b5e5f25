from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from snippet_harness.contracts.snippet_contracts.runner import RunnerAdapter, RunnerInfo


class RunnerNotFoundError(KeyError):
    pass


@runtime_checkable
class RunnerRegistry(Protocol):
    def get(self, language: str) -> RunnerAdapter:
        """Return the adapter for a language tag or raise RunnerNotFoundError."""
        ...

    def list(self) -> Iterable[RunnerInfo]:
        """List available adapters (for debugging)."""
        ...
