from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from snippet_harness.contracts import RunnerAdapter, RunnerInfo, RunnerNotFoundError, RunnerRegistry


@dataclass
class DictRunnerRegistry(RunnerRegistry):
    runners: dict[str, RunnerAdapter]

    @classmethod
    def from_adapters(cls, adapters: Iterable[RunnerAdapter]) -> DictRunnerRegistry:
        runners: dict[str, RunnerAdapter] = {}
        for adapter in adapters:
            for language in adapter.info.languages:
                if language in runners:
                    raise ValueError(f"Language '{language}' registered by two adapters")
                runners[language] = adapter
        return cls(runners=runners)

    def get(self, language: str) -> RunnerAdapter:
        try:
            return self.runners[language]
        except KeyError as e:
            raise RunnerNotFoundError(language) from e

    def list(self) -> Iterable[RunnerInfo]:
        unique = {id(adapter): adapter for adapter in self.runners.values()}
        return [adapter.info for adapter in unique.values()]
