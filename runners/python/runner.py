from __future__ import annotations

from pathlib import Path

from snippet_harness.contracts import RunnerInfo, Snippet
from snippet_harness.runtime.subprocess_runner import CommandStep, SubprocessRunner


class PythonRunner(SubprocessRunner):
    @property
    def info(self) -> RunnerInfo:
        return RunnerInfo(
            key="python.cpython",
            name="Python",
            languages=("python",),
            version="0.1.0",
            description="Interpret Python snippets with the configured interpreter.",
        )

    def default_command(self) -> tuple[str, ...]:
        return ("python3",)

    def plan(self, snippet: Snippet, *, workdir: Path, entry: Path) -> list[CommandStep]:
        return [CommandStep((*self.command, str(entry.relative_to(workdir))))]
