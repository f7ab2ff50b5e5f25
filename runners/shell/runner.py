from __future__ import annotations

from pathlib import Path

from snippet_harness.contracts import RunnerInfo, Snippet
from snippet_harness.runtime.subprocess_runner import CommandStep, SubprocessRunner


class ShellRunner(SubprocessRunner):
    """Runs shell and curl snippets with bash."""

    @property
    def info(self) -> RunnerInfo:
        return RunnerInfo(
            key="shell.bash",
            name="Shell",
            languages=("shell", "curl"),
            version="0.1.0",
            description="Interpret shell snippets (including raw curl calls) with bash.",
        )

    def default_command(self) -> tuple[str, ...]:
        return ("bash",)

    def plan(self, snippet: Snippet, *, workdir: Path, entry: Path) -> list[CommandStep]:
        return [CommandStep((*self.command, str(entry.relative_to(workdir))))]
