from __future__ import annotations

from pathlib import Path

from snippet_harness.contracts import RunnerInfo, Snippet
from snippet_harness.runtime.subprocess_runner import CommandStep, SubprocessRunner

_THROWAWAY_MODULE = "snippet"


class GoRunner(SubprocessRunner):
    """
    Compiles and runs Go snippets with `go run`.

    Snippets without their own go.mod get a throwaway module whose
    dependencies are resolved with `go mod tidy` before the run.
    """

    @property
    def info(self) -> RunnerInfo:
        return RunnerInfo(
            key="go.toolchain",
            name="Go",
            languages=("go",),
            version="0.1.0",
            description="Build and run Go snippets with the go toolchain.",
        )

    def default_command(self) -> tuple[str, ...]:
        return ("go",)

    def plan(self, snippet: Snippet, *, workdir: Path, entry: Path) -> list[CommandStep]:
        steps: list[CommandStep] = []
        if not (workdir / "go.mod").is_file():
            steps.append(
                CommandStep((*self.command, "mod", "init", _THROWAWAY_MODULE), label="go mod init")
            )
            steps.append(CommandStep((*self.command, "mod", "tidy"), label="go mod tidy"))
        steps.append(CommandStep((*self.command, "run", _package_arg(workdir, entry))))
        return steps


def _package_arg(workdir: Path, entry: Path) -> str:
    relative = entry.parent.relative_to(workdir)
    if relative == Path("."):
        return "."
    return "./" + relative.as_posix()
