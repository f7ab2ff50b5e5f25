from __future__ import annotations

from pathlib import Path

from snippet_harness.contracts import RunnerInfo, Snippet
from snippet_harness.runtime.subprocess_runner import CommandStep, SubprocessRunner


class TypeScriptRunner(SubprocessRunner):
    """
    Runs TypeScript snippets through `tsx`.

    Bundles that ship a package.json get their dependencies installed with
    npm first.
    """

    @property
    def info(self) -> RunnerInfo:
        return RunnerInfo(
            key="typescript.tsx",
            name="TypeScript",
            languages=("typescript",),
            version="0.1.0",
            description="Transpile-and-run TypeScript snippets with tsx.",
        )

    def default_command(self) -> tuple[str, ...]:
        return ("tsx",)

    def plan(self, snippet: Snippet, *, workdir: Path, entry: Path) -> list[CommandStep]:
        steps: list[CommandStep] = []
        if snippet.entrypoint == "build_tool" and (workdir / "package.json").is_file():
            steps.append(
                CommandStep(
                    ("npm", "install", "--no-audit", "--no-fund", "--silent"),
                    label="npm install",
                )
            )
        steps.append(CommandStep((*self.command, str(entry.relative_to(workdir)))))
        return steps
