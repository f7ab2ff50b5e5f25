from __future__ import annotations

import re
from pathlib import Path

from snippet_harness.contracts import RunnerInfo, Snippet
from snippet_harness.runtime.subprocess_runner import CommandStep, SubprocessRunner

_PACKAGE_PATTERN = re.compile(r"^\s*package\s+([\w.]+)\s*;", re.MULTILINE)
_CLASSES_DIR = "classes"


class JavaRunner(SubprocessRunner):
    """
    Runs Java snippets.

    Single files use the JDK source launcher, plain directories are compiled
    with javac, and Maven/Gradle projects run through their build tool.
    """

    @property
    def info(self) -> RunnerInfo:
        return RunnerInfo(
            key="java.jdk",
            name="Java",
            languages=("java",),
            version="0.1.0",
            description="Launch, compile or build Java snippets with the JDK.",
        )

    def default_command(self) -> tuple[str, ...]:
        return ("java",)

    def plan(self, snippet: Snippet, *, workdir: Path, entry: Path) -> list[CommandStep]:
        if snippet.entrypoint == "build_tool":
            if (workdir / "pom.xml").is_file():
                return [CommandStep(("mvn", "-q", "-B", "compile", "exec:java"), label="mvn")]
            if (workdir / "build.gradle").is_file() or (workdir / "build.gradle.kts").is_file():
                return [CommandStep(("gradle", "-q", "run"), label="gradle")]

        if snippet.bundle_root is None:
            return [CommandStep((*self.command, entry.name))]

        sources = sorted(
            path.relative_to(workdir).as_posix() for path in workdir.rglob("*.java")
        )
        return [
            CommandStep(("javac", "-d", _CLASSES_DIR, *sources), label="javac"),
            CommandStep((*self.command, "-cp", _CLASSES_DIR, main_class(snippet.body, entry))),
        ]


def main_class(body: str, entry: Path) -> str:
    match = _PACKAGE_PATTERN.search(body)
    if match:
        return f"{match.group(1)}.{entry.stem}"
    return entry.stem
