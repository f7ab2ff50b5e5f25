from __future__ import annotations

import os
import shutil
import time
from abc import abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from snippet_harness.contracts import (
    ExecutionContext,
    RunnerAdapter,
    RunnerInfo,
    RunResult,
    Snippet,
)
from snippet_harness.runtime.process import ToolchainUnavailableError, run_process
from snippet_harness.runtime.workspace import build_snippet_workdir, remove_workdir


@dataclass(frozen=True, slots=True)
class CommandStep:
    argv: tuple[str, ...]
    label: str = "run"


class SubprocessRunner(RunnerAdapter):
    """
    Base adapter for runtimes driven through external commands.

    Subclasses only describe how to run an already materialized snippet by
    returning command steps from `plan()`; materialization, environment
    scoping, timeouts and classification live here.
    """

    def __init__(self, *, command: Sequence[str] | None = None) -> None:
        self._command = tuple(command) if command else self.default_command()

    @property
    @abstractmethod
    def info(self) -> RunnerInfo: ...

    @abstractmethod
    def default_command(self) -> tuple[str, ...]: ...

    @abstractmethod
    def plan(self, snippet: Snippet, *, workdir: Path, entry: Path) -> list[CommandStep]: ...

    @property
    def command(self) -> tuple[str, ...]:
        return self._command

    def execute(
        self,
        snippet: Snippet,
        secrets: Mapping[str, str],
        timeout: float,
        *,
        context: ExecutionContext,
    ) -> RunResult:
        started = time.monotonic()
        deadline = started + timeout
        scoped = {name: secrets[name] for name in snippet.required_secrets if name in secrets}
        env = build_environment(context.env_passthrough, scoped)
        workdir = build_snippet_workdir(snippet.id, workspace_root=context.workspace_root)
        stdout_parts: list[str] = []
        stderr_parts: list[str] = []

        def elapsed_ms() -> int:
            return int((time.monotonic() - started) * 1000)

        try:
            try:
                entry = self.materialize(
                    snippet,
                    workdir=workdir,
                    secrets=scoped,
                    placeholders=context.secret_placeholders,
                )
            except OSError as exc:
                return RunResult.toolchain_error(
                    snippet.id,
                    snippet.language,
                    f"Could not materialize snippet: {exc}",
                    duration_ms=elapsed_ms(),
                )

            steps = self.plan(snippet, workdir=workdir, entry=entry)
            missing = missing_tools(steps, env)
            if missing:
                return RunResult.toolchain_error(
                    snippet.id,
                    snippet.language,
                    f"Toolchain not found: {', '.join(missing)}",
                    duration_ms=elapsed_ms(),
                )

            exit_code: int | None = None
            for step in steps:
                context.logger.debug("%s: %s", snippet.id, " ".join(step.argv))
                outcome = run_process(
                    step.argv,
                    cwd=workdir,
                    env=env,
                    timeout=deadline - time.monotonic(),
                    cancel=context.cancel,
                )
                stdout_parts.append(outcome.stdout)
                stderr_parts.append(outcome.stderr)
                if outcome.cancelled:
                    return RunResult.timed_out(
                        snippet.id,
                        snippet.language,
                        f"Cancelled by global deadline during {step.label}",
                        duration_ms=elapsed_ms(),
                    )
                if outcome.timed_out:
                    return RunResult.timed_out(
                        snippet.id,
                        snippet.language,
                        f"Exceeded {timeout:.1f}s timeout during {step.label}",
                        duration_ms=elapsed_ms(),
                    )
                exit_code = outcome.exit_code
                if exit_code != 0:
                    return RunResult(
                        snippet_id=snippet.id,
                        language=snippet.language,
                        status="fail",
                        stdout="".join(stdout_parts),
                        stderr="".join(stderr_parts),
                        exit_code=exit_code,
                        duration_ms=elapsed_ms(),
                        message=f"{step.label} exited with status {exit_code}",
                    )

            return RunResult(
                snippet_id=snippet.id,
                language=snippet.language,
                status="pass",
                stdout="".join(stdout_parts),
                stderr="".join(stderr_parts),
                exit_code=exit_code,
                duration_ms=elapsed_ms(),
            )
        except ToolchainUnavailableError as exc:
            return RunResult.toolchain_error(
                snippet.id, snippet.language, str(exc), duration_ms=elapsed_ms()
            )
        finally:
            if not context.keep_workdirs:
                remove_workdir(workdir)

    def materialize(
        self,
        snippet: Snippet,
        *,
        workdir: Path,
        secrets: Mapping[str, str],
        placeholders: Mapping[str, Sequence[str]],
    ) -> Path:
        """Write the snippet into `workdir` and return the entry file path."""
        if snippet.bundle_root is not None:
            shutil.copytree(snippet.bundle_root, workdir, dirs_exist_ok=True)
            entry = workdir / snippet.source_path.relative_to(snippet.bundle_root)
        else:
            entry = workdir / snippet.source_path.name
        entry.parent.mkdir(parents=True, exist_ok=True)
        entry.write_text(
            substitute_placeholders(snippet.body, secrets=secrets, placeholders=placeholders),
            encoding="utf-8",
        )
        return entry


def build_environment(passthrough: Sequence[str], secrets: Mapping[str, str]) -> dict[str, str]:
    env = {name: os.environ[name] for name in passthrough if name in os.environ}
    env.update(secrets)
    return env


def substitute_placeholders(
    body: str,
    *,
    secrets: Mapping[str, str],
    placeholders: Mapping[str, Sequence[str]],
) -> str:
    for name, value in secrets.items():
        for token in placeholders.get(name, ()):
            body = body.replace(token, value)
    return body


def missing_tools(steps: Sequence[CommandStep], env: Mapping[str, str]) -> list[str]:
    search_path = env.get("PATH", os.defpath)
    missing: list[str] = []
    for step in steps:
        tool = step.argv[0]
        if tool not in missing and shutil.which(tool, path=search_path) is None:
            missing.append(tool)
    return missing
