"""Runtime helpers for snippet execution."""

from snippet_harness.runtime.process import ProcessOutcome, ToolchainUnavailableError, run_process
from snippet_harness.runtime.workspace import (
    build_snippet_workdir,
    remove_workdir,
    resolve_workspace_root,
)

__all__ = [
    "ProcessOutcome",
    "ToolchainUnavailableError",
    "run_process",
    "build_snippet_workdir",
    "remove_workdir",
    "resolve_workspace_root",
]
