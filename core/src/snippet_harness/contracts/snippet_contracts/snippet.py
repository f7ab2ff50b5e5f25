from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Literal

Entrypoint = Literal["interpret", "compile_run", "build_tool"]


class Language(str, Enum):
    SHELL = "shell"
    CURL = "curl"
    PYTHON = "python"
    TYPESCRIPT = "typescript"
    GO = "go"
    JAVA = "java"

    @classmethod
    def from_tag(cls, tag: str) -> Language | None:
        """Exact-match a directory tag against the supported runtimes."""
        for member in cls:
            if member.value == tag:
                return member
        return None


@dataclass(frozen=True, slots=True)
class Snippet:
    """
    One discovered example.

    Read-only after discovery. `bundle_root` is set for directory variants,
    whose whole directory is materialized next to the entry file.
    `discovery_error` marks a placeholder for an example that could not be
    parsed; `skip_reason` marks one that is reported but never executed.
    """

    id: str
    language: str
    source_path: Path
    body: str
    bundle_root: Path | None = None
    required_secrets: tuple[str, ...] = ()
    entrypoint: Entrypoint = "interpret"
    calls_service: bool = False
    timeout_s: float | None = None
    skip_reason: str | None = None
    discovery_error: str | None = None

    @property
    def runtime(self) -> Language | None:
        return Language.from_tag(self.language)

    def short_name(self) -> str:
        """Human-friendly identifier for logs."""
        return f"{self.id} ({self.entrypoint})"
