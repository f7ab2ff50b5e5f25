from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Literal

RunStatus = Literal["pass", "fail", "toolchain_error", "timeout", "skipped"]

RUN_STATUSES: tuple[RunStatus, ...] = ("pass", "fail", "toolchain_error", "timeout", "skipped")


@dataclass(frozen=True, slots=True)
class RunResult:
    """
    Outcome of executing one snippet once.

    Keep this stable: the report is built from these fields only.
    """

    snippet_id: str
    language: str
    status: RunStatus

    stdout: str = ""
    stderr: str = ""
    exit_code: int | None = None
    duration_ms: int = 0
    retry_count: int = 0

    # Human-readable reason: skip reason, toolchain problem, timeout cause
    message: str | None = None

    def with_retry_count(self, retry_count: int) -> RunResult:
        return replace(self, retry_count=retry_count)

    @classmethod
    def skipped(cls, snippet_id: str, language: str, reason: str) -> RunResult:
        return cls(snippet_id=snippet_id, language=language, status="skipped", message=reason)

    @classmethod
    def toolchain_error(
        cls,
        snippet_id: str,
        language: str,
        message: str,
        *,
        duration_ms: int = 0,
    ) -> RunResult:
        return cls(
            snippet_id=snippet_id,
            language=language,
            status="toolchain_error",
            duration_ms=duration_ms,
            message=message,
        )

    @classmethod
    def timed_out(
        cls,
        snippet_id: str,
        language: str,
        message: str,
        *,
        duration_ms: int = 0,
        retry_count: int = 0,
    ) -> RunResult:
        return cls(
            snippet_id=snippet_id,
            language=language,
            status="timeout",
            duration_ms=duration_ms,
            retry_count=retry_count,
            message=message,
        )
