from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Literal

from snippet_harness.contracts import RetryConfig, RunResult

FailureKind = Literal["transient", "client", "not_failure"]

_STATUS_CODE_PATTERN = re.compile(
    r"(?:\bHTTP/\d(?:\.\d)?\s+|\bstatus(?:[ _-]?code)?\W{0,3}|\bStatusCode\W{0,3})([1-5]\d\d)\b",
    re.IGNORECASE,
)
_RETRYABLE_STATUS = 429


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """
    Bounded exponential-backoff retry for network-transient failures.

    Only `fail` results whose output points at a transient remote problem
    (HTTP 5xx/429, connection resets, DNS hiccups) are retried. Client errors
    and toolchain errors never are.
    """

    max_retries: int = 3
    initial_backoff_s: float = 1.0
    backoff_multiplier: float = 2.0
    max_backoff_s: float = 30.0
    transient_patterns: tuple[str, ...] = ()
    _compiled: tuple[re.Pattern[str], ...] = field(default=(), init=False, repr=False)

    def __post_init__(self) -> None:
        compiled = tuple(re.compile(pattern, re.IGNORECASE) for pattern in self.transient_patterns)
        object.__setattr__(self, "_compiled", compiled)

    @classmethod
    def from_config(cls, config: RetryConfig) -> RetryPolicy:
        return cls(
            max_retries=config.max_retries,
            initial_backoff_s=config.initial_backoff_s,
            backoff_multiplier=config.backoff_multiplier,
            max_backoff_s=config.max_backoff_s,
            transient_patterns=tuple(config.transient_patterns),
        )

    def classify(self, result: RunResult) -> FailureKind:
        if result.status != "fail":
            return "not_failure"
        text = f"{result.stderr}\n{result.stdout}"
        codes = status_codes(text)
        if any(code == _RETRYABLE_STATUS or 500 <= code <= 599 for code in codes):
            return "transient"
        if any(400 <= code <= 499 for code in codes):
            return "client"
        if any(pattern.search(text) for pattern in self._compiled):
            return "transient"
        return "client"

    def should_retry(self, result: RunResult, retries_so_far: int) -> bool:
        if retries_so_far >= self.max_retries:
            return False
        return self.classify(result) == "transient"

    def backoff_for(self, retry_number: int) -> float:
        """Delay before retry number `retry_number` (1-based)."""
        delay = self.initial_backoff_s * self.backoff_multiplier ** max(retry_number - 1, 0)
        return min(delay, self.max_backoff_s)


def status_codes(text: str) -> Sequence[int]:
    return [int(match.group(1)) for match in _STATUS_CODE_PATTERN.finditer(text)]
