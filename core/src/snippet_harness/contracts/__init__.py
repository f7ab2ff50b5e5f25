from .budget import RateBudget
from .snippet_contracts import (
    Entrypoint,
    Language,
    RunnerAdapter,
    RunnerInfo,
    RunnerNotFoundError,
    RunnerRegistry,
    Snippet,
)
from .run_contracts import (
    RUN_STATUSES,
    BatchCounts,
    BatchStateError,
    ExecutionConfig,
    ExecutionContext,
    HarnessConfig,
    ReportConfig,
    RetryConfig,
    RunBatch,
    RunnerCommandConfig,
    RunResult,
    RunStatus,
    SecretConfig,
    SnippetsConfig,
    SnippetState,
    count_results,
)

__all__ = [
    "Snippet",
    "Language",
    "Entrypoint",
    "RunnerAdapter",
    "RunnerInfo",
    "RunnerRegistry",
    "RunnerNotFoundError",
    "RunResult",
    "RunStatus",
    "RUN_STATUSES",
    "RunBatch",
    "BatchCounts",
    "BatchStateError",
    "SnippetState",
    "count_results",
    "ExecutionContext",
    "HarnessConfig",
    "SnippetsConfig",
    "SecretConfig",
    "ExecutionConfig",
    "RetryConfig",
    "RunnerCommandConfig",
    "ReportConfig",
    "RateBudget",
]
