from .execution_context import ExecutionContext
from .harness_config import (
    ExecutionConfig,
    HarnessConfig,
    ReportConfig,
    RetryConfig,
    RunnerCommandConfig,
    SecretConfig,
    SnippetsConfig,
)
from .run_batch import BatchCounts, BatchStateError, RunBatch, SnippetState, count_results
from .run_result import RUN_STATUSES, RunResult, RunStatus

__all__ = [
    "ExecutionContext",
    "HarnessConfig",
    "SnippetsConfig",
    "SecretConfig",
    "ExecutionConfig",
    "RetryConfig",
    "RunnerCommandConfig",
    "ReportConfig",
    "RunBatch",
    "BatchCounts",
    "BatchStateError",
    "count_results",
    "SnippetState",
    "RunResult",
    "RunStatus",
    "RUN_STATUSES",
]
