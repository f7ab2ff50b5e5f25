from .budget import SemaphoreBudget
from .orchestrator import Orchestrator, OrchestratorSettings
from .registry import DictRunnerRegistry
from .retry import RetryPolicy

__all__ = [
    "DictRunnerRegistry",
    "Orchestrator",
    "OrchestratorSettings",
    "RetryPolicy",
    "SemaphoreBudget",
]
