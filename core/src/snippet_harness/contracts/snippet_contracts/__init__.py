from .registry import RunnerNotFoundError, RunnerRegistry
from .runner import RunnerAdapter, RunnerInfo
from .snippet import Entrypoint, Language, Snippet

__all__ = [
    "Entrypoint",
    "Language",
    "Snippet",
    "RunnerAdapter",
    "RunnerInfo",
    "RunnerRegistry",
    "RunnerNotFoundError",
]
