from .runner import GoRunner

__all__ = ["GoRunner"]
