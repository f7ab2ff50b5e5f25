from .runner import JavaRunner

__all__ = ["JavaRunner"]
