from .runner import TypeScriptRunner

__all__ = ["TypeScriptRunner"]
