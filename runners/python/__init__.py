from .runner import PythonRunner

__all__ = ["PythonRunner"]
