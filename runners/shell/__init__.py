from .runner import ShellRunner

__all__ = ["ShellRunner"]
