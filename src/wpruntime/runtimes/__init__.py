"""Runtime implementations."""

from wpruntime.runtimes.local import LocalRuntime

__all__ = ["LocalRuntime"]
