"""API dependencies for dependency injection."""

from wpruntime.runtimes import LocalRuntime

# Singleton runtime instance
_runtime: LocalRuntime | None = None


async def init_runtime() -> None:
    """Initialize runtime singleton and run the startup dependency check.

    Must be called during app startup.
    """
    global _runtime
    _runtime = LocalRuntime()
    await _runtime.init()


async def close_runtime() -> None:
    """Stop every instance and release resources."""
    global _runtime
    if _runtime:
        await _runtime.close()
        _runtime = None


def get_runtime() -> LocalRuntime:
    """Get runtime singleton.

    Raises:
        RuntimeError: If called before init_runtime().
    """
    if _runtime is None:
        raise RuntimeError("Runtime not initialized. Call init_runtime() first.")
    return _runtime


def reset_runtime() -> None:
    """Reset runtime singleton (for testing)."""
    global _runtime
    _runtime = None
