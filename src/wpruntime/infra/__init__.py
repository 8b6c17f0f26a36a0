"""Infrastructure clients (subprocesses, downloads)."""

from wpruntime.infra.download import download_file
from wpruntime.infra.process import CommandResult, ManagedProcess, ProcessLauncher

__all__ = [
    "CommandResult",
    "ManagedProcess",
    "ProcessLauncher",
    "download_file",
]
