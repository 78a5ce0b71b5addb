"""
Hotfolder error types.

All errors inherit from HotfolderError for easy catching.
Per-file and per-job errors are contained by the pipeline; only
InitializationError is allowed to stop the process.
"""

from typing import Optional


class HotfolderError(Exception):
    """Base exception for all hotfolder failures."""
    pass


class InitializationError(HotfolderError):
    """Raised when the watch directory cannot be created or accessed."""

    def __init__(self, path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot initialize watch directory {path}: {reason}")


class ClassificationError(HotfolderError):
    """Raised when a file cannot be stat'ed, read or decoded."""


class PrintStrategyFailure(HotfolderError):
    """Raised by a single print strategy; the chain moves on to the next one."""

    def __init__(self, strategy: str, reason: str):
        self.strategy = strategy
        self.reason = reason
        super().__init__(f"{strategy}: {reason}")


class PrintJobFailure(HotfolderError):
    """Raised through a job's future when every strategy failed."""

    def __init__(self, file_name: str, reason: str, outcome=None):
        self.file_name = file_name
        self.reason = reason
        self.outcome = outcome
        super().__init__(f"Print job failed for {file_name}: {reason}")


class MoveTransientFailure(HotfolderError):
    """Raised when a rename hits a busy, locked or vanished file."""

    def __init__(self, path, cause: Optional[OSError] = None):
        self.path = path
        self.cause = cause
        super().__init__(f"Transient move failure for {path}: {cause}")


class WatchSubscriptionError(HotfolderError):
    """Raised when the directory watch subscription cannot be established."""
