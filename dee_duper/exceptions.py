"""
Custom exception hierarchy for dee-duper.

Per-file and per-directory errors are recovered inside the scan; index and
mutation errors propagate to whoever asked for the operation.
"""
from pathlib import Path
from typing import Optional, Union


class DeeDuperError(Exception):
    """Base exception for all dee-duper errors."""
    pass


class FileReadError(DeeDuperError):
    """Raised when a file cannot be stat'ed or hashed."""

    def __init__(self, path: Union[str, Path], reason: Optional[str] = None):
        self.path = Path(path)
        self.reason = reason
        message = f"Failed to read {self.path}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class ScanError(DeeDuperError):
    """Raised when a directory cannot be listed."""

    def __init__(self, path: Union[str, Path], reason: Optional[str] = None):
        self.path = Path(path)
        self.reason = reason
        message = f"Failed to scan directory {self.path}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class ScanIndexError(DeeDuperError):
    """Raised when the scan index is unavailable or corrupt."""
    pass


class MutationConflictError(DeeDuperError):
    """Raised when a delete/rename cannot proceed (target exists or source vanished)."""

    def __init__(self, path: Union[str, Path], message: str):
        self.path = Path(path)
        super().__init__(message)
