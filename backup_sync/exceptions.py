"""
Custom exception hierarchy for backup sync.

Fatal errors (ScanError, RemoteError) stop a reconciliation before anything
is deleted. Disposal errors are per-file and collected by the review session.
"""
from pathlib import Path
from typing import Optional


class BackupSyncError(Exception):
    """Base exception for all backup sync errors."""
    pass


class ConfigError(BackupSyncError):
    """Raised when the command line or environment configuration is unusable."""
    pass


class ScanError(BackupSyncError):
    """Raised when a scan root is missing or unreadable."""
    pass


class RemoteError(BackupSyncError):
    """Raised when the remote library listing is unavailable or incomplete."""
    pass


class InvalidActionError(BackupSyncError):
    """Raised when a decision is requested for an item that is already final."""
    pass


class DisposalError(BackupSyncError):
    """Raised when trashing a file fails."""

    def __init__(self, message: str, source: Path, destination: Optional[Path] = None):
        super().__init__(message)
        self.source = source
        self.destination = destination


class CopyFailedError(DisposalError):
    """The copy into the trash failed; the original was not touched."""
    pass


class DeleteFailedError(DisposalError):
    """The copy succeeded but the original could not be deleted."""
    pass
