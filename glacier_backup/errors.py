"""
Exceptions raised by the backup service.

Configuration and state store errors are fatal to a run. Archive errors are
raised by the archive client and turned into per-file results by the uploader.
"""

class BackupError(Exception):
    """Base class for all backup errors."""

class ConfigError(BackupError):
    """Missing credentials, missing vault or an unusable configuration."""

class StateStoreError(BackupError):
    """The upload state file could not be read or written."""

class ArchiveError(BackupError):
    """A call to the remote archive service failed."""

class InitiateError(ArchiveError):
    """The multipart session could not be opened."""

class PartError(ArchiveError):
    """A part of a multipart upload was rejected."""

    def __init__(self, message: str, part_index: int = -1):
        super().__init__(message)
        self.part_index = part_index

class CompletionError(ArchiveError):
    """The multipart session could not be completed or failed verification."""
