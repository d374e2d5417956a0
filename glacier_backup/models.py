"""
Module containing data models for the backup service.
"""
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Dict

@dataclass(frozen=True)
class UploadRecord:
    """Proof of a completed, durable archive for one file."""
    file_path: str
    archive_id: str
    checksum: str

    def to_dict(self) -> Dict[str, str]:
        return {
            'filePath': self.file_path,
            'archiveId': self.archive_id,
            'checksum': self.checksum
        }

    @classmethod
    def from_dict(cls, data: Dict[str, str]) -> "UploadRecord":
        return cls(
            file_path=data['filePath'],
            archive_id=data['archiveId'],
            checksum=data['checksum']
        )

@dataclass(frozen=True)
class PartRange:
    """A half-open byte range [start, end) of a file."""
    index: int
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start

    @property
    def content_range(self) -> str:
        """Inclusive range in the wire format expected by the archive service."""
        return f"bytes {self.start}-{self.end - 1}/*"

@dataclass(frozen=True)
class ArchiveReceipt:
    """Response of a successful multipart completion."""
    archive_id: str
    checksum: str

@dataclass
class MultipartSession:
    """State of one in-flight multipart upload. Never persisted."""
    vault_name: str
    upload_id: str
    part_size: int
    total_parts: int
    tree_hash: str
    remaining_parts: int = -1
    start_time: float = field(default_factory=time.monotonic)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def __post_init__(self):
        if self.remaining_parts < 0:
            self.remaining_parts = self.total_parts

    def part_done(self) -> bool:
        """Count one successful part.

        Returns:
            True for exactly one caller: the one whose part brought the
            remaining count to zero.
        """
        with self._lock:
            if self.remaining_parts <= 0:
                raise RuntimeError(
                    f"More parts acknowledged than planned for upload {self.upload_id}"
                )
            self.remaining_parts -= 1
            return self.remaining_parts == 0

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.start_time

class UploadStatus(str, Enum):
    """Outcome of one file upload attempt."""
    UPLOADED = "uploaded"
    ALREADY_EXISTS = "already_exists"
    READ_ERROR = "read_error"
    INITIATE_ERROR = "initiate_error"
    PART_ERROR = "part_error"
    COMPLETION_ERROR = "completion_error"

@dataclass
class UploadResult:
    """Represents the result of a single file upload attempt."""
    file_path: str
    status: UploadStatus
    archive_id: Optional[str] = None
    checksum: Optional[str] = None
    error: Optional[str] = None
    size_bytes: Optional[int] = None
    elapsed: Optional[float] = None

    @property
    def success(self) -> bool:
        return self.status is UploadStatus.UPLOADED

    @property
    def is_error(self) -> bool:
        return self.status not in (UploadStatus.UPLOADED, UploadStatus.ALREADY_EXISTS)

@dataclass
class LoadReport:
    """Counts produced when discovered files are merged into the pending set."""
    discovered: int
    added: int
    duplicates: int
    already_uploaded: int
    pending: int

@dataclass
class BackupSummary:
    """Represents a summary of one backup run."""
    vault_name: str
    total_files: int
    uploaded: int
    already_exists: int
    errors: int
    elapsed_seconds: float
    results: List[UploadResult]

    def errors_by_status(self) -> Dict[UploadStatus, int]:
        counts: Dict[UploadStatus, int] = {}
        for result in self.results:
            if result.is_error:
                counts[result.status] = counts.get(result.status, 0) + 1
        return counts
