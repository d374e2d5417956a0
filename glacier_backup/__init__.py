from .archive import ArchiveClient, GlacierArchiveClient
from .coordinator import BackupContext, BackupCoordinator
from .models import BackupSummary, UploadRecord, UploadResult, UploadStatus
from .scanner import FileScanner
from .scheduler import UploadScheduler
from .tracker import UploadTracker
from .uploader import ArchiveUploader

__version__ = "0.1.0"

__all__ = [
    "ArchiveClient",
    "GlacierArchiveClient",
    "BackupContext",
    "BackupCoordinator",
    "BackupSummary",
    "UploadRecord",
    "UploadResult",
    "UploadStatus",
    "FileScanner",
    "UploadScheduler",
    "UploadTracker",
    "ArchiveUploader",
]
