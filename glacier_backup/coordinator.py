"""
Module for coordinating a backup run.
"""
import json
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from .archive import ArchiveClient, GlacierArchiveClient
from .config import BackupSettings, Credentials
from .errors import ArchiveError, ConfigError
from .models import BackupSummary, LoadReport, UploadStatus
from .scanner import FileScanner
from .scheduler import UploadScheduler
from .tracker import UploadTracker
from .uploader import ArchiveUploader

logger = logging.getLogger(__name__)

@dataclass
class BackupContext:
    """Everything a backup run needs, built once and handed to each component."""
    tracker: UploadTracker
    client: ArchiveClient
    settings: BackupSettings

    @classmethod
    def create(cls, settings: BackupSettings, credentials: Credentials) -> "BackupContext":
        """Build the state store and a Glacier client for a run.

        Args:
            settings: Run settings
            credentials: AWS credentials

        Returns:
            BackupContext instance
        """
        return cls(
            tracker=UploadTracker(settings.state_file),
            client=GlacierArchiveClient.from_credentials(
                credentials.access_key_id,
                credentials.secret_access_key,
                credentials.region
            ),
            settings=settings
        )

class BackupCoordinator:
    """Loads pending work, uploads it with bounded concurrency and reports."""

    def __init__(self, context: BackupContext, scanner: Optional[FileScanner] = None):
        self.context = context
        self.scanner = scanner or FileScanner()

    @property
    def tracker(self) -> UploadTracker:
        return self.context.tracker

    def load(self, source: Path) -> LoadReport:
        """Scan a source path and merge its files into the pending set.

        Args:
            source: File or folder to back up

        Returns:
            LoadReport from the state store

        Raises:
            ConfigError: If the source path does not exist
        """
        try:
            files = self.scanner.scan_folder(Path(source))
        except FileNotFoundError as e:
            raise ConfigError(str(e)) from e
        return self.tracker.load_pending(files)

    def _check_vault(self, vault_name: str) -> None:
        try:
            exists = self.context.client.vault_exists(vault_name)
        except ArchiveError as e:
            raise ConfigError(str(e)) from e
        if not exists:
            raise ConfigError(f"Vault {vault_name} does not exist")

    def run(self, source: Optional[Path] = None, load_first: bool = False) -> BackupSummary:
        """Run a backup over every pending file.

        Args:
            source: Path to scan when load_first is set
            load_first: Scan source and merge it into pending before uploading

        Returns:
            BackupSummary of the run

        Raises:
            ConfigError: If no vault is configured, the vault is missing or
                the source cannot be scanned
            StateStoreError: If the state file cannot be written
        """
        settings = self.context.settings

        if load_first:
            if source is None:
                raise ConfigError("A source path is required to load files")
            self.load(source)

        if not settings.vault_name:
            raise ConfigError("No vault provided")

        if settings.check_vault:
            self._check_vault(settings.vault_name)

        files = self.tracker.snapshot_pending()
        logger.info(
            f"Uploading {len(files)} pending files to vault {settings.vault_name} "
            f"with {settings.concurrency} concurrent uploads"
        )

        start = time.monotonic()
        scheduler = UploadScheduler(settings.concurrency)
        with ArchiveUploader(
            self.context.client,
            self.tracker,
            settings.vault_name,
            part_size=settings.part_size,
            part_workers=settings.part_workers
        ) as uploader:
            results = scheduler.run(files, uploader.upload_file)
        elapsed = time.monotonic() - start

        summary = BackupSummary(
            vault_name=settings.vault_name,
            total_files=len(results),
            uploaded=sum(1 for r in results if r.status is UploadStatus.UPLOADED),
            already_exists=sum(1 for r in results if r.status is UploadStatus.ALREADY_EXISTS),
            errors=sum(1 for r in results if r.is_error),
            elapsed_seconds=elapsed,
            results=results
        )
        self.log_summary(summary)
        return summary

    def log_summary(self, summary: BackupSummary) -> None:
        """Log the summary of a run and write it to the run log directory.

        Args:
            summary: BackupSummary object
        """
        logger.info(
            f"Job finished in {summary.elapsed_seconds:.2f} seconds: "
            f"{summary.uploaded}/{summary.total_files} files uploaded, "
            f"{summary.already_exists} already existed, {summary.errors} errors"
        )
        for status, count in summary.errors_by_status().items():
            logger.warning(f"{count} files failed with {status.value}")

        log_dir = self.context.settings.log_dir
        if not log_dir:
            return

        log_data = {
            "timestamp": datetime.now().isoformat(),
            "vault_name": summary.vault_name,
            "total_files": summary.total_files,
            "uploaded": summary.uploaded,
            "already_exists": summary.already_exists,
            "errors": summary.errors,
            "elapsed_seconds": summary.elapsed_seconds,
            "total_uploaded": self.tracker.total_uploaded,
            "results": [
                {
                    "file_path": r.file_path,
                    "status": r.status.value,
                    "archive_id": r.archive_id,
                    "checksum": r.checksum,
                    "error": r.error,
                    "size_bytes": r.size_bytes
                }
                for r in summary.results
            ]
        }

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_path = log_dir / f"backup_{timestamp}.json"
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
            with open(log_path, 'w') as f:
                json.dump(log_data, f, indent=2)
        except OSError as e:
            logger.error(f"Error writing run log {log_path}: {e}")
