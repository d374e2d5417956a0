"""
Module for tracking and persisting upload state across runs.
"""
import json
import logging
import os
import threading
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_log,
    after_log
)

from .errors import StateStoreError
from .models import LoadReport, UploadRecord

logger = logging.getLogger(__name__)


class UploadTracker:
    """Durable record of pending files, archived files and the upload counter.

    The state lives in a single JSON document::

        {"filesUploaded": [...], "filesToUpload": [...], "totalUploaded": 0}

    Every mutation happens under one lock and is followed by a full rewrite of
    the document through a temporary file, so concurrent upload threads can
    share a tracker safely.
    """

    def __init__(self, state_file: Path):
        """Initialize the upload tracker.

        Args:
            state_file: Path to the state persistence JSON file. It is
                created on the first write if it does not exist yet.

        Raises:
            StateStoreError: If an existing state file cannot be read.
        """
        self.state_file = Path(state_file)
        self._uploaded: Dict[str, UploadRecord] = {}
        self._pending: List[str] = []
        self._total_uploaded = 0
        self._lock = threading.Lock()

        self._load_state()

    def _load_state(self) -> None:
        """Load the state document, defaulting to an empty state on first run."""
        if not self.state_file.exists():
            logger.info(f"No state file at {self.state_file}, starting with an empty state")
            return

        try:
            with open(self.state_file, 'r') as f:
                data = json.load(f)

            records = [UploadRecord.from_dict(r) for r in data.get('filesUploaded', [])]
            pending = data.get('filesToUpload', [])
            total = data.get('totalUploaded', 0)
            if not isinstance(pending, list) or not all(isinstance(p, str) for p in pending):
                raise ValueError("filesToUpload must be a list of paths")
            if not isinstance(total, int):
                raise ValueError("totalUploaded must be an integer")
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            raise StateStoreError(f"Cannot read state file {self.state_file}: {e}") from e

        for record in records:
            self._uploaded.setdefault(record.file_path, record)
        self._pending = list(dict.fromkeys(pending))
        self._total_uploaded = total

        logger.info(
            f"Loaded state from {self.state_file}: {len(self._uploaded)} uploaded, "
            f"{len(self._pending)} pending"
        )

    def _save_state(self) -> None:
        """Save the current state. Must be called with the lock held."""
        data = {
            'filesUploaded': [r.to_dict() for r in self._uploaded.values()],
            'filesToUpload': list(self._pending),
            'totalUploaded': self._total_uploaded
        }
        try:
            self._write_state(data)
        except OSError as e:
            raise StateStoreError(f"Cannot write state file {self.state_file}: {e}") from e

        logger.debug(f"Saved state to {self.state_file}")

    @retry(
        retry=retry_if_exception_type(OSError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.1, max=1),
        before=before_log(logger, logging.DEBUG),
        after=after_log(logger, logging.DEBUG),
        reraise=True
    )
    def _write_state(self, data: dict) -> None:
        tmp_file = self.state_file.with_name(self.state_file.name + '.tmp')
        self.state_file.parent.mkdir(parents=True, exist_ok=True)
        with open(tmp_file, 'w') as f:
            json.dump(data, f, indent=2)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_file, self.state_file)

    def load_pending(self, discovered_paths: Iterable[str]) -> LoadReport:
        """Merge freshly discovered paths into the pending set.

        Discovered paths come first, followed by paths still pending from an
        earlier run. Loading the same paths twice leaves the pending set
        unchanged.

        Args:
            discovered_paths: Paths produced by the file scanner

        Returns:
            LoadReport with duplicate and newly added counts
        """
        discovered = [str(p) for p in discovered_paths]

        with self._lock:
            previous = set(self._pending)
            merged = list(dict.fromkeys(discovered + self._pending))
            added = sum(1 for p in merged if p not in previous)

            report = LoadReport(
                discovered=len(discovered),
                added=added,
                duplicates=len(discovered) - added,
                already_uploaded=sum(1 for p in merged if p in self._uploaded),
                pending=len(merged)
            )

            self._pending = merged
            self._save_state()

        logger.info(
            f"Loaded {report.discovered} files: {report.added} new, "
            f"{report.duplicates} duplicates, {report.already_uploaded} already uploaded, "
            f"{report.pending} pending"
        )
        return report

    def is_uploaded(self, file_path: str) -> bool:
        """Check whether a file already has an archive record."""
        with self._lock:
            return file_path in self._uploaded

    def get_record(self, file_path: str) -> Optional[UploadRecord]:
        """Get the archive record of a file, if any."""
        with self._lock:
            return self._uploaded.get(file_path)

    def record_uploaded(self, record: UploadRecord) -> bool:
        """Record a completed archive and remove its path from pending.

        The record, the pending removal and the counter increment are applied
        and persisted together.

        Args:
            record: UploadRecord of the completed archive

        Returns:
            True if the record was added, False if the path already had one
        """
        with self._lock:
            if record.file_path in self._uploaded:
                logger.warning(
                    f"{record.file_path} already has archive "
                    f"{self._uploaded[record.file_path].archive_id}, ignoring {record.archive_id}"
                )
                self._discard_pending(record.file_path)
                self._save_state()
                return False

            self._uploaded[record.file_path] = record
            self._discard_pending(record.file_path)
            self._total_uploaded += 1
            self._save_state()
            return True

    def remove_pending(self, file_path: str) -> None:
        """Remove a path from pending without producing a record."""
        with self._lock:
            if self._discard_pending(file_path):
                self._save_state()

    def _discard_pending(self, file_path: str) -> bool:
        try:
            self._pending.remove(file_path)
            return True
        except ValueError:
            return False

    def snapshot_pending(self) -> List[str]:
        """Get a copy of the pending paths in dispatch order."""
        with self._lock:
            return list(self._pending)

    def uploaded_records(self) -> List[UploadRecord]:
        with self._lock:
            return list(self._uploaded.values())

    @property
    def total_uploaded(self) -> int:
        with self._lock:
            return self._total_uploaded
