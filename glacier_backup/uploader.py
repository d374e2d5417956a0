"""
Module for uploading single files to the archive in parts.
"""
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import List

from .archive import ArchiveClient
from .config import DEFAULT_PART_SIZE, DEFAULT_PART_WORKERS, validate_part_size
from .errors import CompletionError, InitiateError, PartError
from .models import MultipartSession, PartRange, UploadRecord, UploadResult, UploadStatus
from .tracker import UploadTracker

logger = logging.getLogger(__name__)

def plan_parts(size: int, part_size: int) -> List[PartRange]:
    """Split a file into contiguous parts.

    Every part is part_size bytes long except the last one, which holds the
    remainder (or a full part when size divides evenly).

    Args:
        size: Total file size in bytes
        part_size: Nominal part size in bytes

    Returns:
        List of PartRange objects in offset order
    """
    if part_size <= 0:
        raise ValueError(f"part_size must be positive, got {part_size}")

    return [
        PartRange(index=index, start=start, end=min(start + part_size, size))
        for index, start in enumerate(range(0, size, part_size))
    ]

class ArchiveUploader:
    """Uploads files to an archive vault with multipart sessions.

    Parts of every file handled by one uploader go through a single bounded
    thread pool, so the number of part requests in flight never exceeds
    part_workers whatever the number of files being uploaded.
    """

    def __init__(self, client: ArchiveClient, tracker: UploadTracker, vault_name: str,
                 part_size: int = DEFAULT_PART_SIZE,
                 part_workers: int = DEFAULT_PART_WORKERS):
        """Initialize the uploader.

        Args:
            client: Archive client used for the multipart protocol
            tracker: Upload state store shared by all upload threads
            vault_name: Destination vault
            part_size: Size of multipart upload parts in bytes
            part_workers: Maximum number of parts uploaded at the same time
        """
        validate_part_size(part_size)
        self.client = client
        self.tracker = tracker
        self.vault_name = vault_name
        self.part_size = part_size
        self._part_pool = ThreadPoolExecutor(
            max_workers=part_workers,
            thread_name_prefix='part'
        )

    def __enter__(self) -> "ArchiveUploader":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self._part_pool.shutdown(wait=True)

    def upload_file(self, file_path: str) -> UploadResult:
        """Upload one file end-to-end.

        Per-file failures are returned as results and leave the file pending.
        Only state store errors propagate.

        Args:
            file_path: Path of the file to archive

        Returns:
            UploadResult describing the outcome
        """
        if self.tracker.is_uploaded(file_path):
            self.tracker.remove_pending(file_path)
            logger.info(f"Skipping {file_path}: already uploaded")
            return UploadResult(file_path=file_path, status=UploadStatus.ALREADY_EXISTS)

        try:
            logger.debug(f"Reading {file_path}")
            data = Path(file_path).read_bytes()
        except OSError as e:
            logger.error(f"Error reading {file_path}: {e}")
            return UploadResult(file_path=file_path, status=UploadStatus.READ_ERROR, error=str(e))

        if not data:
            logger.error(f"Error reading {file_path}: file is empty")
            return UploadResult(
                file_path=file_path,
                status=UploadStatus.READ_ERROR,
                error="File is empty",
                size_bytes=0
            )

        tree_hash = self.client.compute_checksum(data)
        parts = plan_parts(len(data), self.part_size)

        logger.info(f"Starting upload for {file_path} ({len(data)} bytes, {len(parts)} parts)")

        try:
            upload_id = self.client.initiate(self.vault_name, self.part_size)
        except Exception as e:
            if not isinstance(e, InitiateError):
                e = InitiateError(f"Unexpected error initiating upload: {e!r}")
            logger.error(f"Error initiating upload for {file_path}: {e}")
            return UploadResult(
                file_path=file_path,
                status=UploadStatus.INITIATE_ERROR,
                error=str(e),
                size_bytes=len(data)
            )

        session = MultipartSession(
            vault_name=self.vault_name,
            upload_id=upload_id,
            part_size=self.part_size,
            total_parts=len(parts),
            tree_hash=tree_hash
        )

        failures = self._upload_parts(session, data, parts)
        if failures:
            logger.error(
                f"Error uploading {file_path}: {len(failures)} of {session.total_parts} "
                f"parts failed, first: {failures[0]}"
            )
            self.client.abort(self.vault_name, upload_id)
            return UploadResult(
                file_path=file_path,
                status=UploadStatus.PART_ERROR,
                error=str(failures[0]),
                size_bytes=len(data),
                elapsed=session.elapsed
            )

        return self._complete(file_path, session, len(data))

    def _upload_parts(self, session: MultipartSession, data: bytes,
                      parts: List[PartRange]) -> List[PartError]:
        """Send the given parts of a session and wait for all of them.

        After the first failure, parts that have not started yet are
        cancelled, since the session will be aborted anyway.

        Args:
            session: The open multipart session
            data: Full file content
            parts: Parts to send, in offset order

        Returns:
            Failures sorted by part index, empty when every part succeeded
        """
        future_to_part = {
            self._part_pool.submit(
                self.client.upload_part,
                session.vault_name,
                session.upload_id,
                part,
                data[part.start:part.end]
            ): part
            for part in parts
        }

        failures = []
        for future in as_completed(future_to_part):
            part = future_to_part[future]
            if future.cancelled():
                continue
            try:
                future.result()
            except PartError as e:
                failures.append(e)
            except Exception as e:
                failures.append(PartError(f"Part {part.index} failed: {e}", part_index=part.index))
            else:
                last = session.part_done()
                logger.debug(
                    f"Uploaded part {part.index + 1}/{session.total_parts} "
                    f"of upload {session.upload_id}"
                )
                if last:
                    logger.debug(f"All parts of upload {session.upload_id} uploaded")
                continue

            cancelled = sum(1 for f in future_to_part if f.cancel())
            if cancelled:
                logger.debug(
                    f"Cancelled {cancelled} queued parts of upload {session.upload_id}"
                )

        return sorted(failures, key=lambda e: e.part_index)

    def _complete(self, file_path: str, session: MultipartSession, size: int) -> UploadResult:
        if session.remaining_parts != 0:
            raise RuntimeError(
                f"Upload {session.upload_id} has {session.remaining_parts} parts outstanding"
            )

        try:
            receipt = self.client.complete(
                session.vault_name,
                session.upload_id,
                size,
                session.tree_hash
            )
        except Exception as e:
            if not isinstance(e, CompletionError):
                e = CompletionError(f"Unexpected error completing upload: {e!r}")
            logger.error(f"Error completing upload for {file_path}: {e}")
            return UploadResult(
                file_path=file_path,
                status=UploadStatus.COMPLETION_ERROR,
                error=str(e),
                size_bytes=size,
                elapsed=session.elapsed
            )

        record = UploadRecord(
            file_path=file_path,
            archive_id=receipt.archive_id,
            checksum=receipt.checksum
        )
        self.tracker.record_uploaded(record)

        logger.info(f"Completed upload in {session.elapsed:.2f} seconds: {file_path}")
        return UploadResult(
            file_path=file_path,
            status=UploadStatus.UPLOADED,
            archive_id=receipt.archive_id,
            checksum=receipt.checksum,
            size_bytes=size,
            elapsed=session.elapsed
        )
