"""
Test fixtures for the backup service.
"""
import threading
import time
from typing import Dict, List

import boto3
import pytest
from moto import mock_aws as moto_mock_aws

from glacier_backup.archive import ArchiveClient
from glacier_backup.config import MIB, BackupSettings
from glacier_backup.coordinator import BackupContext
from glacier_backup.errors import CompletionError, InitiateError, PartError
from glacier_backup.models import ArchiveReceipt, PartRange
from glacier_backup.tracker import UploadTracker


class FakeArchiveClient(ArchiveClient):
    """In-memory archive service that reassembles parts and checks tree hashes."""

    def __init__(self, latency: float = 0.0, failing_parts=(), corrupt_parts=(),
                 fail_initiate: bool = False, fail_complete: bool = False,
                 vaults=("test-vault",)):
        self.latency = latency
        self.failing_parts = set(failing_parts)
        self.corrupt_parts = set(corrupt_parts)
        self.fail_initiate = fail_initiate
        self.fail_complete = fail_complete
        self.vaults = set(vaults)

        self.calls: List[str] = []
        self.sessions: Dict[str, Dict[int, bytes]] = {}
        self.ranges: Dict[str, List[str]] = {}
        self.archives: Dict[str, bytes] = {}
        self.aborted: List[str] = []

        self.open_sessions = 0
        self.peak_sessions = 0
        self.parts_in_flight = 0
        self.peak_parts_in_flight = 0
        self._counter = 0
        self._lock = threading.Lock()

    def calls_to(self, name: str) -> int:
        with self._lock:
            return self.calls.count(name)

    def initiate(self, vault_name: str, part_size: int) -> str:
        with self._lock:
            self.calls.append('initiate')
        time.sleep(self.latency)
        if self.fail_initiate or vault_name not in self.vaults:
            raise InitiateError(f"Cannot initiate upload to vault {vault_name}")

        with self._lock:
            self._counter += 1
            upload_id = f"upload-{self._counter}"
            self.sessions[upload_id] = {}
            self.ranges[upload_id] = []
            self.open_sessions += 1
            self.peak_sessions = max(self.peak_sessions, self.open_sessions)
        return upload_id

    def upload_part(self, vault_name: str, upload_id: str,
                    part: PartRange, data: bytes) -> None:
        with self._lock:
            self.calls.append('upload_part')
            self.parts_in_flight += 1
            self.peak_parts_in_flight = max(self.peak_parts_in_flight, self.parts_in_flight)
        try:
            time.sleep(self.latency)
            if part.index in self.failing_parts:
                raise PartError(f"Part {part.index} rejected", part_index=part.index)
            if part.index in self.corrupt_parts:
                data = bytes([data[0] ^ 0xFF]) + data[1:]
            with self._lock:
                self.sessions[upload_id][part.start] = data
                self.ranges[upload_id].append(part.content_range)
        finally:
            with self._lock:
                self.parts_in_flight -= 1

    def complete(self, vault_name: str, upload_id: str,
                 archive_size: int, checksum: str) -> ArchiveReceipt:
        with self._lock:
            self.calls.append('complete')
            parts = self.sessions.pop(upload_id)
            self.open_sessions -= 1
        time.sleep(self.latency)
        if self.fail_complete:
            raise CompletionError(f"Cannot complete upload {upload_id}")

        body = b''.join(data for _, data in sorted(parts.items()))
        if len(body) != archive_size:
            raise CompletionError(f"Size mismatch for upload {upload_id}")
        server_checksum = self.compute_checksum(body)
        if server_checksum != checksum:
            raise CompletionError(f"Checksum mismatch for upload {upload_id}")

        archive_id = f"archive-{upload_id}"
        with self._lock:
            self.archives[archive_id] = body
        return ArchiveReceipt(archive_id=archive_id, checksum=server_checksum)

    def abort(self, vault_name: str, upload_id: str) -> None:
        with self._lock:
            self.calls.append('abort')
            self.aborted.append(upload_id)
            self.sessions.pop(upload_id, None)
            self.open_sessions -= 1

    def vault_exists(self, vault_name: str) -> bool:
        return vault_name in self.vaults


@pytest.fixture
def fake_client_factory():
    """Return the fake archive client class for tests needing custom behaviour."""
    return FakeArchiveClient

@pytest.fixture
def fake_client():
    return FakeArchiveClient()

@pytest.fixture
def tmp_upload_dir(tmp_path):
    """Create a temporary directory for test files."""
    upload_dir = tmp_path / "uploads"
    upload_dir.mkdir()
    return upload_dir

@pytest.fixture
def tmp_log_dir(tmp_path):
    """Create a temporary directory for run logs."""
    log_dir = tmp_path / "logs"
    log_dir.mkdir()
    return log_dir

@pytest.fixture
def tmp_state_file(tmp_path):
    """Path of a temporary state file."""
    return tmp_path / "db.json"

@pytest.fixture
def upload_tracker(tmp_state_file):
    """Create a test upload tracker."""
    return UploadTracker(tmp_state_file)

@pytest.fixture
def make_file(tmp_upload_dir):
    """Create a file of a given size whose content depends on its name."""
    def _make_file(name: str, size: int) -> str:
        path = tmp_upload_dir / name
        path.parent.mkdir(parents=True, exist_ok=True)
        block = bytes((i + len(name)) % 251 for i in range(251))
        path.write_bytes((block * (size // 251 + 1))[:size])
        return str(path)
    return _make_file

@pytest.fixture
def make_context(upload_tracker):
    """Build a BackupContext around a fake client."""
    def _make_context(client, **settings) -> BackupContext:
        settings.setdefault('vault_name', 'test-vault')
        settings.setdefault('state_file', upload_tracker.state_file)
        settings.setdefault('part_size', MIB)
        return BackupContext(
            tracker=upload_tracker,
            client=client,
            settings=BackupSettings(**settings)
        )
    return _make_context

@pytest.fixture
def aws_credentials(monkeypatch):
    """Fake AWS credentials for moto."""
    monkeypatch.setenv('AWS_ACCESS_KEY_ID', 'testing')
    monkeypatch.setenv('AWS_SECRET_ACCESS_KEY', 'testing')
    monkeypatch.setenv('AWS_REGION', 'us-east-1')
    monkeypatch.setenv('AWS_DEFAULT_REGION', 'us-east-1')

@pytest.fixture
def mock_glacier(aws_credentials):
    """Mock Glacier client using moto, with an existing test vault."""
    with moto_mock_aws():
        glacier = boto3.client('glacier', region_name='us-east-1')
        glacier.create_vault(vaultName='test-vault')
        yield glacier
