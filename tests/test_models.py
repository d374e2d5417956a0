"""
Tests for the data models.
"""
import threading

import pytest

from glacier_backup.models import MultipartSession, PartRange, UploadRecord, UploadResult, UploadStatus

def make_session(total_parts):
    return MultipartSession(
        vault_name='test-vault',
        upload_id='upload-1',
        part_size=4,
        total_parts=total_parts,
        tree_hash='abc'
    )

def test_remaining_parts_starts_at_total():
    assert make_session(3).remaining_parts == 3

def test_remaining_parts_reaches_zero_exactly_once():
    """Test that concurrent acknowledgements report completion to one caller only."""
    session = make_session(64)
    results = []
    results_lock = threading.Lock()
    start = threading.Barrier(8)

    def acknowledge(count):
        start.wait()
        for _ in range(count):
            done = session.part_done()
            with results_lock:
                results.append(done)

    threads = [threading.Thread(target=acknowledge, args=(8,)) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(results) == 64
    assert results.count(True) == 1
    assert session.remaining_parts == 0

    with pytest.raises(RuntimeError, match="More parts acknowledged"):
        session.part_done()
    assert session.remaining_parts == 0

def test_content_range_is_inclusive():
    part = PartRange(index=0, start=0, end=1024)

    assert part.length == 1024
    assert part.content_range == "bytes 0-1023/*"

def test_upload_record_round_trip_keys():
    record = UploadRecord('/data/a.txt', 'archive-1', 'abc')

    assert record.to_dict() == {'filePath': '/data/a.txt', 'archiveId': 'archive-1', 'checksum': 'abc'}
    assert UploadRecord.from_dict(record.to_dict()) == record

@pytest.mark.parametrize("status,success,is_error", [
    (UploadStatus.UPLOADED, True, False),
    (UploadStatus.ALREADY_EXISTS, False, False),
    (UploadStatus.READ_ERROR, False, True),
    (UploadStatus.PART_ERROR, False, True),
])
def test_upload_result_flags(status, success, is_error):
    result = UploadResult(file_path='/data/a.txt', status=status)

    assert result.success is success
    assert result.is_error is is_error
