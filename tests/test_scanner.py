"""
Tests for the file scanner.
"""
import pytest

from glacier_backup.scanner import FileScanner

@pytest.fixture
def source_files(tmp_upload_dir):
    test_files = {
        "file1.txt": "Test content 1",
        "subdir/file2.txt": "Test content 2",
        "subdir/deeper/file3.log": "Test content 3",
    }
    for rel_path, content in test_files.items():
        file_path = tmp_upload_dir / rel_path
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(content)
    return tmp_upload_dir

def test_scan_is_recursive_and_sorted(source_files):
    files = FileScanner().scan_folder(source_files)

    assert files == sorted(files)
    assert files == [
        str((source_files / "file1.txt").resolve()),
        str((source_files / "subdir/deeper/file3.log").resolve()),
        str((source_files / "subdir/file2.txt").resolve()),
    ]

def test_scan_with_pattern(source_files):
    files = FileScanner(pattern="*.txt").scan_folder(source_files)

    assert len(files) == 2
    assert all(f.endswith('.txt') for f in files)

def test_scan_single_file(source_files):
    target = source_files / "file1.txt"

    assert FileScanner().scan_folder(target) == [str(target.resolve())]

def test_scan_twice_gives_same_paths(source_files):
    scanner = FileScanner()

    assert scanner.scan_folder(source_files) == scanner.scan_folder(source_files)

def test_scan_missing_folder(tmp_upload_dir):
    with pytest.raises(FileNotFoundError):
        FileScanner().scan_folder(tmp_upload_dir / "missing")
