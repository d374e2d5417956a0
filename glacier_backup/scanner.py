"""
Module for enumerating the files to back up.
"""
import logging
from pathlib import Path
from typing import List

logger = logging.getLogger(__name__)

class FileScanner:
    """Recursively lists the files under a source folder."""

    def __init__(self, pattern: str = "*"):
        """Initialize the file scanner.

        Args:
            pattern: Glob pattern file names must match
        """
        self.pattern = pattern

    def scan_folder(self, folder: Path) -> List[str]:
        """Scan a folder and its subfolders for files.

        Args:
            folder: Path to the folder to scan

        Returns:
            Sorted absolute file paths. A plain file yields itself.

        Raises:
            FileNotFoundError: If the folder does not exist
        """
        folder = Path(folder)
        if not folder.exists():
            raise FileNotFoundError(f"Source path does not exist: {folder}")

        if folder.is_file():
            return [str(folder.resolve())]

        files = sorted(str(p.resolve()) for p in folder.rglob(self.pattern) if p.is_file())
        logger.info(f"Found {len(files)} files under {folder}")
        return files
