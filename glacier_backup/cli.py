"""
Command-line interface for the backup service.
"""
import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .config import (
    DEFAULT_CONCURRENT_UPLOADS,
    DEFAULT_DB,
    DEFAULT_PART_WORKERS,
    MIB,
    BackupSettings,
    load_config,
    load_credentials,
    state_file_path
)
from .coordinator import BackupContext, BackupCoordinator
from .errors import ConfigError, StateStoreError
from .models import BackupSummary

logger = logging.getLogger(__name__)

def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application.

    Args:
        verbose: Whether to enable debug logging
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    # botocore logs every request at DEBUG
    logging.getLogger('botocore').setLevel(logging.WARNING)

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Back up files to an Amazon Glacier vault, resuming where the last run stopped"
    )
    parser.add_argument('source', type=Path,
                        help="File or folder to back up")
    parser.add_argument('vault_name', nargs='?', metavar='vault',
                        help="Destination Glacier vault")
    parser.add_argument('--vault', dest='vault_option', type=str,
                        help="Destination Glacier vault (overrides the positional one)")
    parser.add_argument('-l', '--limit', type=int,
                        help=f"Files uploaded at once (default {DEFAULT_CONCURRENT_UPLOADS})")
    parser.add_argument('--db', type=str,
                        help=f"Name of the upload state file (default {DEFAULT_DB})")
    parser.add_argument('--load', action='store_true',
                        help="Scan the source and add its files to the pending set first")
    parser.add_argument('--part-size', type=int,
                        help="Part size in MiB, a power of two (default 1)")
    parser.add_argument('--part-workers', type=int,
                        help=f"Parts uploaded at once across all files (default {DEFAULT_PART_WORKERS})")
    parser.add_argument('--log-dir', type=Path,
                        help="Directory for JSON run logs")
    parser.add_argument('--check-vault', action='store_true',
                        help="Fail early if the vault does not exist")
    parser.add_argument('-c', '--config', type=Path,
                        help="Path to JSON config file")
    parser.add_argument('-v', '--verbose', action='store_true',
                        help="Enable verbose logging")
    return parser

def create_settings(args: argparse.Namespace) -> BackupSettings:
    """Merge command line arguments over the config file.

    Args:
        args: Command line arguments

    Returns:
        BackupSettings for the run
    """
    config = load_config(args.config)

    def pick(value, key, default):
        if value is not None:
            return value
        return config.get(key, default)

    def pick_int(value, key, default) -> int:
        picked = pick(value, key, default)
        try:
            return int(picked)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Setting {key} must be an integer, got {picked!r}") from e

    log_dir = pick(args.log_dir, 'log_dir', None)
    return BackupSettings(
        vault_name=args.vault_option or args.vault_name or config.get('vault'),
        state_file=state_file_path(pick(args.db, 'db', DEFAULT_DB)),
        concurrency=pick_int(args.limit, 'limit', DEFAULT_CONCURRENT_UPLOADS),
        part_size=pick_int(args.part_size, 'part_size_mb', 1) * MIB,
        part_workers=pick_int(args.part_workers, 'part_workers', DEFAULT_PART_WORKERS),
        log_dir=Path(log_dir) if log_dir else None,
        check_vault=args.check_vault or bool(config.get('check_vault', False))
    )

def print_summary(summary: BackupSummary) -> None:
    print("Job finished")
    print(f"  total files: {summary.total_files}")
    print(f"  total time: {summary.elapsed_seconds:.2f} seconds")
    print(f"  uploads: {summary.uploaded} of {summary.total_files} "
          f"({summary.already_exists} already exist)")
    if summary.errors:
        print(f"  errors: {summary.errors}")
        for result in summary.results:
            if result.is_error:
                print(f"    {result.status.value}: {result.file_path}")

def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)
    load_dotenv()

    try:
        credentials = load_credentials()
        settings = create_settings(args)
        context = BackupContext.create(settings, credentials)
        summary = BackupCoordinator(context).run(args.source, load_first=args.load)
    except (ConfigError, StateStoreError) as e:
        logger.error(f"Error: {e}")
        return 1

    print_summary(summary)
    return 0

if __name__ == '__main__':
    sys.exit(main())
