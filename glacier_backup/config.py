"""
Configuration and credential loading for the backup service.
"""
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from .errors import ConfigError

logger = logging.getLogger(__name__)

MIB = 1024 * 1024

DEFAULT_CONCURRENT_UPLOADS = 5
DEFAULT_DB = 'db'
DEFAULT_PART_SIZE = MIB
DEFAULT_PART_WORKERS = 4

# Glacier accepts parts of 1 MiB times a power of two, up to 4 GiB
MAX_PART_SIZE = 4096 * MIB

REQUIRED_ENV_VARS = ('AWS_ACCESS_KEY_ID', 'AWS_SECRET_ACCESS_KEY', 'AWS_REGION')

@dataclass
class Credentials:
    access_key_id: str
    secret_access_key: str
    region: str

@dataclass
class BackupSettings:
    """Settings of one backup run."""
    vault_name: Optional[str] = None
    state_file: Path = Path(f"{DEFAULT_DB}.json")
    concurrency: int = DEFAULT_CONCURRENT_UPLOADS
    part_size: int = DEFAULT_PART_SIZE
    part_workers: int = DEFAULT_PART_WORKERS
    log_dir: Optional[Path] = None
    check_vault: bool = False

    def __post_init__(self):
        if self.concurrency < 1:
            raise ConfigError(f"Concurrency limit must be at least 1, got {self.concurrency}")
        if self.part_workers < 1:
            raise ConfigError(f"Part workers must be at least 1, got {self.part_workers}")
        validate_part_size(self.part_size)

def validate_part_size(part_size: int) -> None:
    """Check that a part size is 1 MiB times a power of two.

    Raises:
        ConfigError: If the archive service would reject the part size
    """
    if part_size < MIB or part_size > MAX_PART_SIZE or part_size % MIB:
        raise ConfigError(f"Part size must be between 1 MiB and 4 GiB, got {part_size}")
    multiple = part_size // MIB
    if multiple & (multiple - 1):
        raise ConfigError(f"Part size must be a power of two in MiB, got {multiple} MiB")

def state_file_path(db_name: str) -> Path:
    """Map a state store name to its JSON file, e.g. ``db`` to ``db.json``."""
    path = Path(db_name)
    return path if path.suffix == '.json' else path.with_name(path.name + '.json')

def load_credentials(environ: Optional[Mapping[str, str]] = None) -> Credentials:
    """Read AWS credentials from the environment.

    Args:
        environ: Mapping to read from, defaults to os.environ

    Returns:
        Credentials instance

    Raises:
        ConfigError: If any required variable is missing or empty
    """
    environ = os.environ if environ is None else environ
    missing = [name for name in REQUIRED_ENV_VARS if not environ.get(name)]
    if missing:
        raise ConfigError(f"Missing required AWS environment variables: {', '.join(missing)}")

    return Credentials(
        access_key_id=environ['AWS_ACCESS_KEY_ID'],
        secret_access_key=environ['AWS_SECRET_ACCESS_KEY'],
        region=environ['AWS_REGION']
    )

def load_config(config_file: Optional[Path] = None) -> dict:
    """Load configuration from a JSON file.

    Args:
        config_file: Path to config file

    Returns:
        Dictionary of configuration values

    Raises:
        ConfigError: If the file cannot be read or is not a JSON object
    """
    if not config_file:
        return {}

    try:
        with open(config_file) as f:
            config = json.load(f)
    except (OSError, ValueError) as e:
        raise ConfigError(f"Error loading config file {config_file}: {e}") from e

    if not isinstance(config, dict):
        raise ConfigError(f"Config file {config_file} must contain a JSON object")

    logger.debug(f"Loaded config from {config_file}: {sorted(config)}")
    return config
