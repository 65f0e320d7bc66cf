# src/whodb/e2e/matrix/settings.py
"""Harness settings, implementing a multi-level priority configuration mechanism"""
import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

# tomllib is part of the standard library from Python 3.11; tomli before that
try:
    import tomllib
except ImportError:
    import tomli as tomllib

from .mockdata import MAX_MOCK_ROWS
from .ssl import CONTAINER_CERT_PREFIX, HOST_CERT_PREFIX
from .types import ALL_CATEGORIES, Category
from .waiting import DEFAULT_INTERVAL, DEFAULT_TIMEOUT

logger = logging.getLogger(__name__)

ENV_CONFIG_PATH = "WHODB_E2E_CONFIG_PATH"
DEFAULT_CONFIG_FILES = ("whodb-e2e.toml", "whodb-e2e.yaml", "whodb-e2e.yml")
DEFAULT_FIXTURES_DIR = "fixtures/databases"


@dataclass
class MatrixSettings:
    """Run-wide settings of the test matrix."""
    fixtures_dirs: List[str] = field(default_factory=lambda: [DEFAULT_FIXTURES_DIR])
    target_database: Optional[str] = None
    target_category: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT
    poll_interval: float = DEFAULT_INTERVAL
    cert_container_prefix: str = CONTAINER_CERT_PREFIX
    cert_host_prefix: str = HOST_CERT_PREFIX
    cert_base_dir: Optional[str] = None
    mock_data_max_rows: int = MAX_MOCK_ROWS
    mock_data_seed: Optional[int] = None
    log_level: str = "WARNING"

    def __post_init__(self):
        if isinstance(self.fixtures_dirs, str):
            self.fixtures_dirs = [self.fixtures_dirs]
        self.fixtures_dirs = [str(directory) for directory in self.fixtures_dirs]
        if self.target_category and self.target_category != ALL_CATEGORIES:
            self.target_category = Category.parse(self.target_category).value
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")
        if self.poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive, got {self.poll_interval}")
        if not 1 <= self.mock_data_max_rows <= MAX_MOCK_ROWS:
            raise ValueError(f"mock_data_max_rows must be between 1 and {MAX_MOCK_ROWS}")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'MatrixSettings':
        """Build settings from a configuration mapping; unknown keys are ignored with a warning."""
        data = data.get('matrix', data) or {}
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning(f"Ignoring unknown settings: {', '.join(unknown)}")
        return cls(**{key: value for key, value in data.items() if key in known})

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @property
    def numeric_log_level(self) -> int:
        level = getattr(logging, str(self.log_level).upper(), None)
        if not isinstance(level, int):
            raise ValueError(f'Invalid log level: {self.log_level}')
        return level


def load_yaml_config(file_path: Path) -> Dict[str, Any]:
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            config = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Failed to load configuration file {file_path}: {e}")
        raise
    logger.info(f"Loaded configuration from {file_path}")
    return config


def load_toml_config(file_path: Path) -> Dict[str, Any]:
    try:
        with open(file_path, 'rb') as f:
            config = tomllib.load(f) or {}
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.error(f"Failed to load configuration file {file_path}: {e}")
        raise
    logger.info(f"Loaded configuration from {file_path}")
    return config


def load_config_from_file(config_path: Path) -> Dict[str, Any]:
    """
    Load configuration from file based on its extension

    Args:
        config_path: Configuration file path

    Returns:
        Configuration dictionary
    """
    suffix = config_path.suffix.lower().strip()
    if suffix in ['.yaml', '.yml']:
        return load_yaml_config(config_path)
    elif suffix == '.toml':
        return load_toml_config(config_path)
    else:
        raise ValueError(f"Unsupported configuration file format: {config_path.suffix}")


def load_config(environ: Optional[Mapping[str, str]] = None, cwd: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load the raw configuration mapping:
    1. File named by WHODB_E2E_CONFIG_PATH
    2. Default config file (whodb-e2e.toml, then whodb-e2e.yaml/.yml in the working directory)
    3. Empty mapping, leaving hard-coded defaults in place
    """
    environ = os.environ if environ is None else environ
    cwd = Path.cwd() if cwd is None else Path(cwd)

    config_file_path_env = environ.get(ENV_CONFIG_PATH)
    if config_file_path_env:
        config_path = Path(config_file_path_env)
        if not config_path.exists():
            logger.warning(f"Configuration file specified in environment variable does not exist: {config_path}")
            raise FileNotFoundError(
                f"Configuration file {config_path} specified in {ENV_CONFIG_PATH} does not exist"
            )
        logger.info(f"Using configuration file from environment variable: {config_path}")
        return load_config_from_file(config_path)

    for name in DEFAULT_CONFIG_FILES:
        default_config_path = cwd / name
        if default_config_path.exists():
            logger.info(f"Using default configuration file: {default_config_path}")
            return load_config_from_file(default_config_path)

    logger.info("Using default hard-coded configuration")
    return {}


def apply_environment(data: Dict[str, Any], environ: Mapping[str, str]) -> Dict[str, Any]:
    """Overlay individual keys from environment variables."""
    data = dict(data.get('matrix', data) or {})
    if environ.get("FIXTURES_DIR"):
        data['fixtures_dirs'] = [environ["FIXTURES_DIR"]]
    if environ.get("EE_FIXTURES_DIR"):
        dirs = data.get('fixtures_dirs') or [DEFAULT_FIXTURES_DIR]
        if isinstance(dirs, str):
            dirs = [dirs]
        data['fixtures_dirs'] = list(dirs) + [environ["EE_FIXTURES_DIR"]]
    if environ.get("DATABASE"):
        data['target_database'] = environ["DATABASE"]
    if environ.get("CATEGORY"):
        data['target_category'] = environ["CATEGORY"]
    if environ.get("WHODB_E2E_TIMEOUT"):
        try:
            data['timeout'] = float(environ["WHODB_E2E_TIMEOUT"])
        except ValueError as e:
            raise ValueError(f"WHODB_E2E_TIMEOUT must be a number of seconds: {e}") from e
    if environ.get("WHODB_E2E_LOG_LEVEL"):
        data['log_level'] = environ["WHODB_E2E_LOG_LEVEL"]
    return data


def load_settings(environ: Optional[Mapping[str, str]] = None, cwd: Optional[Path] = None) -> MatrixSettings:
    """Load settings from file, defaults and environment overrides."""
    environ = os.environ if environ is None else environ
    data = apply_environment(load_config(environ, cwd), environ)
    return MatrixSettings.from_dict(data)
