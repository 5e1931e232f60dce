"""
Migration configuration.

Values are layered, lowest precedence first:
1. Built-in defaults
2. Optional YAML file (``--config``)
3. Environment variables (a ``.env`` file is loaded if present)

Example YAML::

    database:
      host: localhost
      port: 5432
      name: sat_prep
      user: postgres
    migration:
      batch_size: 1000
      max_retries: 3
    files:
      all_exams: ../ALLEXAMSONEPREP.json
      bluebook_dir: ../bluebookplus_tests_output
"""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml
from dotenv import load_dotenv

from .errors import ConfigError


@dataclass
class DatabaseConfig:
    """Connection settings. ``url`` wins over the discrete fields."""
    host: str = 'localhost'
    port: int = 5432
    name: str = 'sat_prep'
    user: str = 'postgres'
    password: str = ''
    url: Optional[str] = None
    sslmode: str = 'require'

    def validate(self) -> None:
        if self.url:
            return
        for name in ('host', 'port', 'name', 'user'):
            if not getattr(self, name):
                raise ConfigError(
                    f"Missing required database configuration: DB_{name.upper()}"
                )


@dataclass
class MigrationSettings:
    batch_size: int = 1000
    max_retries: int = 3
    retry_delay: float = 1.0
    log_level: str = 'INFO'
    log_file: Optional[str] = 'migration.log'
    progress_interval: int = 1000
    # Wrap the load in enable_service_mode()/disable_service_mode()
    service_mode: bool = True


@dataclass
class CorpusPaths:
    all_exams: Path = Path('../ALLEXAMSONEPREP.json')
    oneprep: Path = Path('../oneprep_sat_suite_questionbank.json')
    princeton: Path = Path('../princetonreview.json')
    bluebook_dir: Path = Path('../bluebookplus_tests_output')
    bluebook_index: Optional[Path] = None

    def resolve(self, base_dir: Path) -> 'CorpusPaths':
        """Resolve relative paths against ``base_dir``."""
        def _abs(p: Optional[Path]) -> Optional[Path]:
            if p is None:
                return None
            p = Path(p).expanduser()
            return p if p.is_absolute() else (base_dir / p)

        index = _abs(self.bluebook_index)
        bluebook_dir = _abs(self.bluebook_dir)
        return CorpusPaths(
            all_exams=_abs(self.all_exams),
            oneprep=_abs(self.oneprep),
            princeton=_abs(self.princeton),
            bluebook_dir=bluebook_dir,
            bluebook_index=index or bluebook_dir / 'index.json',
        )


@dataclass
class Config:
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    migration: MigrationSettings = field(default_factory=MigrationSettings)
    files: CorpusPaths = field(default_factory=CorpusPaths)


# Environment variable -> (section, attribute)
ENV_VARS = {
    'DATABASE_URL': ('database', 'url'),
    'DB_HOST': ('database', 'host'),
    'DB_PORT': ('database', 'port'),
    'DB_NAME': ('database', 'name'),
    'DB_USER': ('database', 'user'),
    'DB_PASSWORD': ('database', 'password'),
    'DB_SSLMODE': ('database', 'sslmode'),
    'BATCH_SIZE': ('migration', 'batch_size'),
    'MAX_RETRIES': ('migration', 'max_retries'),
    'RETRY_DELAY': ('migration', 'retry_delay'),
    'LOG_LEVEL': ('migration', 'log_level'),
    'LOG_FILE': ('migration', 'log_file'),
    'SERVICE_MODE': ('migration', 'service_mode'),
    'ALLEXAMS_FILE': ('files', 'all_exams'),
    'ONEPREP_FILE': ('files', 'oneprep'),
    'PRINCETON_FILE': ('files', 'princeton'),
    'BLUEBOOK_DIR': ('files', 'bluebook_dir'),
    'BLUEBOOK_INDEX': ('files', 'bluebook_index'),
}

TRUE_VALUES = ('1', 'true', 'yes', 'on')


def _coerce(section, name: str, value):
    """Convert a raw YAML/env value to the type of the dataclass field."""
    default = getattr(section, name)
    field_type = {f.name: f.type for f in fields(section)}[name]

    if value is None or value == '':
        if 'Optional' in str(field_type):
            return None
        # An explicitly blanked string setting stays blank so validate() sees it
        return '' if isinstance(default, str) else default

    try:
        if isinstance(default, bool):
            if isinstance(value, bool):
                return value
            return str(value).strip().lower() in TRUE_VALUES
        if isinstance(default, int):
            return int(value)
        if isinstance(default, float):
            return float(value)
        if 'Path' in str(field_type):
            return Path(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid value for {name}: {value!r}")
    return value


def _apply(section, values: Mapping, label: str) -> None:
    known = {f.name for f in fields(section)}
    for key, value in values.items():
        if key not in known:
            raise ConfigError(f"Unknown setting in {label}: {key}")
        setattr(section, key, _coerce(section, key, value))


def load_config(config_path: Optional[Path] = None,
                env: Optional[Mapping[str, str]] = None,
                validate: bool = True) -> Config:
    """
    Build the configuration.

    Args:
        config_path: Optional YAML file
        env: Environment mapping (defaults to os.environ after loading .env)
        validate: Raise ConfigError when database credentials are missing

    Returns:
        Config with corpus paths resolved to absolute paths
    """
    if env is None:
        load_dotenv()
        env = os.environ

    config = Config()
    base_dir = Path.cwd()

    if config_path:
        config_path = Path(config_path)
        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}")
        with open(config_path) as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {config_path}: {e}")
        if not isinstance(data, dict):
            raise ConfigError(f"Config file must contain a mapping: {config_path}")
        for section_name in ('database', 'migration', 'files'):
            _apply(getattr(config, section_name), data.get(section_name) or {},
                   f"{config_path}:{section_name}")
        base_dir = config_path.resolve().parent

    overrides: Dict[str, Dict[str, str]] = {}
    for var, (section_name, attr) in ENV_VARS.items():
        if var in env:
            overrides.setdefault(section_name, {})[attr] = env[var]
    for section_name, values in overrides.items():
        _apply(getattr(config, section_name), values, 'environment')

    if config.migration.batch_size < 1:
        raise ConfigError("batch_size must be at least 1")
    if config.migration.max_retries < 0:
        raise ConfigError("max_retries cannot be negative")

    config.files = config.files.resolve(base_dir)

    if validate:
        config.database.validate()

    return config
