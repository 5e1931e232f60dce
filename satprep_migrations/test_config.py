#!/usr/bin/env python3
"""
Tests for config.py
"""

import tempfile
from pathlib import Path

import pytest

from satprep_migrations.config import load_config
from satprep_migrations.errors import ConfigError

SAMPLE_YAML = """
database:
  host: db.internal
  name: sat_prep
  user: migrator
migration:
  batch_size: 500
  service_mode: false
files:
  all_exams: data/ALLEXAMSONEPREP.json
  bluebook_dir: data/bluebook
"""


def write_config(directory: Path, content: str = SAMPLE_YAML) -> Path:
    path = directory / 'migrate.yaml'
    path.write_text(content, encoding='utf-8')
    return path


def test_defaults():
    config = load_config(env={})
    assert config.database.host == 'localhost'
    assert config.database.port == 5432
    assert config.migration.batch_size == 1000
    assert config.migration.max_retries == 3
    assert config.files.bluebook_index == config.files.bluebook_dir / 'index.json'
    assert config.files.all_exams.is_absolute()


def test_yaml_values_and_relative_paths():
    with tempfile.TemporaryDirectory() as tmp:
        path = write_config(Path(tmp))
        config = load_config(path, env={})
        base = path.resolve().parent

    assert config.database.host == 'db.internal'
    assert config.migration.batch_size == 500
    assert config.migration.service_mode is False
    assert config.files.all_exams == base / 'data' / 'ALLEXAMSONEPREP.json'
    assert config.files.bluebook_index == base / 'data' / 'bluebook' / 'index.json'


def test_environment_overrides_yaml():
    env = {
        'DB_HOST': 'override.internal',
        'DB_PORT': '6543',
        'BATCH_SIZE': '250',
        'RETRY_DELAY': '0.5',
        'SERVICE_MODE': 'yes',
        'DATABASE_URL': 'postgres://u:p@h/db',
    }
    with tempfile.TemporaryDirectory() as tmp:
        config = load_config(write_config(Path(tmp)), env=env)

    assert config.database.host == 'override.internal'
    assert config.database.port == 6543
    assert config.database.url == 'postgres://u:p@h/db'
    assert config.migration.batch_size == 250
    assert config.migration.retry_delay == 0.5
    assert config.migration.service_mode is True


def test_missing_credentials():
    with pytest.raises(ConfigError) as exc_info:
        load_config(env={'DB_HOST': ''})
    assert 'DB_HOST' in str(exc_info.value)

    # A URL makes the discrete settings optional
    config = load_config(env={'DB_HOST': '', 'DATABASE_URL': 'postgresql://h/db'})
    assert config.database.url == 'postgresql://h/db'

    # Dry runs skip the check
    load_config(env={'DB_USER': ''}, validate=False)


def test_invalid_settings():
    with pytest.raises(ConfigError):
        load_config(env={'BATCH_SIZE': '0'})
    with pytest.raises(ConfigError):
        load_config(env={'MAX_RETRIES': 'many'})
    with tempfile.TemporaryDirectory() as tmp:
        with pytest.raises(ConfigError):
            load_config(write_config(Path(tmp), 'migration:\n  batch_sise: 10\n'), env={})
        with pytest.raises(ConfigError):
            load_config(Path(tmp) / 'missing.yaml', env={})
