#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Configuration for the migration CLI.

Settings come from an optional JSON or YAML config file; the database URL
itself is read from an environment variable (DATABASE_URL by default) so
credentials stay out of the repository.
"""
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

import yaml

from sqlmigrate.database import normalize_database_url
from sqlmigrate.errors import ContentError, EnvVarError, FileError, UrlError

DEFAULT_URL_ENV = 'DATABASE_URL'
DEFAULT_SCHEMA_FILE = 'schema.sql'
LOG_FORMAT = '[%(asctime).19s] [%(name)s] [%(levelname)s] %(message)s'


def configure_logger(logger, log_file, log_format=LOG_FORMAT, log_level=logging.INFO):
    """Copy a logger's records to a log file

    Used for the `log_file` setting: records still reach stderr through
    the root logger, and the file receives the same lines.

    Args:
        logger: Logger instance or logger name string
        log_file: Path of the log file (appended to, UTF-8)
        log_format: Format string for log messages
        log_level: Minimum level written to the file

    Returns:
        The attached handler; close and remove it when the run ends
    """
    if isinstance(logger, str):
        logger = logging.getLogger(logger)

    handler = logging.FileHandler(log_file, mode='a', encoding='utf-8', errors='replace')
    handler.setFormatter(logging.Formatter(log_format))
    handler.setLevel(log_level)
    logger.addHandler(handler)

    return handler


def parse_log_level(name: str) -> int:
    """Parse log level from string ('debug', 'INFO', ...) to logging constant"""
    level = logging.getLevelName(str(name).upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {name}")
    return level


@dataclass
class MigrateConfig:
    """
    Migration CLI configuration.

    Attributes:
        root: Project root scanned for `migrations` directories
        schema_file: Schema snapshot path (relative paths are under root)
        database_url_env: Environment variable holding the database URL
        database_url: Fallback URL used when the variable is unset
        log_level: Logging level name
        log_file: Optional log file (in addition to stderr)
    """
    root: Path = Path('.')
    schema_file: Path = Path(DEFAULT_SCHEMA_FILE)
    database_url_env: str = DEFAULT_URL_ENV
    database_url: Optional[str] = None
    log_level: str = 'info'
    log_file: Optional[str] = None

    @property
    def schema_path(self) -> Path:
        """Absolute-or-root-relative location of the schema snapshot."""
        if self.schema_file.is_absolute():
            return self.schema_file
        return self.root / self.schema_file


def load_config(config_file: Optional[Path] = None) -> MigrateConfig:
    """Load configuration from a JSON or YAML file

    Args:
        config_file: Path to config file; None returns defaults

    Returns:
        MigrateConfig with file values applied over the defaults

    Raises:
        FileError: If the file can't be read
        ContentError: If the file isn't valid JSON/YAML or isn't a mapping
    """
    if config_file is None:
        return MigrateConfig()

    config_file = Path(config_file)

    try:
        with open(config_file, 'r', encoding='utf-8') as fp:
            if config_file.suffix in ('.yaml', '.yml'):
                conf = yaml.safe_load(fp)
            else:
                conf = json.load(fp)
    except OSError as e:
        raise FileError(str(config_file), e.strerror or str(e)) from e
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ContentError(str(config_file), str(e)) from e

    if conf is None:
        conf = {}
    if not isinstance(conf, dict):
        raise ContentError(str(config_file), 'config must be a mapping')

    # Relative paths in the file are relative to the file itself
    base = config_file.parent
    root = base / conf.get('root', '.')

    return MigrateConfig(
        root=root,
        schema_file=Path(conf.get('schema_file', DEFAULT_SCHEMA_FILE)),
        database_url_env=conf.get('database_url_env', DEFAULT_URL_ENV),
        database_url=conf.get('database_url'),
        log_level=conf.get('log_level', 'info'),
        log_file=conf.get('log_file'),
    )


def resolve_database_url(
    config: MigrateConfig,
    environ: Optional[Mapping[str, str]] = None
) -> str:
    """
    Read the database URL for this run.

    The environment variable named by config.database_url_env wins over
    config.database_url.

    Returns:
        Async SQLAlchemy URL (see normalize_database_url)

    Raises:
        EnvVarError: If neither the variable nor a fallback is set
        UrlError: If the value is blank after trimming
    """
    if environ is None:
        environ = os.environ

    value = environ.get(config.database_url_env) or config.database_url
    if value is None or value == '':
        raise EnvVarError(config.database_url_env)
    if not value.strip():
        raise UrlError(value, 'empty URL')

    return normalize_database_url(value)
