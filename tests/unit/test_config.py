"""
Unit tests for configuration loading and database URL handling.

Tests cover:
- Defaults and JSON/YAML config files
- DATABASE_URL resolution
- URL normalization to async drivers
- Engine creation errors
"""

import json
import logging
from pathlib import Path

import pytest

from sqlmigrate.config import (
    MigrateConfig,
    configure_logger,
    load_config,
    parse_log_level,
    resolve_database_url,
)
from sqlmigrate.database import create_engine, normalize_database_url
from sqlmigrate.errors import ContentError, EnvVarError, FileError, UrlError


class TestLoadConfig:
    """Test config file loading."""

    def test_defaults(self):
        config = load_config()

        assert config.root == Path('.')
        assert config.database_url_env == 'DATABASE_URL'
        assert config.schema_path == Path('schema.sql')

    def test_json_config(self, tmp_path):
        config_file = tmp_path / 'migrate.json'
        config_file.write_text(json.dumps({
            'root': 'app',
            'schema_file': 'db/schema.sql',
            'database_url_env': 'APP_DB',
            'log_level': 'debug',
        }))

        config = load_config(config_file)

        assert config.root == tmp_path / 'app'
        assert config.schema_path == tmp_path / 'app' / 'db' / 'schema.sql'
        assert config.database_url_env == 'APP_DB'
        assert config.log_level == 'debug'

    def test_yaml_config(self, tmp_path):
        config_file = tmp_path / 'migrate.yaml'
        config_file.write_text(
            "database_url: sqlite:///local.db\n"
            "schema_file: /var/schema.sql\n"
        )

        config = load_config(config_file)

        assert config.database_url == 'sqlite:///local.db'
        assert config.schema_path == Path('/var/schema.sql')

    def test_empty_yaml_config(self, tmp_path):
        config_file = tmp_path / 'migrate.yml'
        config_file.write_text("")

        assert load_config(config_file).root == tmp_path

    def test_missing_config_file(self, tmp_path):
        with pytest.raises(FileError):
            load_config(tmp_path / 'missing.json')

    def test_invalid_json(self, tmp_path):
        config_file = tmp_path / 'migrate.json'
        config_file.write_text('{not json')

        with pytest.raises(ContentError):
            load_config(config_file)

    def test_config_must_be_mapping(self, tmp_path):
        config_file = tmp_path / 'migrate.json'
        config_file.write_text('[1, 2]')

        with pytest.raises(ContentError, match='mapping'):
            load_config(config_file)


class TestResolveDatabaseUrl:
    """Test DATABASE_URL resolution."""

    def test_missing_env_var(self):
        with pytest.raises(EnvVarError) as exc_info:
            resolve_database_url(MigrateConfig(), environ={})

        assert exc_info.value.name == 'DATABASE_URL'

    def test_empty_env_var(self):
        with pytest.raises(EnvVarError):
            resolve_database_url(MigrateConfig(), environ={'DATABASE_URL': ''})

    def test_blank_env_var(self):
        with pytest.raises(UrlError):
            resolve_database_url(MigrateConfig(), environ={'DATABASE_URL': '   '})

    def test_env_var_normalized(self):
        url = resolve_database_url(
            MigrateConfig(),
            environ={'DATABASE_URL': 'postgres://u:p@localhost/app'}
        )

        assert url == 'postgresql+asyncpg://u:p@localhost/app'

    def test_custom_env_var(self):
        config = MigrateConfig(database_url_env='APP_DB')

        url = resolve_database_url(config, environ={'APP_DB': 'sqlite:///app.db'})

        assert url == 'sqlite+aiosqlite:///app.db'

    def test_env_var_wins_over_config(self):
        config = MigrateConfig(database_url='sqlite:///config.db')

        url = resolve_database_url(config, environ={'DATABASE_URL': 'sqlite:///env.db'})

        assert url == 'sqlite+aiosqlite:///env.db'

    def test_config_fallback(self):
        config = MigrateConfig(database_url='sqlite:///config.db')

        assert resolve_database_url(config, environ={}) == 'sqlite+aiosqlite:///config.db'


class TestNormalizeDatabaseUrl:
    """Test URL normalization."""

    def test_postgresql(self):
        assert normalize_database_url('postgresql://h/db') == 'postgresql+asyncpg://h/db'

    def test_explicit_driver_unchanged(self):
        url = 'postgresql+asyncpg://h/db'

        assert normalize_database_url(url) == url

    def test_memory(self):
        assert normalize_database_url(':memory:') == 'sqlite+aiosqlite:///:memory:'

    def test_file_path(self, tmp_path):
        url = normalize_database_url(str(tmp_path / 'app.db'))

        assert url == f"sqlite+aiosqlite:///{(tmp_path / 'app.db').as_posix()}"


class TestCreateEngine:
    """Test engine creation."""

    @pytest.mark.asyncio
    async def test_sqlite_engine(self, tmp_path):
        engine = create_engine(f"sqlite:///{tmp_path / 'app.db'}")

        assert engine.dialect.name == 'sqlite'
        await engine.dispose()

    def test_unparseable_url(self):
        with pytest.raises(UrlError):
            create_engine('://nohost')

    def test_unknown_dialect(self):
        with pytest.raises(UrlError):
            create_engine('nosuchdb://host/db')


class TestLogLevel:
    """Test log level parsing."""

    def test_known_levels(self):
        assert parse_log_level('debug') == logging.DEBUG
        assert parse_log_level('WARNING') == logging.WARNING

    def test_unknown_level(self):
        with pytest.raises(ValueError):
            parse_log_level('chatty')


class TestConfigureLogger:
    """Test the log file handler."""

    def test_writes_formatted_lines(self, tmp_path):
        log_file = tmp_path / 'migrate.log'
        logger = logging.getLogger('sqlmigrate.tests.logfile')

        handler = configure_logger(logger, str(log_file), log_level=logging.WARNING)
        try:
            logger.warning('Ledger is not a contiguous chain from 0: %s', [0, 2])
            logger.info('not written')
        finally:
            logger.removeHandler(handler)
            handler.close()

        text = log_file.read_text(encoding='utf-8')
        assert '[sqlmigrate.tests.logfile] [WARNING] Ledger is not a contiguous chain' in text
        assert 'not written' not in text
