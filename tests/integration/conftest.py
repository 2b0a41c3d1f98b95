"""
Shared fixtures for integration tests.

Integration tests run the migration engine against a real SQLite
database (file-backed, via aiosqlite) in the test's tmp_path.
"""

import pytest
from sqlalchemy import event

from sqlmigrate.database import create_engine


@pytest.fixture
def database_url(tmp_path):
    """SQLite URL of a fresh database file."""
    return f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"


@pytest.fixture
async def engine(database_url):
    """Create async engine for the test database.

    Yields:
        AsyncEngine with transactional DDL enabled for SQLite
    """
    engine = create_engine(database_url)
    yield engine
    await engine.dispose()


@pytest.fixture
async def connection(engine):
    """Open connection reused for the whole test, like a CLI run."""
    async with engine.connect() as connection:
        yield connection


@pytest.fixture
def executed_statements(engine):
    """Record every SQL statement sent to the database.

    Example:
        async def test_no_writes(connection, executed_statements):
            executed_statements.clear()
            await executor.to(1)
            assert not any(s.startswith('INSERT') for s in executed_statements)
    """
    statements = []

    def _record(conn, cursor, statement, parameters, context, executemany):
        statements.append(statement.strip())

    event.listen(engine.sync_engine, "before_cursor_execute", _record)
    yield statements
    event.remove(engine.sync_engine, "before_cursor_execute", _record)
