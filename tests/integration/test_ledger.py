"""
Integration tests for the migrations ledger.

Tests cover:
- Bootstrap (migration 0) creation and idempotence
- Reading the last applied entry
- Recording and erasing entries
- Error translation for missing/empty tables
"""

import pytest

from sqlmigrate.errors import NoResultError, QueryError
from sqlmigrate.migrations.ledger import Ledger
from sqlmigrate.migrations.migration import BOOTSTRAP_MIGRATION, BOOTSTRAP_NAME
from db_helpers import column_names, table_names


class TestBootstrap:
    """Test ledger table creation."""

    @pytest.mark.asyncio
    async def test_bootstrap_creates_table(self, connection):
        ledger = Ledger(connection)

        await ledger.bootstrap()

        assert 'migrations' in await table_names(connection)
        assert await column_names(connection, 'migrations') == ['id', 'name', 'appliedAt']

    @pytest.mark.asyncio
    async def test_bootstrap_records_migration_zero(self, connection):
        ledger = Ledger(connection)

        await ledger.bootstrap()
        entry = await ledger.last_applied()

        assert entry.number == 0
        assert entry.name == BOOTSTRAP_NAME
        assert entry.applied_at is not None

    @pytest.mark.asyncio
    async def test_bootstrap_is_idempotent(self, connection):
        ledger = Ledger(connection)

        await ledger.bootstrap()
        await ledger.bootstrap()
        await ledger.bootstrap()

        entries = await ledger.applied()
        assert [e.number for e in entries] == [0]


class TestLedgerQueries:
    """Test reading and writing ledger rows."""

    @pytest.fixture
    async def ledger(self, connection):
        ledger = Ledger(connection)
        await ledger.bootstrap()
        return ledger

    @pytest.mark.asyncio
    async def test_record_and_read_back(self, connection, ledger):
        async with connection.begin():
            await ledger.record(1, 'create_users')

        entry = await ledger.last_applied()

        assert (entry.number, entry.name) == (1, 'create_users')

    @pytest.mark.asyncio
    async def test_same_timestamp_highest_number_wins(self, connection, ledger):
        """Rows inserted in one transaction share CURRENT_TIMESTAMP."""
        async with connection.begin():
            await ledger.record(1, 'create_users')
            await ledger.record(2, 'add_email')

        entry = await ledger.last_applied()

        assert entry.number == 2

    @pytest.mark.asyncio
    async def test_highest_number_wins_over_newer_timestamp(self, connection, ledger):
        """A clock step can leave a higher number with an older timestamp."""
        async with connection.begin():
            await ledger.record(1, 'create_users')
            await ledger.record(2, 'add_email')
            await connection.exec_driver_sql(
                'UPDATE migrations SET "appliedAt" = \'2000-01-01 00:00:00\' WHERE id = 2'
            )

        entry = await ledger.last_applied()

        assert (entry.number, entry.name) == (2, 'add_email')

    @pytest.mark.asyncio
    async def test_erase(self, connection, ledger):
        async with connection.begin():
            await ledger.record(1, 'create_users')
        async with connection.begin():
            await ledger.erase(1)

        entry = await ledger.last_applied()

        assert entry.number == 0

    @pytest.mark.asyncio
    async def test_applied_sorted_by_number(self, connection, ledger):
        async with connection.begin():
            await ledger.record(2, 'add_email')
            await ledger.record(1, 'create_users')

        entries = await ledger.applied()

        assert [(e.number, e.name) for e in entries] == [
            (0, BOOTSTRAP_NAME), (1, 'create_users'), (2, 'add_email')
        ]


class TestLedgerErrors:
    """Test failures reading the ledger."""

    @pytest.mark.asyncio
    async def test_empty_table_raises_no_result(self, connection):
        async with connection.begin():
            for statement in BOOTSTRAP_MIGRATION.up_statements:
                await connection.exec_driver_sql(statement)

        with pytest.raises(NoResultError):
            await Ledger(connection).last_applied()

    @pytest.mark.asyncio
    async def test_missing_table_raises_query_error(self, connection):
        with pytest.raises(QueryError, match='no such table'):
            await Ledger(connection).last_applied()

    @pytest.mark.asyncio
    async def test_connection_usable_after_query_error(self, connection):
        ledger = Ledger(connection)
        with pytest.raises(QueryError):
            await ledger.applied()

        await ledger.bootstrap()

        assert (await ledger.last_applied()).number == 0
