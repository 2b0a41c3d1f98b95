"""
Ledger of applied migrations.

The ledger is the `migrations` table in the target database: one row per
currently applied migration, keyed by migration number. It is created by
the built-in migration 0, which is applied (idempotently) before every
command reads the ledger.
"""

import logging
from typing import List

from sqlalchemy import Column, DateTime, Integer, MetaData, String, Table, delete, func, insert, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection

from sqlmigrate.database import begin, driver_message
from sqlmigrate.errors import NoResultError, QueryError, TransactionError

from .migration import BOOTSTRAP_MIGRATION, LedgerEntry

logger = logging.getLogger(__name__)

metadata = MetaData()

# Mirrors the DDL of BOOTSTRAP_MIGRATION
migrations_table = Table(
    'migrations',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=False),
    Column('name', String(255), nullable=False),
    Column('appliedAt', DateTime, nullable=False, server_default=func.current_timestamp()),
)


class Ledger:
    """
    Reads and mutates the migrations ledger over an open connection.

    record() and erase() do not manage transactions: they are issued
    inside the migration's own transaction so the ledger row and the
    schema change commit (or roll back) together.

    Example:
        async with engine.connect() as connection:
            ledger = Ledger(connection)
            await ledger.bootstrap()
            entry = await ledger.last_applied()
            print(entry.number, entry.name)
    """

    def __init__(self, connection: AsyncConnection):
        self.connection = connection

    async def bootstrap(self) -> None:
        """
        Apply migration 0: create the ledger table and its own row.

        Safe to call on every run (CREATE TABLE IF NOT EXISTS, row 0 is
        only inserted when missing).

        Raises:
            TransactionError: On table creation failure
        """
        migration = BOOTSTRAP_MIGRATION
        try:
            async with begin(self.connection):
                for statement in migration.up_statements:
                    await self.connection.exec_driver_sql(statement)

                result = await self.connection.execute(
                    select(migrations_table.c.id).where(
                        migrations_table.c.id == migration.number
                    )
                )
                if result.first() is None:
                    await self.record(migration.number, migration.name)
                    logger.info('Created migrations ledger table')
        except SQLAlchemyError as e:
            raise TransactionError(
                migration.number, migration.name, driver_message(e)
            ) from e

    async def last_applied(self) -> LedgerEntry:
        """
        Return the entry that defines the current version.

        The current version is the highest applied migration number.
        appliedAt is informational only: timestamps can go backwards
        (clock steps, session time zone changes) while numbers cannot.

        Raises:
            NoResultError: If the ledger table is empty
            QueryError: On query failure
        """
        query = (
            select(
                migrations_table.c.id,
                migrations_table.c.name,
                migrations_table.c.appliedAt,
            )
            .order_by(migrations_table.c.id.desc())
            .limit(1)
        )

        try:
            async with begin(self.connection):
                result = await self.connection.execute(query)
                row = result.first()
        except SQLAlchemyError as e:
            raise QueryError(driver_message(e)) from e

        if row is None:
            raise NoResultError()

        return LedgerEntry(number=row.id, name=row.name, applied_at=row.appliedAt)

    async def applied(self) -> List[LedgerEntry]:
        """
        Return every ledger entry, ascending by migration number.

        Raises:
            QueryError: On query failure
        """
        query = select(
            migrations_table.c.id,
            migrations_table.c.name,
            migrations_table.c.appliedAt,
        ).order_by(migrations_table.c.id)

        try:
            async with begin(self.connection):
                result = await self.connection.execute(query)
                rows = result.all()
        except SQLAlchemyError as e:
            raise QueryError(driver_message(e)) from e

        return [
            LedgerEntry(number=row.id, name=row.name, applied_at=row.appliedAt)
            for row in rows
        ]

    async def record(self, number: int, name: str) -> None:
        """Insert a ledger row. Caller manages the transaction."""
        await self.connection.execute(
            insert(migrations_table).values(id=number, name=name)
        )

    async def erase(self, number: int) -> None:
        """Delete a ledger row. Caller manages the transaction."""
        await self.connection.execute(
            delete(migrations_table).where(migrations_table.c.id == number)
        )
