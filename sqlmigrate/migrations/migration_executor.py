#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Migration executor with transaction management and ledger tracking.

Decides which migrations to apply or roll back for a command, then runs
each one in its own database transaction together with the matching
ledger insert/delete. Supports dry-run mode for previewing changes
without committing.

Migrations run strictly one after another on a single connection and the
run stops at the first failure. Migrations committed before the failure
stay committed; the ledger is the recovery point for the next run.
"""
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import List, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection

from sqlmigrate.database import begin, driver_message
from sqlmigrate.errors import (
    MigrationNotFoundError,
    NoMigrationToApplyError,
    TransactionError,
)

from .ledger import Ledger
from .migration import LedgerEntry, Migration, MigrationStatus
from .migration_manager import find_migration, find_migrations_between

UP = 'up'
DOWN = 'down'


@dataclass
class MigrationResult:
    """
    Result of one executed migration step.

    Attributes:
        number: Migration number that was executed
        name: Migration name
        direction: 'up' (applied) or 'down' (rolled back)
        execution_time_ms: Execution time in milliseconds
        dry_run: True if the change was rolled back afterwards
    """
    number: int
    name: str
    direction: str
    execution_time_ms: int
    dry_run: bool = False


class MigrationExecutor:
    """
    Runs migration commands against one open connection.

    Every command first applies the built-in migration 0 so the ledger
    table exists, then reads the current version from the ledger.

    Attributes:
        connection: Open AsyncConnection, reused for the whole run
        migrations: All discovered migrations, sorted by number
        ledger: Ledger bound to the same connection
        dry_run: Roll back everything at the end of the run

    Example:
        async with engine.connect() as connection:
            executor = MigrationExecutor(connection, discover(root))
            results = await executor.to_last()
    """

    def __init__(
        self,
        connection: AsyncConnection,
        migrations: Sequence[Migration],
        dry_run: bool = False
    ):
        self.connection = connection
        self.migrations = sorted(migrations)
        self.ledger = Ledger(connection)
        self.dry_run = dry_run
        self.logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def _run(self):
        """
        Bootstrap the ledger and scope one command.

        In dry-run mode the whole command runs inside an outer
        transaction that is always rolled back; each migration then
        runs in a SAVEPOINT.
        """
        if not self.dry_run:
            await self.ledger.bootstrap()
            yield
            return

        transaction = await self.connection.begin()
        try:
            await self.ledger.bootstrap()
            yield
        finally:
            await transaction.rollback()
            self.logger.info('Dry-run complete - rolled back all changes')

    async def current_version(self) -> LedgerEntry:
        """Return the ledger entry defining the current version."""
        return await self.ledger.last_applied()

    async def up(self) -> List[MigrationResult]:
        """
        Apply the next migration (current + 1).

        Raises:
            NoMigrationToApplyError: If there is no next migration
        """
        async with self._run():
            current = await self.current_version()
            try:
                migration = find_migration(self.migrations, current.number + 1)
            except MigrationNotFoundError:
                raise NoMigrationToApplyError(current.number) from None
            return await self._execute([migration], UP)

    async def down(self) -> List[MigrationResult]:
        """
        Roll back the current migration.

        Raises:
            MigrationNotFoundError: If the current migration is missing
                on disk, or is 0 (nothing left to roll back)
        """
        async with self._run():
            current = await self.current_version()
            migration = find_migration(self.migrations, current.number)
            return await self._execute([migration], DOWN)

    async def to(self, target: int) -> List[MigrationResult]:
        """
        Move to the target version, applying or rolling back as needed.

        Moving to the current version is a no-op.

        Raises:
            MigrationNotFoundError: If any migration between the current
                and the target version is missing
        """
        async with self._run():
            current = await self.current_version()
            plan = find_migrations_between(self.migrations, current.number, target)
            direction = UP if target > current.number else DOWN
            if not plan:
                self.logger.info('Already at version %d', current.number)
            return await self._execute(plan, direction)

    async def to_last(self) -> List[MigrationResult]:
        """
        Apply every migration newer than the current version.

        Raises:
            NoMigrationToApplyError: If nothing is newer
            MigrationNotFoundError: If the chain up to the newest
                migration has a gap
        """
        async with self._run():
            current = await self.current_version()
            last = max((m.number for m in self.migrations), default=0)
            if last <= current.number:
                raise NoMigrationToApplyError(current.number)
            plan = find_migrations_between(self.migrations, current.number, last)
            return await self._execute(plan, UP)

    async def show(self) -> MigrationStatus:
        """Return the current version with applied and pending migrations."""
        async with self._run():
            current = await self.current_version()
            applied = await self.ledger.applied()

        numbers = [entry.number for entry in applied]
        if numbers != list(range(len(numbers))):
            self.logger.warning(
                'Ledger is not a contiguous chain from 0: %s', numbers
            )

        pending = [m for m in self.migrations if m.number > current.number]
        return MigrationStatus(current=current, applied=applied, pending=pending)

    async def _execute(
        self,
        plan: Sequence[Migration],
        direction: str
    ) -> List[MigrationResult]:
        """
        Run the plan in order, stopping at the first failure.

        A TransactionError carries the results of the steps that ran
        before it in `completed`.
        """
        step = self.apply_migration if direction == UP else self.rollback_migration
        results = []
        for migration in plan:
            try:
                results.append(await step(migration))
            except TransactionError as e:
                e.completed = list(results)
                raise
        return results

    async def apply_migration(self, migration: Migration) -> MigrationResult:
        """
        Apply migration UP statements and record it in the ledger.

        Both happen in one transaction.

        Raises:
            TransactionError: On SQL execution failure (transaction is
                rolled back, driver message preserved)
        """
        start_time = time.time()

        self.logger.info(
            'Applying migration %s v%03d%s',
            migration.name,
            migration.number,
            ' (DRY RUN)' if self.dry_run else ''
        )

        try:
            async with begin(self.connection):
                for statement in migration.up_statements:
                    await self.connection.exec_driver_sql(statement)
                await self.ledger.record(migration.number, migration.name)
        except SQLAlchemyError as e:
            self.logger.error(
                'Failed to apply migration %s v%03d: %s',
                migration.name,
                migration.number,
                driver_message(e)
            )
            raise TransactionError(
                migration.number, migration.name, driver_message(e)
            ) from e

        execution_time_ms = int((time.time() - start_time) * 1000)
        self.logger.info(
            'Applied migration %s v%03d (%dms)',
            migration.name,
            migration.number,
            execution_time_ms
        )

        return MigrationResult(
            number=migration.number,
            name=migration.name,
            direction=UP,
            execution_time_ms=execution_time_ms,
            dry_run=self.dry_run
        )

    async def rollback_migration(self, migration: Migration) -> MigrationResult:
        """
        Run migration DOWN statements and erase it from the ledger.

        Both happen in one transaction. A migration without DOWN
        statements only has its ledger row removed.

        Raises:
            TransactionError: On SQL execution failure (transaction is
                rolled back, driver message preserved)
        """
        start_time = time.time()

        self.logger.info(
            'Rolling back migration %s v%03d%s',
            migration.name,
            migration.number,
            ' (DRY RUN)' if self.dry_run else ''
        )
        if not migration.down_statements:
            self.logger.warning(
                'Migration %s v%03d has no DOWN section - removing ledger entry only',
                migration.name,
                migration.number
            )

        try:
            async with begin(self.connection):
                for statement in migration.down_statements:
                    await self.connection.exec_driver_sql(statement)
                await self.ledger.erase(migration.number)
        except SQLAlchemyError as e:
            self.logger.error(
                'Failed to rollback migration %s v%03d: %s',
                migration.name,
                migration.number,
                driver_message(e)
            )
            raise TransactionError(
                migration.number, migration.name, driver_message(e)
            ) from e

        execution_time_ms = int((time.time() - start_time) * 1000)
        self.logger.info(
            'Rolled back migration %s v%03d (%dms)',
            migration.name,
            migration.number,
            execution_time_ms
        )

        return MigrationResult(
            number=migration.number,
            name=migration.name,
            direction=DOWN,
            execution_time_ms=execution_time_ms,
            dry_run=self.dry_run
        )
