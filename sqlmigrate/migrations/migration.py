"""
Migration data models.

This module defines the core data structures for managing schema migrations:
- Migration: A numbered migration parsed from a .sql file
- LedgerEntry: A row of the migrations ledger table
- MigrationStatus: Snapshot of applied and pending migrations

Migration 0 (CreateMigrationsTable) is built in and creates the ledger
table itself; it is never read from disk.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class Migration:
    """
    Represents a single migration with its UP and DOWN statements.

    Attributes:
        path: Path of the migration file ('<builtin>' for migration 0)
        number: Migration number (unique, 0 reserved for the bootstrap)
        name: Descriptive name from filename (e.g., 'create_users')
        up_statements: Statements applying the migration, in order
        down_statements: Statements reversing the migration, in order
            (may be empty)

    Example:
        >>> migration = Migration(
        ...     path='/app/db/migrations/1-create_users.sql',
        ...     number=1,
        ...     name='create_users',
        ...     up_statements=('CREATE TABLE users (id INTEGER PRIMARY KEY)',),
        ...     down_statements=('DROP TABLE users',),
        ... )
        >>> print(migration)
        <Migration(v1, create_users)>
    """

    path: str
    number: int
    name: str
    up_statements: Tuple[str, ...]
    down_statements: Tuple[str, ...] = ()

    def __post_init__(self):
        """Validate migration after initialization."""
        if self.number < 0:
            raise ValueError(
                f"Migration number must be >= 0, got {self.number}"
            )

    def __lt__(self, other: 'Migration') -> bool:
        """Allow sorting migrations by number."""
        if not isinstance(other, Migration):
            return NotImplemented
        return self.number < other.number

    def __repr__(self) -> str:
        return f"<Migration(v{self.number}, {self.name})>"


BOOTSTRAP_NAME = 'CreateMigrationsTable'

BOOTSTRAP_MIGRATION = Migration(
    path='<builtin>',
    number=0,
    name=BOOTSTRAP_NAME,
    up_statements=(
        'CREATE TABLE IF NOT EXISTS migrations (\n'
        '    id INTEGER PRIMARY KEY,\n'
        '    name VARCHAR(255) NOT NULL,\n'
        '    "appliedAt" TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP\n'
        ')',
    ),
)


@dataclass
class LedgerEntry:
    """
    Represents a migration recorded in the ledger table.

    Attributes:
        number: Migration number (the table's id column)
        name: Migration name
        applied_at: When the migration was applied
    """

    number: int
    name: str
    applied_at: Optional[datetime] = None

    def __repr__(self) -> str:
        return f"<LedgerEntry(v{self.number}, {self.name})>"


@dataclass
class MigrationStatus:
    """
    Applied and pending migrations as seen by the `show` command.

    Attributes:
        current: Ledger entry defining the current version
        applied: All ledger entries, ascending by number
        pending: Discovered migrations newer than the current version
    """

    current: LedgerEntry
    applied: List[LedgerEntry] = field(default_factory=list)
    pending: List[Migration] = field(default_factory=list)
