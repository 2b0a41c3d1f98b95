"""
Schema migrations package.

This package provides:
- Migration: Data model for migration files
- LedgerEntry: Data model for rows of the migrations ledger
- MigrationManager: Discovery and parsing of migration files
- Ledger: Reads and writes the migrations ledger table
- MigrationExecutor: Execution of migrations with transaction safety
- MigrationResult: Data model for execution results
"""

from .migration import (
    BOOTSTRAP_MIGRATION,
    LedgerEntry,
    Migration,
    MigrationStatus,
)
from .migration_manager import (
    MigrationManager,
    discover,
    find_migration,
    find_migrations_between,
    split_sql_statements,
)
from .ledger import Ledger
from .migration_executor import MigrationExecutor, MigrationResult

__all__ = [
    'BOOTSTRAP_MIGRATION',
    'Migration',
    'LedgerEntry',
    'MigrationStatus',
    'MigrationManager',
    'discover',
    'find_migration',
    'find_migrations_between',
    'split_sql_statements',
    'Ledger',
    'MigrationExecutor',
    'MigrationResult',
]
