"""
sqlmigrate - numbered SQL migrations with a ledger table.

Migrations live in `migrations` directories as <number>-<name>.sql files
with an UP section and an optional DOWN section. Applied migrations are
recorded in the `migrations` table of the target database.
"""

__version__ = '0.1.0'
