"""
Migration discovery and parsing.

This module provides the MigrationManager class which handles:
- Discovery of migration files in every `migrations` directory of a project
- Parsing of migration files (extracting UP/DOWN statements)
- Lookup of single migrations and contiguous migration ranges

Migration files follow the naming convention: <number>-<name>.sql
Example: 1-create_users.sql, 2-add_email.sql

File format:
    -- UP
    CREATE TABLE users (id INTEGER PRIMARY KEY);

    -- DOWN
    DROP TABLE users;

The `-- UP` marker is optional (everything before `-- DOWN` is the UP
section) and so is the DOWN section.
"""

import logging
import re
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Sequence, Tuple

import sqlparse
from sqlparse.tokens import Error

from sqlmigrate.errors import (
    ContentError,
    FileError,
    FileNameError,
    MigrateError,
    MigrationNotFoundError,
    combine_errors,
)

from .migration import Migration

logger = logging.getLogger(__name__)


def split_sql_statements(sql: str) -> List[str]:
    """
    Split SQL string into individual statements.

    Uses sqlparse, so semicolons inside string literals, quoted
    identifiers, dollar-quoted bodies and comments don't split. Comments
    are dropped. Needed for SQLite, which can only execute one statement
    at a time.

    Args:
        sql: SQL string with one or more statements

    Returns:
        List of individual SQL statements (without trailing semicolons)

    Raises:
        ValueError: If a quote or dollar-quoted body is never closed

    Example:
        >>> split_sql_statements("CREATE TABLE a (x TEXT DEFAULT ';'); DROP TABLE b;")
        ["CREATE TABLE a (x TEXT DEFAULT ';')", 'DROP TABLE b']
    """
    statements = []

    for stmt in sqlparse.parse(sql):
        # The lexer emits Error for a quote character it can't match
        for token in stmt.flatten():
            if token.ttype in Error:
                raise ValueError(f"unterminated quoted string near {token.value!r}")

        statement = sqlparse.format(str(stmt), strip_comments=True).strip()
        if statement.endswith(';'):
            statement = statement[:-1].rstrip()
        if statement:
            statements.append(statement)

    return statements


class MigrationManager:
    """
    Manages migration file discovery and parsing.

    Responsibilities:
    - Find every `migrations` directory below the project root
    - Parse migration files (extract UP/DOWN statements)
    - Report every broken file in one pass

    Does NOT execute migrations (see MigrationExecutor).

    Example:
        >>> manager = MigrationManager(Path('/srv/app'))
        >>> manager.discover_migrations()
        [<Migration(v1, create_users)>, <Migration(v2, add_email)>]
    """

    # Migration filename pattern: <number>-<name>.sql
    # Examples: 1-create_users.sql, 0042-add_index.sql
    MIGRATION_PATTERN = re.compile(r'^(\d+)-(.+)\.sql$')

    # Section markers in migration files (case-insensitive, whole line)
    MARKER_PATTERN = re.compile(r'^--\s*(UP|DOWN)$', re.IGNORECASE)

    MIGRATIONS_DIRNAME = 'migrations'

    def __init__(self, root: Path):
        """
        Initialize migration manager.

        Args:
            root: Project root directory
                Expected structure (any depth):
                    root/
                        db/
                            migrations/
                                1-create_users.sql
                                2-add_email.sql
        """
        self.root = Path(root)

    def discover_migrations(self) -> List[Migration]:
        """
        Discover and parse all migration files under the project root.

        Every problem (bad file name, unreadable file, malformed content,
        duplicate number) is collected before raising, so a single run
        reports all of them.

        Returns:
            List of Migration objects sorted by number ascending

        Raises:
            FileError, FileNameError, ContentError: If exactly one file is bad
            CompoundError: If several files are bad
        """
        migrations = []
        errors: List[MigrateError] = []
        seen: Dict[int, Path] = {}

        try:
            file_paths = list(self._migration_files())
        except OSError as e:
            raise FileError(str(self.root), e.strerror or str(e)) from e

        for file_path in file_paths:
            try:
                migration = self.parse_migration_file(file_path)
            except MigrateError as e:
                logger.debug('Failed to parse %s: %s', file_path, e.message)
                errors.append(e)
                continue

            if migration.number in seen:
                errors.append(FileNameError(
                    str(file_path),
                    f"duplicate migration number {migration.number}, "
                    f"also defined in {seen[migration.number]}"
                ))
                continue

            seen[migration.number] = file_path
            migrations.append(migration)
            logger.debug('Discovered migration: %r', migration)

        error = combine_errors(errors)
        if error is not None:
            raise error

        return sorted(migrations)

    def _migration_files(self) -> Iterator[Path]:
        """Yield .sql files of every non-hidden migrations directory."""
        if not self.root.is_dir():
            raise NotADirectoryError(20, 'Not a directory', str(self.root))

        for directory in sorted(self.root.rglob(self.MIGRATIONS_DIRNAME)):
            if not directory.is_dir():
                continue
            relative = directory.relative_to(self.root)
            if any(part.startswith('.') for part in relative.parts):
                continue
            for file_path in sorted(directory.glob('*.sql')):
                if file_path.is_file():
                    yield file_path

    def parse_migration_file(self, file_path: Path) -> Migration:
        """
        Parse a migration file and extract UP/DOWN statements.

        Args:
            file_path: Path to migration file

        Returns:
            Migration object with statements split and comments removed

        Raises:
            FileNameError: If the name is not <number>-<name>.sql, or uses
                the reserved number 0
            FileError: If the file can't be read or isn't UTF-8
            ContentError: If the sections are malformed
        """
        file_path = Path(file_path)

        match = self.MIGRATION_PATTERN.match(file_path.name)
        if not match:
            raise FileNameError(str(file_path))

        number_str, name = match.groups()
        number = int(number_str)
        if number == 0:
            raise FileNameError(
                str(file_path),
                "migration 0 is reserved for the ledger bootstrap"
            )

        try:
            content = file_path.read_text(encoding='utf-8')
        except UnicodeDecodeError as e:
            raise FileError(str(file_path), 'not valid UTF-8') from e
        except OSError as e:
            raise FileError(str(file_path), e.strerror or str(e)) from e

        up_statements, down_statements = self._parse_sections(content, file_path)

        return Migration(
            path=str(file_path.absolute()),
            number=number,
            name=name,
            up_statements=up_statements,
            down_statements=down_statements,
        )

    def _parse_sections(
        self,
        content: str,
        file_path: Path
    ) -> Tuple[Tuple[str, ...], Tuple[str, ...]]:
        """
        Parse UP and DOWN sections from migration file content.

        Returns:
            Tuple of (up_statements, down_statements)

        Raises:
            ContentError: If markers are repeated or out of order, the UP
                section is empty, or a section can't be split
        """
        lines = content.splitlines()

        up_index = None
        down_index = None

        for i, line in enumerate(lines):
            match = self.MARKER_PATTERN.match(line.strip())
            if not match:
                continue

            if match.group(1).upper() == 'UP':
                if up_index is not None:
                    raise ContentError(
                        str(file_path),
                        f"duplicate '-- UP' marker at line {i + 1}"
                    )
                if down_index is not None:
                    raise ContentError(
                        str(file_path),
                        f"'-- DOWN' (line {down_index + 1}) before "
                        f"'-- UP' (line {i + 1})"
                    )
                up_index = i
            else:
                if down_index is not None:
                    raise ContentError(
                        str(file_path),
                        f"duplicate '-- DOWN' marker at line {i + 1}"
                    )
                down_index = i

        up_start = 0 if up_index is None else up_index + 1
        up_end = len(lines) if down_index is None else down_index

        up_sql = '\n'.join(lines[up_start:up_end])
        down_sql = '' if down_index is None else '\n'.join(lines[down_index + 1:])
        preamble = '' if up_index is None else '\n'.join(lines[:up_index])

        try:
            if split_sql_statements(preamble):
                raise ContentError(
                    str(file_path), "statements before '-- UP' marker"
                )
            up_statements = tuple(split_sql_statements(up_sql))
            down_statements = tuple(split_sql_statements(down_sql))
        except ValueError as e:
            raise ContentError(str(file_path), str(e)) from e

        if not up_statements:
            raise ContentError(str(file_path), "UP section has no statements")

        return up_statements, down_statements


def discover(root: Path) -> List[Migration]:
    """Discover all migrations below `root`. See MigrationManager."""
    return MigrationManager(root).discover_migrations()


def find_migration(migrations: Iterable[Migration], number: int) -> Migration:
    """
    Find a migration by number.

    Raises:
        MigrationNotFoundError: If no migration has that number (always
            the case for 0, the built-in bootstrap)
    """
    for migration in migrations:
        if migration.number == number:
            return migration

    raise MigrationNotFoundError(number)


def find_migrations_between(
    migrations: Sequence[Migration],
    from_version: int,
    to_version: int
) -> List[Migration]:
    """
    Return the migrations to run to move from one version to another.

    Moving up returns (from, to] ascending; moving down returns (to, from]
    descending, i.e. the order rollbacks apply in. The numbers in between
    must all exist: migrations form an unbroken chain 1, 2, 3, ...

    Args:
        migrations: All discovered migrations
        from_version: Current version
        to_version: Target version

    Returns:
        Migrations in execution order (empty if versions are equal)

    Raises:
        MigrationNotFoundError: For the first missing number in the range

    Example:
        >>> [m.number for m in find_migrations_between(migrations, 5, 2)]
        [5, 4, 3]
    """
    by_number = {m.number: m for m in migrations}

    if to_version > from_version:
        numbers = range(from_version + 1, to_version + 1)
    elif to_version < from_version:
        numbers = range(from_version, to_version, -1)
    else:
        return []

    result = []
    for number in numbers:
        if number not in by_number:
            raise MigrationNotFoundError(number)
        result.append(by_number[number])

    return result
