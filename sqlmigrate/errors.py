"""
Migration error taxonomy.

This module defines the closed set of failures the migration engine can
report. Every error carries a short code and a human-readable message;
CompoundError aggregates several errors so a single pass over the
migration files can report every problem at once.

render_error() is the single presentation routine used at the CLI
boundary.
"""

from typing import Any, Optional, Sequence


class MigrateError(Exception):
    """
    Base exception for migration errors.

    All migration-related exceptions inherit from this base class,
    allowing catch-all error handling at the command boundary.
    """

    code = 'MIGRATE_ERROR'

    def __init__(
        self,
        message: str,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        """
        Initialize migration error.

        Args:
            message: Human-readable error message
            details: Optional dict of additional context
        """
        self.message = message
        self.details = details or {}
        super().__init__(f"[{self.code}] {message}")


class EnvVarError(MigrateError):
    """Required environment variable is missing or empty."""

    code = 'ENV_VAR'

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(
            f"Environment variable {name} is not set",
            {'name': name},
        )


class UrlError(MigrateError):
    """Database URL could not be parsed."""

    code = 'URL'

    def __init__(self, url: str, detail: str = '') -> None:
        self.url = url
        message = f"Malformed database URL: {url!r}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message, {'url': url})


class FileError(MigrateError):
    """
    Migration file could not be read.

    Raised when:
    - File or directory is not readable
    - File content is not valid UTF-8
    """

    code = 'FILE'

    def __init__(self, path: str, detail: str = '') -> None:
        self.path = str(path)
        message = f"Cannot read {self.path}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message, {'path': self.path})


class FileNameError(MigrateError):
    """
    Migration file name does not follow <number>-<name>.sql.

    Also raised for the reserved number 0 and for duplicated numbers.
    """

    code = 'FILE_NAME'

    def __init__(self, path: str, detail: str = '') -> None:
        self.path = str(path)
        message = f"Invalid migration file name: {self.path}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message, {'path': self.path})


class ContentError(MigrateError):
    """
    Migration file content is malformed.

    Raised when:
    - UP or DOWN marker appears more than once
    - DOWN marker precedes UP marker
    - UP section contains no statements
    - A quote or block comment is never closed
    """

    code = 'CONTENT'

    def __init__(self, path: str, detail: str) -> None:
        self.path = str(path)
        self.detail = detail
        super().__init__(
            f"Malformed migration {self.path}: {detail}",
            {'path': self.path},
        )


class QueryError(MigrateError):
    """Ledger query failed; driver message is preserved."""

    code = 'QUERY'

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"Query failed: {detail}")


class TransactionError(MigrateError):
    """
    Migration transaction failed and was rolled back.

    The driver message is preserved verbatim in `detail`. `completed`
    holds the results of earlier steps of the same run, which stay
    committed; the executor fills it in.
    """

    code = 'TRANSACTION'

    def __init__(self, number: int, name: str, detail: str) -> None:
        self.number = number
        self.name = name
        self.detail = detail
        self.completed = []
        super().__init__(
            f"Migration {number} ({name}) failed: {detail}",
            {'number': number, 'name': name},
        )


class MigrationNotFoundError(MigrateError):
    """No migration with the requested number exists."""

    code = 'NOT_FOUND'

    def __init__(self, number: int) -> None:
        self.number = number
        if number == 0:
            message = (
                "Migration 0 is the built-in ledger bootstrap "
                "and cannot be rolled back"
            )
        else:
            message = f"Migration {number} not found"
        super().__init__(message, {'number': number})


class NoResultError(MigrateError):
    """Ledger table is empty (bootstrap has not run)."""

    code = 'NO_RESULT'

    def __init__(self) -> None:
        super().__init__("Ledger table is empty")


class SchemaError(MigrateError):
    """Schema snapshot could not be queried or written."""

    code = 'SCHEMA'

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"Schema snapshot failed: {detail}")


class NoMigrationToApplyError(MigrateError):
    """Database is already at the newest migration."""

    code = 'UP_TO_DATE'

    def __init__(self, current: int) -> None:
        self.current = current
        super().__init__(
            f"No migration to apply (current version is {current})",
            {'current': current},
        )


class CompoundError(MigrateError):
    """Several errors reported together."""

    code = 'COMPOUND'

    def __init__(self, errors: Sequence[MigrateError]) -> None:
        self.errors = list(errors)
        super().__init__(f"{len(self.errors)} errors")


def combine_errors(errors: Sequence[MigrateError]) -> Optional[MigrateError]:
    """
    Collapse a list of errors into one raisable error.

    Returns:
        None if the list is empty, the error itself if there is exactly
        one, otherwise a CompoundError wrapping all of them
    """
    if not errors:
        return None
    if len(errors) == 1:
        return errors[0]
    return CompoundError(errors)


def render_error(error: BaseException) -> str:
    """
    Render an error as a single diagnostic line.

    CompoundError renders as a bracketed list of its children,
    recursively.

    Example:
        >>> render_error(CompoundError([FileNameError('a.sql'), NoResultError()]))
        '[[FILE_NAME] Invalid migration file name: a.sql, [NO_RESULT] Ledger table is empty]'
    """
    if isinstance(error, CompoundError):
        return '[' + ', '.join(render_error(e) for e in error.errors) + ']'
    return str(error)
