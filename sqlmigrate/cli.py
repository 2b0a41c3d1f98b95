#!/usr/bin/env python3
"""
Command-line interface for sqlmigrate.

Usage:
    sqlmigrate show          # Current version, applied and pending migrations
    sqlmigrate up            # Apply the next migration
    sqlmigrate down          # Roll back the current migration
    sqlmigrate last          # Apply every pending migration
    sqlmigrate to <N>        # Move to version N (up or down)

The database URL is read from $DATABASE_URL.
"""
import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from sqlmigrate.config import (
    LOG_FORMAT,
    MigrateConfig,
    configure_logger,
    load_config,
    parse_log_level,
    resolve_database_url,
)
from sqlmigrate.database import create_engine, driver_message
from sqlmigrate.errors import MigrateError, QueryError, TransactionError, render_error
from sqlmigrate.migrations import (
    MigrationExecutor,
    MigrationManager,
    MigrationResult,
    MigrationStatus,
)
from sqlmigrate.schema_snapshot import write_schema_snapshot

logger = logging.getLogger('sqlmigrate')

COMMANDS = ('show', 'up', 'down', 'last', 'to')


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog='sqlmigrate',
        description='Apply and roll back numbered SQL migrations.',
    )
    parser.add_argument(
        'command',
        nargs='?',
        help='show | up | down | last | to <N>',
    )
    parser.add_argument(
        'version',
        nargs='?',
        help='Target version for the "to" command',
    )
    parser.add_argument(
        '--config',
        type=Path,
        help='JSON or YAML config file',
    )
    parser.add_argument(
        '--root',
        type=Path,
        help='Project root to scan for migrations directories (default: .)',
    )
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Run the migrations, then roll everything back',
    )
    parser.add_argument(
        '--log-level',
        help='Logging level (debug, info, warning, error)',
    )
    return parser


def print_results(results: List[MigrationResult]) -> None:
    """Print one line per executed migration."""
    if not results:
        print("✓ Nothing to do")
        return

    for result in results:
        verb = 'Applied' if result.direction == 'up' else 'Rolled back'
        suffix = ' (dry run)' if result.dry_run else ''
        print(
            f"✓ {verb} v{result.number}: {result.name} "
            f"({result.execution_time_ms}ms){suffix}"
        )


def print_status(status: MigrationStatus) -> None:
    """Print current version with applied and pending migrations."""
    print(f"Current version: {status.current.number} ({status.current.name})")
    for entry in status.applied:
        applied_at = entry.applied_at.isoformat(sep=' ') if entry.applied_at else '-'
        print(f"  [x] {entry.number}-{entry.name}  {applied_at}")
    for migration in status.pending:
        print(f"  [ ] {migration.number}-{migration.name}")


async def run_command(
    config: MigrateConfig,
    command: str,
    version: Optional[int] = None,
    dry_run: bool = False
):
    """
    Run one migration command.

    Args:
        config: Loaded configuration
        command: One of COMMANDS
        version: Target version (only for 'to')
        dry_run: Roll back all changes at the end

    Returns:
        MigrationStatus for 'show', otherwise the list of MigrationResult

    Raises:
        MigrateError: On any failure
    """
    database_url = resolve_database_url(config)
    migrations = MigrationManager(config.root).discover_migrations()
    engine = create_engine(database_url)

    try:
        async with engine.connect() as connection:
            executor = MigrationExecutor(connection, migrations, dry_run=dry_run)

            if command == 'show':
                return await executor.show()

            if command == 'up':
                results = await executor.up()
            elif command == 'down':
                results = await executor.down()
            elif command == 'last':
                results = await executor.to_last()
            else:
                results = await executor.to(version)

            if not dry_run:
                await write_schema_snapshot(connection, config.schema_path)

            return results
    except (SQLAlchemyError, OSError) as e:
        # Connection-level failures (refused, auth, missing driver)
        raise QueryError(driver_message(e)) from e
    finally:
        await engine.dispose()


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    version = None
    if args.command == 'to':
        try:
            version = int(args.version)
        except (TypeError, ValueError):
            version = None

    if args.command not in COMMANDS or (args.command == 'to' and version is None):
        parser.print_usage()
        return 0

    try:
        config = load_config(args.config)
    except MigrateError as e:
        print(render_error(e), file=sys.stderr)
        return 1

    if args.root is not None:
        config.root = args.root

    try:
        log_level = parse_log_level(args.log_level or config.log_level)
    except ValueError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    logging.basicConfig(level=log_level, format=LOG_FORMAT)
    file_handler = None
    if config.log_file:
        try:
            file_handler = configure_logger(logger, config.log_file, LOG_FORMAT, log_level)
        except OSError as e:
            print(f"ERROR: cannot open log file {config.log_file}: {e}", file=sys.stderr)
            return 1

    try:
        outcome = asyncio.run(
            run_command(config, args.command, version, dry_run=args.dry_run)
        )
    except MigrateError as e:
        if isinstance(e, TransactionError) and e.completed:
            print_results(e.completed)
        logger.error(render_error(e))
        return 1
    finally:
        if file_handler is not None:
            logger.removeHandler(file_handler)
            file_handler.close()

    if isinstance(outcome, MigrationStatus):
        print_status(outcome)
    else:
        print_results(outcome)
    return 0


if __name__ == '__main__':
    sys.exit(main())
