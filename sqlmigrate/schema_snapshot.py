"""
Schema snapshot writer.

After a successful migration command the current database schema is
written to a file (schema.sql by default) so schema changes show up in
code review next to the migration that caused them.
"""

import logging
from pathlib import Path

from sqlalchemy import MetaData
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection
from sqlalchemy.schema import CreateIndex, CreateTable

from sqlmigrate.database import begin, driver_message
from sqlmigrate.errors import SchemaError

logger = logging.getLogger(__name__)


def describe_schema(sync_connection) -> str:
    """
    Reflect the database and render it as DDL.

    Tables are emitted in dependency order, each followed by its indexes.
    Must be called through AsyncConnection.run_sync().
    """
    metadata = MetaData()
    metadata.reflect(bind=sync_connection)
    dialect = sync_connection.dialect

    chunks = []
    for table in metadata.sorted_tables:
        chunks.append(str(CreateTable(table).compile(dialect=dialect)).strip() + ';')
        for index in sorted(table.indexes, key=lambda i: i.name or ''):
            chunks.append(str(CreateIndex(index).compile(dialect=dialect)).strip() + ';')

    return '\n\n'.join(chunks) + '\n'


async def write_schema_snapshot(connection: AsyncConnection, path: Path) -> Path:
    """
    Write the current schema of the connected database to `path`.

    The file is overwritten on every call.

    Args:
        connection: Open connection to the migrated database
        path: Destination file

    Returns:
        The path written

    Raises:
        SchemaError: If the schema can't be queried or the file can't
            be written
    """
    path = Path(path)

    try:
        async with begin(connection):
            ddl = await connection.run_sync(describe_schema)
    except SQLAlchemyError as e:
        raise SchemaError(driver_message(e)) from e

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(ddl, encoding='utf-8')
    except OSError as e:
        raise SchemaError(f"cannot write {path}: {e.strerror or e}") from e

    logger.info('Wrote schema snapshot to %s', path)
    return path
