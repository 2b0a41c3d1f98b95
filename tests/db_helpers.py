"""Schema inspection helpers for integration tests."""

from sqlalchemy import inspect


async def table_names(connection):
    """Return table names visible on the connection."""
    async with connection.begin():
        return await connection.run_sync(
            lambda sync_conn: inspect(sync_conn).get_table_names()
        )


async def column_names(connection, table):
    """Return column names of a table."""
    async with connection.begin():
        columns = await connection.run_sync(
            lambda sync_conn: inspect(sync_conn).get_columns(table)
        )
    return [column["name"] for column in columns]
