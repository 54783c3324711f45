"""SQLite data source (``aiosqlite`` driver)."""

from pathlib import Path

from sqlalchemy import text
from sqlalchemy.dialects import sqlite
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from db_anonymiser.adapters.sql import SqlAlchemySource
from db_anonymiser.errors import DataSourceConnectionError, IntrospectionError


class SQLiteSource(SqlAlchemySource):
    """SQLite implementation of the ``DataSource`` protocol.

    The ``CREATE TABLE`` text is the statement stored in ``sqlite_master``.
    SQLite does not pool, so the engine is created with driver defaults.

    Example:
        source = SQLiteSource("sqlite+aiosqlite:///shop.db")
        await source.connect()
    """

    dialect = "sqlite"
    sa_dialect = sqlite.dialect

    def _create_engine(self) -> AsyncEngine:
        return create_async_engine(self._url, **self._engine_kwargs)

    async def connect(self) -> None:
        """Check the database directory exists, then connect.

        A failed ``aiosqlite`` open leaves its worker thread reporting to
        the event loop after the caller has moved on, so an unusable path
        is rejected before any driver connection is attempted.
        """
        database = make_url(self._url).database
        if database and database != ":memory:" and not database.startswith("file:"):
            directory = Path(database).expanduser().parent
            if not directory.is_dir():
                raise DataSourceConnectionError(
                    f"failed to connect to sqlite database: directory {directory} does not exist"
                )
        await super().connect()

    async def table_schema_text(self, table: str) -> str:
        query = text("SELECT sql FROM sqlite_master WHERE type = 'table' AND name = :name")
        try:
            async with self.engine.connect() as conn:
                result = await conn.execute(query, {"name": table})
                sql = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise IntrospectionError(f"failed to get CREATE TABLE for {table}: {e}") from e

        if sql is None:
            raise IntrospectionError(f"table {table} not found")
        return sql
