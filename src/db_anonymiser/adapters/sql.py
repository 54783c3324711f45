"""Shared SQLAlchemy implementation of the ``DataSource`` protocol.

``SqlAlchemySource`` does everything that is the same across dialects:
engine lifecycle, inspector-based introspection, row counts and batched
streaming.  Dialect subclasses only supply the engine, identifier quoting
and the ``CREATE TABLE`` text.
"""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any, TypeVar

from sqlalchemy import column as sa_column
from sqlalchemy import func, inspect, literal_column, select
from sqlalchemy import table as sa_table
from sqlalchemy.engine import URL, Dialect, Inspector
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.sql import Select

from db_anonymiser.adapters.base import BatchCallback, RowFilter
from db_anonymiser.errors import (
    DataSourceConnectionError,
    IntrospectionError,
    StreamingError,
)
from db_anonymiser.schema.models import ColumnDescriptor, ForeignKeyEdge

logger = logging.getLogger(__name__)

T = TypeVar("T")


def create_async_engine_pooled(url: URL | str, **kwargs: Any) -> AsyncEngine:
    """Create an async SQLAlchemy engine with connection pooling.

    Default pool settings:

    - ``pool_size=5``: an export uses one connection at a time, plus spares
      for introspection.
    - ``max_overflow=10``: Allow burst connections.
    - ``pool_pre_ping=True``: Validate connections before checkout.
    - ``pool_recycle=300``: Recycle connections every 5 minutes.

    Args:
        url: Connection URL with an async driver
            (``mysql+aiomysql://`` or ``postgresql+asyncpg://``).
        **kwargs: Forwarded to ``create_async_engine``; override defaults.

    Returns:
        Configured ``AsyncEngine``.
    """
    defaults: dict[str, Any] = {
        "pool_size": 5,
        "max_overflow": 10,
        "pool_pre_ping": True,
        "pool_recycle": 300,
        "echo": False,
    }
    merged = {**defaults, **kwargs}

    return create_async_engine(url, **merged)


class SqlAlchemySource:
    """Base class for SQLAlchemy-backed data sources.

    Subclasses set ``dialect`` and ``sa_dialect`` and implement
    ``table_schema_text``.

    Args:
        url: SQLAlchemy async connection URL.
        **engine_kwargs: Forwarded to the engine factory.
    """

    dialect: str = ""
    sa_dialect: Callable[[], Dialect]

    def __init__(self, url: URL | str, **engine_kwargs: Any) -> None:
        self._url = url
        self._engine_kwargs = engine_kwargs
        self._engine: AsyncEngine | None = None
        self._sa_dialect = self.sa_dialect()
        self._preparer = self._sa_dialect.identifier_preparer

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _create_engine(self) -> AsyncEngine:
        return create_async_engine_pooled(self._url, **self._engine_kwargs)

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise DataSourceConnectionError(
                f"{self.dialect} source is not connected; call connect() first"
            )
        return self._engine

    async def connect(self) -> None:
        """Create the engine and run ``SELECT 1`` to prove connectivity.

        Calling ``connect()`` on a connected source is a no-op.
        """
        if self._engine is not None:
            return

        engine = self._create_engine()
        try:
            async with engine.connect() as conn:
                await conn.execute(select(1))
        except (SQLAlchemyError, OSError) as e:
            await engine.dispose()
            raise DataSourceConnectionError(
                f"failed to connect to {self.dialect} database: {e}"
            ) from e

        self._engine = engine
        logger.info("Connected to %s database", self.dialect)

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    async def _inspect(self, fn: Callable[[Inspector], T], what: str) -> T:
        """Run ``fn`` against a sync ``Inspector`` on a pooled connection."""
        try:
            async with self.engine.connect() as conn:
                return await conn.run_sync(lambda sync_conn: fn(inspect(sync_conn)))
        except SQLAlchemyError as e:
            raise IntrospectionError(f"failed to fetch {what}: {e}") from e

    async def list_tables(self) -> list[str]:
        names = await self._inspect(lambda insp: insp.get_table_names(), "table list")
        return sorted(names)

    def _type_text(self, column_type: Any) -> str:
        return str(column_type)

    async def columns(self, table: str) -> list[ColumnDescriptor]:
        def read(insp: Inspector) -> list[ColumnDescriptor]:
            pk = set(insp.get_pk_constraint(table).get("constrained_columns") or [])
            result = []
            for col in insp.get_columns(table):
                default = col.get("default")
                result.append(
                    ColumnDescriptor(
                        name=col["name"],
                        data_type=self._type_text(col["type"]),
                        is_nullable=bool(col.get("nullable", True)),
                        default=None if default is None else str(default),
                        is_primary_key=col["name"] in pk,
                    )
                )
            return result

        return await self._inspect(read, f"columns of {table}")

    async def foreign_keys(self) -> list[ForeignKeyEdge]:
        def read(insp: Inspector) -> list[ForeignKeyEdge]:
            edges = []
            for name in insp.get_table_names():
                for fk in insp.get_foreign_keys(name):
                    referred_table = fk["referred_table"]
                    # Composite keys become one edge per column pair
                    for col, ref_col in zip(fk["constrained_columns"], fk["referred_columns"]):
                        edges.append(
                            ForeignKeyEdge(
                                table=name,
                                column=col,
                                referenced_table=referred_table,
                                referenced_column=ref_col,
                            )
                        )
            return edges

        return await self._inspect(read, "foreign keys")

    async def row_count(self, table: str) -> int:
        stmt = select(func.count()).select_from(sa_table(table))
        try:
            async with self.engine.connect() as conn:
                result = await conn.execute(stmt)
                return int(result.scalar_one())
        except SQLAlchemyError as e:
            raise IntrospectionError(f"failed to count rows of {table}: {e}") from e

    async def table_schema_text(self, table: str) -> str:
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    def _threshold_value(self, after: datetime) -> Any:
        """Bind value for a date threshold; text works for MySQL and SQLite."""
        return after.strftime("%Y-%m-%d %H:%M:%S")

    def _select_statement(self, table: str, row_filter: RowFilter) -> Select:
        stmt = select(literal_column("*")).select_from(sa_table(table))
        if row_filter.date_column is not None and row_filter.after is not None:
            stmt = stmt.where(
                sa_column(row_filter.date_column) > self._threshold_value(row_filter.after)
            )
        if row_filter.limit is not None:
            stmt = stmt.limit(row_filter.limit)
        return stmt

    async def stream_rows(
        self,
        table: str,
        row_filter: RowFilter,
        batch_size: int,
        on_batch: BatchCallback,
    ) -> None:
        """Stream ``table`` with a server-side cursor, ``batch_size`` rows at a time."""
        stmt = self._select_statement(table, row_filter)
        try:
            async with self.engine.connect() as conn:
                result = await conn.stream(stmt)
                async for partition in result.mappings().partitions(batch_size):
                    await on_batch([dict(row) for row in partition])
        except SQLAlchemyError as e:
            raise StreamingError(f"failed to stream rows from {table}: {e}") from e

    # ------------------------------------------------------------------
    # Dialect details
    # ------------------------------------------------------------------

    def quote_identifier(self, name: str) -> str:
        return self._preparer.quote_identifier(name)

    def dialect_name(self) -> str:
        return self.dialect
