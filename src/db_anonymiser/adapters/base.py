"""Data source protocol definition.

Defines the ``DataSource`` Protocol that every dialect adapter must
implement, plus ``RowFilter``, the query-level constraints a retention
policy pushes down to the source.  All I/O methods are ``async def``.

Usage:
    from db_anonymiser.adapters.base import DataSource, RowFilter

    async def dump_users(source: DataSource) -> None:
        await source.connect()

        async def on_batch(rows: list[dict]) -> None:
            print(len(rows))

        await source.stream_rows("users", RowFilter(limit=100), 1000, on_batch)
        await source.close()
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from db_anonymiser.schema.models import ColumnDescriptor, ForeignKeyEdge

Row = dict[str, Any]
BatchCallback = Callable[[list[Row]], Awaitable[None]]


@dataclass(frozen=True)
class RowFilter:
    """Constraints applied by the source while streaming rows.

    ``limit`` caps the number of rows in source order; ``date_column`` and
    ``after`` keep rows where the column is strictly greater than ``after``.
    """

    limit: int | None = None
    date_column: str | None = None
    after: datetime | None = None

    @property
    def is_empty(self) -> bool:
        return self.limit is None and self.date_column is None


class DataSource(Protocol):
    """Database interface consumed by the export pipeline.

    One implementation exists per supported dialect.  Metadata methods
    raise ``IntrospectionError``; ``stream_rows`` raises ``StreamingError``
    for fetch failures and lets errors from ``on_batch`` propagate as-is.
    """

    async def connect(self) -> None:
        """Open the connection pool and check the database is reachable.

        Raises:
            DataSourceConnectionError: If the database cannot be reached.
        """
        ...

    async def close(self) -> None:
        """Release every connection held by the source."""
        ...

    async def list_tables(self) -> list[str]:
        """Names of all user tables."""
        ...

    async def table_schema_text(self, table: str) -> str:
        """A loadable ``CREATE TABLE`` statement for ``table``."""
        ...

    async def columns(self, table: str) -> list["ColumnDescriptor"]:
        ...

    async def foreign_keys(self) -> list["ForeignKeyEdge"]:
        """Every column-level foreign key in the database."""
        ...

    async def row_count(self, table: str) -> int:
        ...

    async def stream_rows(
        self,
        table: str,
        row_filter: RowFilter,
        batch_size: int,
        on_batch: BatchCallback,
    ) -> None:
        """Fetch rows of ``table`` and hand them to ``on_batch`` in batches.

        Args:
            table: Table name.
            row_filter: Limit and date constraints, applied in the query.
            batch_size: Maximum rows per ``on_batch`` call.
            on_batch: Awaited once per non-empty batch, in source order.

        Raises:
            StreamingError: If the query or a fetch fails.
        """
        ...

    def quote_identifier(self, name: str) -> str:
        """Quote a table or column name for this dialect."""
        ...

    def dialect_name(self) -> str:
        """``"mysql"``, ``"postgres"`` or ``"sqlite"``."""
        ...
