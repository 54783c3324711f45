"""Shared fixtures: an in-memory ``DataSource`` and config builders."""

from typing import Any

import pytest

from db_anonymiser.adapters.base import BatchCallback, RowFilter
from db_anonymiser.config.models import ConnectionSettings, DumpConfig
from db_anonymiser.errors import StreamingError
from db_anonymiser.schema.models import ColumnDescriptor, ForeignKeyEdge


class FakeSource:
    """In-memory data source honouring ``RowFilter`` like a real query would."""

    def __init__(
        self,
        tables: dict[str, list[dict[str, Any]]],
        edges: list[ForeignKeyEdge] | None = None,
        dialect: str = "mysql",
        fail_on: str | None = None,
    ) -> None:
        self.tables = tables
        self.edges = edges or []
        self.dialect = dialect
        self.fail_on = fail_on
        self.connected = False
        self.closed = False
        self.stream_calls: list[tuple[str, RowFilter, int]] = []

    async def connect(self) -> None:
        self.connected = True

    async def close(self) -> None:
        self.closed = True

    async def list_tables(self) -> list[str]:
        return list(self.tables)

    async def table_schema_text(self, table: str) -> str:
        return f"CREATE TABLE {self.quote_identifier(table)} (id INT)"

    async def columns(self, table: str) -> list[ColumnDescriptor]:
        rows = self.tables[table]
        names = list(rows[0]) if rows else ["id"]
        return [ColumnDescriptor(name=n, data_type="TEXT", is_primary_key=n == "id") for n in names]

    async def foreign_keys(self) -> list[ForeignKeyEdge]:
        return list(self.edges)

    async def row_count(self, table: str) -> int:
        return len(self.tables[table])

    async def stream_rows(
        self, table: str, row_filter: RowFilter, batch_size: int, on_batch: BatchCallback
    ) -> None:
        self.stream_calls.append((table, row_filter, batch_size))
        if table == self.fail_on:
            raise StreamingError(f"failed to stream rows from {table}: connection lost")

        rows = self.tables[table]
        if row_filter.date_column is not None:
            rows = [r for r in rows if r[row_filter.date_column] > row_filter.after]
        if row_filter.limit is not None:
            rows = rows[: row_filter.limit]
        for start in range(0, len(rows), batch_size):
            await on_batch([dict(r) for r in rows[start:start + batch_size]])

    def quote_identifier(self, name: str) -> str:
        return '"' + name.replace('"', '""') + '"'

    def dialect_name(self) -> str:
        return self.dialect


def make_config(configuration: dict | None = None, **kwargs: Any) -> DumpConfig:
    """Build a ``DumpConfig`` from file-shaped data with a dummy SQLite connection."""
    return DumpConfig.model_validate(
        {
            "connection": {"type": "sqlite", "file": ":memory:"},
            "configuration": configuration or {},
            **kwargs,
        }
    )


@pytest.fixture
def users_orders_source() -> FakeSource:
    """``users`` (3 rows) and ``orders`` referencing ``users.id``."""
    return FakeSource(
        tables={
            "orders": [
                {"id": 10, "user_id": 1},
                {"id": 11, "user_id": 2},
                {"id": 12, "user_id": 3},
                {"id": 13, "user_id": None},
            ],
            "users": [
                {"id": 1, "email": "a@x.com"},
                {"id": 2, "email": "a@x.com"},
                {"id": 3, "email": "b@x.com"},
            ],
        },
        edges=[
            ForeignKeyEdge(
                table="orders", column="user_id",
                referenced_table="users", referenced_column="id",
            )
        ],
    )


@pytest.fixture
def sqlite_settings(tmp_path) -> ConnectionSettings:
    return ConnectionSettings(type="sqlite", file=str(tmp_path / "shop.db"))

