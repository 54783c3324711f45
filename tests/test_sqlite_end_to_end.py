"""End-to-end export against a real SQLite database.

The database is built with the async engine, dumped with ``run_export``
and the dump is loaded back into a fresh database to prove it is valid
SQL with the expected contents.
"""

import io
import sqlite3
import threading

import pytest
from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine

from db_anonymiser.adapters.base import RowFilter
from db_anonymiser.adapters.sqlite import SQLiteSource
from db_anonymiser.config.models import DumpConfig
from db_anonymiser.errors import DataSourceConnectionError, IntrospectionError
from db_anonymiser.factory import create_data_source
from db_anonymiser.pipeline import plan_export, run_export, sync_config_tables

SCHEMA = [
    "CREATE TABLE users (id INTEGER PRIMARY KEY, email TEXT NOT NULL, notes TEXT)",
    "CREATE TABLE orders ("
    " id INTEGER PRIMARY KEY,"
    " user_id INTEGER REFERENCES users(id),"
    " created_at TEXT NOT NULL)",
    "CREATE TABLE audit_log (id INTEGER PRIMARY KEY, message TEXT)",
]

DATA = [
    "INSERT INTO users VALUES (1, 'a@x.com', 'vip'), (2, 'a@x.com', NULL), (3, 'b@x.com', 'it''s')",
    "INSERT INTO orders VALUES"
    " (10, 1, '2023-06-01 09:00:00'),"
    " (11, 2, '2024-02-01 09:00:00'),"
    " (12, 3, '2024-03-01 09:00:00'),"
    " (13, NULL, '2024-04-01 09:00:00')",
    "INSERT INTO audit_log VALUES (1, 'login'), (2, 'logout')",
]


@pytest.fixture
async def shop_db(sqlite_settings):
    """Populated SQLite file; yields its connection settings."""
    engine = create_async_engine(sqlite_settings.url())
    async with engine.begin() as conn:
        for statement in SCHEMA + DATA:
            await conn.execute(text(statement))
    await engine.dispose()
    yield sqlite_settings


def config_for(settings, configuration=None, **kwargs) -> DumpConfig:
    return DumpConfig(connection=settings, configuration=configuration or {}, **kwargs)


def load_dump(sql: str) -> sqlite3.Connection:
    conn = sqlite3.connect(":memory:")
    conn.executescript(sql)
    return conn


class TestSQLiteSource:
    async def test_connect_missing_directory_fails(self, tmp_path) -> None:
        source = SQLiteSource(f"sqlite+aiosqlite:///{tmp_path}/missing/dir/x.db")
        with pytest.raises(DataSourceConnectionError, match="does not exist"):
            await source.connect()
        with pytest.raises(DataSourceConnectionError, match="not connected"):
            source.engine

    @pytest.mark.filterwarnings("error::pytest.PytestUnhandledThreadExceptionWarning")
    async def test_missing_directory_starts_no_driver_thread(self, tmp_path) -> None:
        """Rejecting the path up front leaves no worker thread behind."""
        before = threading.active_count()
        source = SQLiteSource(f"sqlite+aiosqlite:///{tmp_path}/gone/x.db")
        with pytest.raises(DataSourceConnectionError):
            await source.connect()
        assert threading.active_count() == before

    async def test_use_before_connect_fails(self, sqlite_settings) -> None:
        source = create_data_source(sqlite_settings)
        with pytest.raises(DataSourceConnectionError):
            await source.list_tables()

    async def test_introspection(self, shop_db) -> None:
        source = create_data_source(shop_db)
        await source.connect()
        try:
            assert await source.list_tables() == ["audit_log", "orders", "users"]
            assert await source.row_count("orders") == 4

            columns = await source.columns("users")
            assert [c.name for c in columns] == ["id", "email", "notes"]
            assert columns[0].is_primary_key
            assert not columns[1].is_nullable

            edges = await source.foreign_keys()
            assert [(e.table, e.column, e.referenced_table, e.referenced_column) for e in edges] == [
                ("orders", "user_id", "users", "id")
            ]

            schema = await source.table_schema_text("users")
            assert schema.startswith("CREATE TABLE users")
        finally:
            await source.close()

    async def test_missing_table_schema(self, shop_db) -> None:
        source = create_data_source(shop_db)
        await source.connect()
        try:
            with pytest.raises(IntrospectionError):
                await source.table_schema_text("nope")
        finally:
            await source.close()

    async def test_stream_rows_in_batches(self, shop_db) -> None:
        source = create_data_source(shop_db)
        batches: list[list[dict]] = []

        async def on_batch(rows: list[dict]) -> None:
            batches.append(rows)

        await source.connect()
        try:
            await source.stream_rows("orders", RowFilter(), 3, on_batch)
        finally:
            await source.close()

        assert [len(b) for b in batches] == [3, 1]
        assert batches[0][0] == {"id": 10, "user_id": 1, "created_at": "2023-06-01 09:00:00"}

    async def test_quoting(self, sqlite_settings) -> None:
        source = create_data_source(sqlite_settings)
        assert source.quote_identifier("users") == '"users"'
        assert source.quote_identifier('odd"name') == '"odd""name"'
        assert source.dialect_name() == "sqlite"


class TestExport:
    async def test_full_export_round_trip(self, shop_db) -> None:
        output = io.StringIO()
        stats = await run_export(config_for(shop_db), output, seed=1)

        assert stats.tables_exported == 3
        assert stats.rows_exported == 3 + 4 + 2

        sql = output.getvalue()
        assert sql.index("-- Table: users") < sql.index("-- Table: orders")
        conn = load_dump(sql)
        assert conn.execute("SELECT notes FROM users WHERE id = 3").fetchone() == ("it's",)
        assert conn.execute("SELECT COUNT(*) FROM orders").fetchone() == (4,)

    async def test_anonymised_minimised_export(self, shop_db) -> None:
        config = config_for(
            shop_db,
            {
                "users": {"columns": {"email": "{{faker.email}}", "notes": None}},
                "orders": {
                    "retain": {"column_name": "created_at", "after_date": "2024-01-01"}
                },
                "audit_log": {"truncate": True},
                "ghost_table": {"truncate": True},
            },
            foreign_key_integrity=True,
        )
        output = io.StringIO()
        stats = await run_export(config, output, batch_size=2, seed=7)

        assert stats.tables_truncated == 1
        conn = load_dump(output.getvalue())

        emails = [r[0] for r in conn.execute("SELECT email FROM users ORDER BY id")]
        assert "a@x.com" not in emails and "b@x.com" not in emails
        assert emails[0] == emails[1] != emails[2]
        assert conn.execute("SELECT COUNT(*) FROM users WHERE notes IS NOT NULL").fetchone() == (0,)

        assert [r[0] for r in conn.execute("SELECT id FROM orders ORDER BY id")] == [11, 12, 13]
        assert conn.execute("SELECT COUNT(*) FROM audit_log").fetchone() == (0,)

    async def test_seeded_exports_are_identical(self, shop_db) -> None:
        config = config_for(shop_db, {"users": {"columns": {"email": "{{faker.email}}"}}})
        first, second = io.StringIO(), io.StringIO()
        await run_export(config, first, seed=3)
        await run_export(config, second, seed=3)
        assert first.getvalue() == second.getvalue()

    async def test_plan_export(self, shop_db) -> None:
        config = config_for(
            shop_db,
            {"users": {"retain": 2, "columns": {"email": "{{faker.email}}"}}, "audit_log": {"truncate": True}},
            foreign_key_integrity=True,
        )
        plans = {p.name: p for p in await plan_export(config)}

        assert list(plans) == ["audit_log", "users", "orders"]
        assert plans["users"].action == "RETAIN 2 rows"
        assert plans["users"].anonymised_columns == ["email"]
        assert plans["audit_log"].action == "TRUNCATE"
        assert plans["orders"].action == "FULL EXPORT"
        assert plans["orders"].row_count == 4
        assert plans["orders"].enforce_fk_integrity

    async def test_sync_adds_missing_tables(self, shop_db) -> None:
        config = config_for(shop_db, {"users": {"retain": 5}})
        added = await sync_config_tables(config, truncate=True)

        assert added == ["audit_log", "orders"]
        assert config.table_rules("orders").truncate
        assert config.table_rules("users").retain.count == 5
        assert await sync_config_tables(config) == []
