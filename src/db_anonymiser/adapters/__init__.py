"""Data source adapters: protocol and per-dialect implementations.

Usage:
    >>> from db_anonymiser.adapters import DataSource, RowFilter, SQLiteSource
"""

from db_anonymiser.adapters.base import BatchCallback, DataSource, Row, RowFilter
from db_anonymiser.adapters.mysql import MySQLSource
from db_anonymiser.adapters.postgres import PostgresSource
from db_anonymiser.adapters.sql import SqlAlchemySource, create_async_engine_pooled
from db_anonymiser.adapters.sqlite import SQLiteSource

__all__ = [
    "BatchCallback",
    "DataSource",
    "Row",
    "RowFilter",
    "MySQLSource",
    "PostgresSource",
    "SqlAlchemySource",
    "SQLiteSource",
    "create_async_engine_pooled",
]
