"""Data source factory.

Maps the configured connection ``type`` to its adapter class.

Usage:
    from db_anonymiser.factory import create_data_source

    source = create_data_source(config.connection)
    await source.connect()
"""

from typing import Any

from db_anonymiser.adapters.base import DataSource
from db_anonymiser.adapters.mysql import MySQLSource
from db_anonymiser.adapters.postgres import PostgresSource
from db_anonymiser.adapters.sql import SqlAlchemySource
from db_anonymiser.adapters.sqlite import SQLiteSource
from db_anonymiser.config.models import ConnectionSettings
from db_anonymiser.errors import ConfigurationError

SOURCES: dict[str, type[SqlAlchemySource]] = {
    "mysql": MySQLSource,
    "postgres": PostgresSource,
    "sqlite": SQLiteSource,
}


def create_data_source(settings: ConnectionSettings, **engine_kwargs: Any) -> DataSource:
    """Build an unconnected data source for ``settings``.

    Args:
        settings: Validated connection block.
        **engine_kwargs: Forwarded to the SQLAlchemy engine.

    Returns:
        Adapter instance; call ``connect()`` before use.

    Raises:
        ConfigurationError: If ``settings.type`` has no adapter.
    """
    source_cls = SOURCES.get(settings.type)
    if source_cls is None:
        raise ConfigurationError(
            f"unsupported database type {settings.type!r}, must be one of: "
            f"{', '.join(SOURCES)}"
        )
    return source_cls(settings.url(), **engine_kwargs)
