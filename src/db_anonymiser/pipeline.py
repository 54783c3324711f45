"""High-level export operations used by the CLI.

- ``run_export``: write an anonymised, minimised dump.
- ``plan_export``: dry run, describe what an export would do per table.
- ``sync_config_tables``: add database tables missing from the config.

Each accepts an optional ``source`` so tests (or callers managing their
own connections) can supply a data source; otherwise one is built from
``config.connection`` and closed afterwards.

Usage:
    config = load_dump_config("dump.yaml")
    with open("dump.sql", "w") as out:
        stats = await run_export(config, out, seed=42)
"""

import logging
from typing import TextIO

from pydantic import BaseModel, Field

from db_anonymiser.adapters.base import DataSource
from db_anonymiser.anonymise.anonymiser import Anonymiser
from db_anonymiser.anonymise.generators import FakeValueGenerator
from db_anonymiser.config.models import DumpConfig, TableRules
from db_anonymiser.dump.retention import plan_retention
from db_anonymiser.dump.writer import DEFAULT_BATCH_SIZE, DumpStats, DumpWriter
from db_anonymiser.factory import create_data_source
from db_anonymiser.schema.analyser import SchemaAnalyser

logger = logging.getLogger(__name__)


class TablePlan(BaseModel):
    """Dry-run description of one table.

    Example:
        >>> TablePlan(name="users", row_count=10, action="FULL EXPORT").action
        'FULL EXPORT'
    """

    name: str
    row_count: int
    action: str
    anonymised_columns: list[str] = Field(default_factory=list)
    enforce_fk_integrity: bool = False
    rule_problems: list[str] = Field(default_factory=list)


async def run_export(
    config: DumpConfig,
    output: TextIO,
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
    seed: int | None = None,
    locale: str | None = None,
    source: DataSource | None = None,
) -> DumpStats:
    """Export the configured database to ``output``.

    Unknown generator names are reported as ``ValidationWarning`` before
    any data is touched.

    Args:
        config: Loaded configuration.
        output: Writable text stream for the dump.
        batch_size: Rows per ``INSERT``.
        seed: Seed for reproducible fake values.
        locale: Faker locale.
        source: Data source to use instead of one built from the config.

    Returns:
        Run statistics.

    Raises:
        DumpError: Any connection, introspection, streaming or write error.
    """
    anonymiser = Anonymiser(config, FakeValueGenerator(locale=locale, seed=seed))
    anonymiser.validate_rules()

    owns_source = source is None
    if source is None:
        source = create_data_source(config.connection)

    await source.connect()
    try:
        tables, edges = await SchemaAnalyser(source).analyse()
        writer = DumpWriter(source, config, anonymiser, output, batch_size=batch_size)
        return await writer.write(tables, edges)
    finally:
        if owns_source:
            await source.close()


async def plan_export(
    config: DumpConfig, *, source: DataSource | None = None
) -> list[TablePlan]:
    """Describe, in export order, what ``run_export`` would do per table.

    Rules are validated first, exactly as ``run_export`` does, so unknown
    generator names are reported as ``ValidationWarning`` and listed in
    each affected plan's ``rule_problems``.
    """
    anonymiser = Anonymiser(config)
    anonymiser.validate_rules()

    owns_source = source is None
    if source is None:
        source = create_data_source(config.connection)

    await source.connect()
    try:
        tables, _ = await SchemaAnalyser(source).analyse()
    finally:
        if owns_source:
            await source.close()

    plans = []
    for table in tables:
        rules = config.table_rules(table.name)
        plans.append(
            TablePlan(
                name=table.name,
                row_count=table.row_count,
                action=plan_retention(rules).describe(),
                anonymised_columns=list(rules.columns) if rules is not None else [],
                enforce_fk_integrity=config.should_enforce_fk_integrity(table.name),
                rule_problems=anonymiser.rule_problems(table.name),
            )
        )
    return plans


async def sync_config_tables(
    config: DumpConfig,
    *,
    truncate: bool = False,
    source: DataSource | None = None,
) -> list[str]:
    """Add every database table that has no configuration entry.

    Existing entries are left untouched.  The caller saves the config.

    Args:
        config: Configuration to update in place.
        truncate: Give new entries ``truncate: true``.
        source: Data source to use instead of one built from the config.

    Returns:
        Names of the tables that were added.
    """
    owns_source = source is None
    if source is None:
        source = create_data_source(config.connection)

    await source.connect()
    try:
        names = await source.list_tables()
    finally:
        if owns_source:
            await source.close()

    added = [name for name in names if config.add_table(name, TableRules(truncate=truncate))]
    logger.info("Added %d tables to configuration", len(added))
    return added
