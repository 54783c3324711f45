"""Streaming, batched SQL dump writer.

Tables are written in the order given (parents first).  For each table the
writer emits a comment, a ``DROP TABLE IF EXISTS``, the original
``CREATE TABLE`` and then one multi-row ``INSERT`` per streamed batch.

Foreign-key integrity: when enforcement is on for a table, each row's
foreign-key values are checked against the values already exported for
the referenced column.  Only parents exported earlier in the run are
checked; self-references are never filtered.  Referenced column values
are recorded batch by batch, before anonymisation, because child rows
hold the original keys.  ``CountLimit`` is applied by the source query,
so a limited child table may end up with fewer rows than the limit once
orphans are dropped.
"""

import logging
import time
from collections.abc import Iterable
from typing import Any, TextIO

from pydantic import BaseModel

from db_anonymiser import __version__
from db_anonymiser.adapters.base import DataSource, Row
from db_anonymiser.anonymise.anonymiser import Anonymiser
from db_anonymiser.config.models import DumpConfig
from db_anonymiser.dump.dialects import drop_table_statement, footer_lines, header_lines
from db_anonymiser.dump.retention import plan_retention
from db_anonymiser.dump.serialise import format_row
from db_anonymiser.dump.tracker import ForeignKeyTracker
from db_anonymiser.errors import OutputWriteError
from db_anonymiser.schema.analyser import foreign_key_map
from db_anonymiser.schema.models import ForeignKeyEdge, TableDescriptor

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 1000


class DumpStats(BaseModel):
    """Counters for one export run.

    Example:
        >>> stats = DumpStats(tables_exported=3, rows_exported=120)
        >>> stats.tables_truncated
        0
    """

    tables_exported: int = 0   # includes truncated tables
    tables_truncated: int = 0
    rows_exported: int = 0
    rows_skipped: int = 0      # dropped by foreign-key integrity checks
    duration_seconds: float = 0.0


class DumpWriter:
    """Writes a dump of the given tables to a text stream.

    Args:
        source: Connected data source.
        config: Export configuration (rules, integrity settings).
        anonymiser: Row transformer for the run.
        output: Writable text stream.
        batch_size: Rows per ``INSERT``; non-positive values mean
            ``DEFAULT_BATCH_SIZE``.
        tracker: Foreign-key tracker; a fresh one if omitted.
    """

    def __init__(
        self,
        source: DataSource,
        config: DumpConfig,
        anonymiser: Anonymiser,
        output: TextIO,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        tracker: ForeignKeyTracker | None = None,
    ) -> None:
        self._source = source
        self._config = config
        self._anonymiser = anonymiser
        self._output = output
        self._batch_size = batch_size if batch_size > 0 else DEFAULT_BATCH_SIZE
        self._tracker = tracker if tracker is not None else ForeignKeyTracker()
        self._stats = DumpStats()
        self._dialect = source.dialect_name()

    @property
    def batch_size(self) -> int:
        return self._batch_size

    @property
    def stats(self) -> DumpStats:
        return self._stats

    @property
    def tracker(self) -> ForeignKeyTracker:
        return self._tracker

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def _write(self, text: str) -> None:
        try:
            self._output.write(text)
        except (OSError, ValueError) as e:
            raise OutputWriteError(f"failed to write dump output: {e}") from e

    def _write_lines(self, lines: Iterable[str]) -> None:
        self._write("".join(f"{line}\n" for line in lines))

    def write_header(self) -> None:
        self._write_lines(header_lines(self._dialect, __version__))

    def write_footer(self) -> None:
        self._write_lines(footer_lines(self._dialect))

    def write_table_structure(self, table: TableDescriptor) -> None:
        schema_text = table.schema_text.rstrip()
        if not schema_text.endswith(";"):
            schema_text += ";"
        quoted = self._source.quote_identifier(table.name)
        self._write_lines(
            [
                f"-- Table: {table.name}",
                drop_table_statement(self._dialect, quoted),
                schema_text,
                "",
            ]
        )

    def write_insert(self, table: str, rows: list[Row]) -> None:
        """One multi-row ``INSERT``; an empty batch writes nothing."""
        if not rows:
            return
        columns = list(rows[0].keys())
        quoted_columns = ", ".join(self._source.quote_identifier(c) for c in columns)
        values = ",\n".join(format_row([row.get(c) for c in columns]) for row in rows)
        self._write(
            f"INSERT INTO {self._source.quote_identifier(table)} ({quoted_columns}) VALUES\n"
            f"{values};\n"
        )

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def _tracked_columns(self, edges: list[ForeignKeyEdge]) -> dict[str, set[str]]:
        """Referenced columns some enforcing child table will check."""
        tracked: dict[str, set[str]] = {}
        for edge in edges:
            if edge.is_self_reference:
                continue
            if self._config.should_enforce_fk_integrity(edge.table):
                tracked.setdefault(edge.referenced_table, set()).add(edge.referenced_column)
        return tracked

    async def write(
        self, tables: list[TableDescriptor], edges: list[ForeignKeyEdge]
    ) -> DumpStats:
        """Write the complete dump.

        Args:
            tables: Tables in dependency order.
            edges: Every foreign key of the database.

        Returns:
            Run statistics.

        Raises:
            StreamingError: If the source fails mid-table.
            OutputWriteError: If the output stream rejects a write.
        """
        started = time.monotonic()
        fk_map = foreign_key_map(edges)
        tracked = self._tracked_columns(edges)
        exported: set[str] = set()

        self.write_header()
        for table in tables:
            await self._export_table(table, fk_map.get(table.name, []), tracked, exported)
            exported.add(table.name)
        self.write_footer()

        self._stats.duration_seconds = time.monotonic() - started
        logger.info(
            "Dump complete: %d tables (%d truncated), %d rows",
            self._stats.tables_exported,
            self._stats.tables_truncated,
            self._stats.rows_exported,
        )
        return self._stats

    async def _export_table(
        self,
        table: TableDescriptor,
        table_edges: list[ForeignKeyEdge],
        tracked: dict[str, set[str]],
        exported: set[str],
    ) -> None:
        plan = plan_retention(self._config.table_rules(table.name))
        record_columns = sorted(tracked.get(table.name, ()))
        for column in record_columns:
            self._tracker.track(table.name, column)

        logger.info("Exporting %s: %s", table.name, plan.describe())
        self.write_table_structure(table)
        self._stats.tables_exported += 1

        if plan.skip_data:
            self._stats.tables_truncated += 1
            return

        checks: list[tuple[str, str, str]] = []
        if self._config.should_enforce_fk_integrity(table.name):
            checks = [
                (e.column, e.referenced_table, e.referenced_column)
                for e in table_edges
                if not e.is_self_reference and e.referenced_table in exported
            ]

        async def on_batch(rows: list[Row]) -> None:
            kept = [row for row in rows if self._references_exported(row, checks)]
            skipped = len(rows) - len(kept)
            if skipped:
                logger.debug("%s: skipped %d rows with unexported parents", table.name, skipped)
                self._stats.rows_skipped += skipped

            for column in record_columns:
                self._tracker.record_many(table.name, column, [row.get(column) for row in kept])

            self.write_insert(table.name, [self._anonymiser.apply(table.name, row) for row in kept])
            self._stats.rows_exported += len(kept)

        await self._source.stream_rows(table.name, plan.row_filter, self._batch_size, on_batch)
        self._write("\n")

    def _references_exported(self, row: dict[str, Any], checks: list[tuple[str, str, str]]) -> bool:
        return all(
            self._tracker.contains(ref_table, ref_column, row.get(column))
            for column, ref_table, ref_column in checks
        )
