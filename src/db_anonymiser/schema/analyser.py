"""Table metadata collection and foreign-key dependency ordering.

``SchemaAnalyser`` asks a data source for its tables and foreign keys and
orders the tables so every referenced (parent) table is exported before
the tables that depend on it.

Usage:
    analyser = SchemaAnalyser(source)
    tables = await analyser.list_tables()
    edges = await analyser.foreign_keys()
    ordered = analyser.order_by_dependency(tables, edges)
"""

import heapq
import logging
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING

from db_anonymiser.schema.models import ForeignKeyEdge, TableDescriptor

if TYPE_CHECKING:
    from db_anonymiser.adapters.base import DataSource

logger = logging.getLogger(__name__)


def sort_by_dependency(tables: Sequence[str], edges: Iterable[ForeignKeyEdge]) -> list[str]:
    """Order table names so referenced tables come before dependent tables.

    Kahn's algorithm over the "depends on" graph.  Self-references and
    edges to tables outside ``tables`` are ignored.  When several tables
    are ready at once the one earliest in ``tables`` goes first, so the
    result is deterministic.  Tables left over by a cycle are appended in
    their input order; the result always holds every input table exactly
    once and cycles never raise.

    Args:
        tables: Table names in input order.
        edges: Foreign-key edges, possibly covering other tables.

    Returns:
        Table names with parents first.

    Example:
        >>> edge = ForeignKeyEdge(table="orders", column="user_id",
        ...                       referenced_table="users", referenced_column="id")
        >>> sort_by_dependency(["orders", "users"], [edge])
        ['users', 'orders']
    """
    # First occurrence wins if a name is repeated
    position: dict[str, int] = {}
    for name in tables:
        position.setdefault(name, len(position))
    names = list(position)

    depends_on: dict[str, set[str]] = {name: set() for name in names}
    dependents: dict[str, set[str]] = {name: set() for name in names}
    for edge in edges:
        if edge.is_self_reference:
            continue
        if edge.table not in position or edge.referenced_table not in position:
            continue
        depends_on[edge.table].add(edge.referenced_table)
        dependents[edge.referenced_table].add(edge.table)

    in_degree = {name: len(deps) for name, deps in depends_on.items()}
    ready = [position[name] for name in names if in_degree[name] == 0]
    heapq.heapify(ready)

    ordered: list[str] = []
    placed: set[str] = set()
    while ready:
        name = names[heapq.heappop(ready)]
        ordered.append(name)
        placed.add(name)
        for dependent in dependents[name]:
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                heapq.heappush(ready, position[dependent])

    if len(ordered) < len(names):
        cyclic = [name for name in names if name not in placed]
        logger.warning(
            "Circular foreign-key references between %s; exporting them in input order",
            ", ".join(cyclic),
        )
        ordered.extend(cyclic)

    return ordered


def foreign_key_map(edges: Iterable[ForeignKeyEdge]) -> dict[str, list[ForeignKeyEdge]]:
    """Group edges by dependent table."""
    result: dict[str, list[ForeignKeyEdge]] = {}
    for edge in edges:
        result.setdefault(edge.table, []).append(edge)
    return result


class SchemaAnalyser:
    """Collects table descriptors from a data source and orders them."""

    def __init__(self, source: "DataSource") -> None:
        self._source = source

    async def list_tables(self) -> list[TableDescriptor]:
        """Describe every table of the source.

        Raises:
            IntrospectionError: If any metadata query fails.
        """
        descriptors: list[TableDescriptor] = []
        for name in await self._source.list_tables():
            columns = await self._source.columns(name)
            row_count = await self._source.row_count(name)
            schema_text = await self._source.table_schema_text(name)
            descriptors.append(
                TableDescriptor(
                    name=name,
                    columns=tuple(columns),
                    row_count=row_count,
                    schema_text=schema_text,
                )
            )
            logger.debug("Described table %s (%d columns, ~%d rows)", name, len(columns), row_count)
        return descriptors

    async def foreign_keys(self) -> list[ForeignKeyEdge]:
        return await self._source.foreign_keys()

    @staticmethod
    def order_by_dependency(
        tables: Sequence[TableDescriptor], edges: Iterable[ForeignKeyEdge]
    ) -> list[TableDescriptor]:
        """Return ``tables`` reordered so parents precede dependents."""
        by_name = {t.name: t for t in tables}
        return [by_name[name] for name in sort_by_dependency([t.name for t in tables], edges)]

    async def analyse(self) -> tuple[list[TableDescriptor], list[ForeignKeyEdge]]:
        """List, describe and order every table in one call."""
        tables = await self.list_tables()
        edges = await self.foreign_keys()
        ordered = self.order_by_dependency(tables, edges)
        logger.info("Export order: %s", ", ".join(t.name for t in ordered))
        return ordered, edges
