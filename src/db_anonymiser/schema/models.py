"""Pydantic models for schema introspection.

This module contains the descriptors the analyser hands to the dump
writer:
- ColumnDescriptor: one column of a table
- TableDescriptor: a table with its columns, row estimate and CREATE text
- ForeignKeyEdge: one column-level foreign-key reference

All three are frozen; one instance exists per table per export run.
"""

from pydantic import BaseModel, ConfigDict, Field


class ColumnDescriptor(BaseModel):
    """Schema for a database column.

    Example:
        >>> col = ColumnDescriptor(name="id", data_type="INTEGER")
        >>> col.is_nullable
        True
    """

    model_config = ConfigDict(frozen=True)

    name: str
    data_type: str
    is_nullable: bool = True
    default: str | None = None
    is_primary_key: bool = False


class ForeignKeyEdge(BaseModel):
    """``table.column`` references ``referenced_table.referenced_column``.

    Example:
        >>> edge = ForeignKeyEdge(
        ...     table="orders", column="user_id",
        ...     referenced_table="users", referenced_column="id",
        ... )
        >>> edge.is_self_reference
        False
    """

    model_config = ConfigDict(frozen=True)

    table: str                  # dependent table
    column: str                 # FK column in the dependent table
    referenced_table: str
    referenced_column: str

    @property
    def is_self_reference(self) -> bool:
        return self.table == self.referenced_table


class TableDescriptor(BaseModel):
    """A table as seen by the export pipeline."""

    model_config = ConfigDict(frozen=True)

    name: str
    columns: tuple[ColumnDescriptor, ...] = Field(default_factory=tuple)
    row_count: int = 0  # estimate, used for reporting only
    schema_text: str = ""

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]

    @property
    def primary_key(self) -> list[str]:
        return [c.name for c in self.columns if c.is_primary_key]
