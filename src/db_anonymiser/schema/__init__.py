"""Schema introspection models and dependency ordering.

Usage:
    >>> from db_anonymiser.schema import SchemaAnalyser, sort_by_dependency
"""

from db_anonymiser.schema.analyser import SchemaAnalyser, foreign_key_map, sort_by_dependency
from db_anonymiser.schema.models import ColumnDescriptor, ForeignKeyEdge, TableDescriptor

__all__ = [
    "SchemaAnalyser",
    "foreign_key_map",
    "sort_by_dependency",
    "ColumnDescriptor",
    "ForeignKeyEdge",
    "TableDescriptor",
]
