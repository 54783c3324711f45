"""Dump writing: retention, foreign-key tracking, SQL serialisation.

Usage:
    >>> from db_anonymiser.dump import DumpWriter, ForeignKeyTracker, plan_retention
"""

from db_anonymiser.dump.dialects import dialect_format, drop_table_statement
from db_anonymiser.dump.retention import RetentionPlan, plan_retention
from db_anonymiser.dump.serialise import escape_string, format_value
from db_anonymiser.dump.tracker import ForeignKeyTracker, normalise_value
from db_anonymiser.dump.writer import DEFAULT_BATCH_SIZE, DumpStats, DumpWriter

__all__ = [
    "dialect_format",
    "drop_table_statement",
    "RetentionPlan",
    "plan_retention",
    "escape_string",
    "format_value",
    "ForeignKeyTracker",
    "normalise_value",
    "DEFAULT_BATCH_SIZE",
    "DumpStats",
    "DumpWriter",
]
