"""Configuration management: file loading and rule models.

Usage:
    >>> from db_anonymiser.config import load_dump_config, DumpConfig, TableRules
"""

from db_anonymiser.config.loader import load_dump_config, save_dump_config
from db_anonymiser.config.models import (
    ColumnRule,
    ConnectionSettings,
    CountLimit,
    DateThreshold,
    DumpConfig,
    FakerRule,
    Full,
    NullRule,
    RetentionPolicy,
    StaticValueRule,
    TableRules,
    Truncate,
    parse_column_rule,
    parse_date,
)

__all__ = [
    "load_dump_config",
    "save_dump_config",
    "ColumnRule",
    "ConnectionSettings",
    "CountLimit",
    "DateThreshold",
    "DumpConfig",
    "FakerRule",
    "Full",
    "NullRule",
    "RetentionPolicy",
    "StaticValueRule",
    "TableRules",
    "Truncate",
    "parse_column_rule",
    "parse_date",
]
