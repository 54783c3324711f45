"""db-anonymiser: Dependency-aware anonymising database dumps.

Reads a MySQL, PostgreSQL or SQLite database, orders its tables by
foreign-key dependency, applies per-column anonymisation and per-table
retention rules, and writes a loadable SQL dump that keeps foreign keys
and repeated values consistent.

Usage:
    from db_anonymiser import load_dump_config, run_export
    from db_anonymiser import DumpConfig, TableRules, DumpStats
    from db_anonymiser import Anonymiser, ForeignKeyTracker, sort_by_dependency
"""

__version__ = "0.1.0"

# Errors
from db_anonymiser.errors import (
    ConfigurationError,
    DataSourceConnectionError,
    DumpError,
    IntrospectionError,
    OutputWriteError,
    StreamingError,
    ValidationWarning,
)

# Config
from db_anonymiser.config.loader import load_dump_config, save_dump_config
from db_anonymiser.config.models import DumpConfig, TableRules

# Adapters
from db_anonymiser.adapters.base import DataSource, RowFilter
from db_anonymiser.factory import create_data_source

# Core
from db_anonymiser.anonymise.anonymiser import Anonymiser
from db_anonymiser.anonymise.generators import FakeValueGenerator
from db_anonymiser.dump.tracker import ForeignKeyTracker
from db_anonymiser.dump.writer import DumpStats, DumpWriter
from db_anonymiser.schema.analyser import SchemaAnalyser, sort_by_dependency

# Pipeline
from db_anonymiser.pipeline import TablePlan, plan_export, run_export, sync_config_tables

__all__ = [
    # Errors
    "DumpError",
    "ConfigurationError",
    "DataSourceConnectionError",
    "IntrospectionError",
    "StreamingError",
    "OutputWriteError",
    "ValidationWarning",
    # Config
    "load_dump_config",
    "save_dump_config",
    "DumpConfig",
    "TableRules",
    # Adapters
    "DataSource",
    "RowFilter",
    "create_data_source",
    # Core
    "Anonymiser",
    "FakeValueGenerator",
    "ForeignKeyTracker",
    "DumpStats",
    "DumpWriter",
    "SchemaAnalyser",
    "sort_by_dependency",
    # Pipeline
    "TablePlan",
    "plan_export",
    "run_export",
    "sync_config_tables",
]
