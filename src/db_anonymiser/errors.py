"""Exception taxonomy for the export pipeline.

Every fatal condition derives from ``DumpError`` so callers (the CLI in
particular) can stop a run with a single ``except`` clause.  Unknown
generator names are not fatal -- they are reported as
``ValidationWarning`` through the ``warnings`` module.

Usage:
    from db_anonymiser.errors import ConfigurationError, DumpError

    try:
        config = load_dump_config("dump.yaml")
    except ConfigurationError as e:
        print(f"Bad config: {e}")
"""


class DumpError(Exception):
    """Base class for errors that abort an export run."""

    pass


class ConfigurationError(DumpError, ValueError):
    """Raised when the configuration file or one of its rules is invalid.

    Also a ``ValueError`` so it can be raised from pydantic validators.
    """

    pass


class DataSourceConnectionError(DumpError):
    """Raised when the data source cannot be reached or authenticated."""

    pass


class IntrospectionError(DumpError):
    """Raised when table, column or foreign-key metadata cannot be fetched."""

    pass


class StreamingError(DumpError):
    """Raised when fetching rows fails part-way through a table."""

    pass


class OutputWriteError(DumpError):
    """Raised when the dump output stream rejects a write."""

    pass


class ValidationWarning(UserWarning):
    """An anonymisation rule names a generator that does not exist."""

    pass
