"""Per-dialect framing text for the dump: preamble, footer, DROP syntax.

This is the only place that branches on the dialect name.  Unknown
dialects get the SQLite framing, which uses no engine-specific directives
beyond ``PRAGMA``.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class DialectFormat:
    """Framing statements for one SQL dialect."""

    name: str
    preamble: tuple[str, ...]
    footer: tuple[str, ...]
    drop_suffix: str = ""


DIALECTS: dict[str, DialectFormat] = {
    "mysql": DialectFormat(
        name="mysql",
        preamble=(
            "SET NAMES utf8mb4;",
            "SET FOREIGN_KEY_CHECKS = 0;",
            "SET SQL_MODE = 'NO_AUTO_VALUE_ON_ZERO';",
            "START TRANSACTION;",
        ),
        footer=(
            "SET FOREIGN_KEY_CHECKS = 1;",
            "COMMIT;",
        ),
    ),
    "postgres": DialectFormat(
        name="postgres",
        preamble=(
            "SET client_encoding = 'UTF8';",
            # Backslash escapes in '...' literals need the pre-9.1 behaviour
            "SET standard_conforming_strings = off;",
            "SET session_replication_role = replica;",
            "BEGIN;",
        ),
        footer=(
            "SET session_replication_role = DEFAULT;",
            "COMMIT;",
            "-- End of dump",
        ),
        drop_suffix=" CASCADE",
    ),
    "sqlite": DialectFormat(
        name="sqlite",
        preamble=(
            "PRAGMA foreign_keys = OFF;",
            "BEGIN TRANSACTION;",
        ),
        footer=(
            "COMMIT;",
            "PRAGMA foreign_keys = ON;",
        ),
    ),
}

# Names SQLAlchemy and users commonly use for the same engines
ALIASES = {"postgresql": "postgres", "mariadb": "mysql", "sqlite3": "sqlite"}


def dialect_format(name: str) -> DialectFormat:
    """Framing for ``name``; unknown names fall back to the SQLite framing."""
    key = ALIASES.get(name.lower(), name.lower())
    return DIALECTS.get(key, DIALECTS["sqlite"])


def header_lines(dialect: str, version: str) -> list[str]:
    """Comment block plus dialect preamble that opens every dump."""
    fmt = dialect_format(dialect)
    return [
        "-- Database Dump",
        f"-- Generated by db-anonymiser {version}",
        f"-- Dialect: {dialect}",
        "",
        *fmt.preamble,
        "",
    ]


def footer_lines(dialect: str) -> list[str]:
    return list(dialect_format(dialect).footer)


def drop_table_statement(dialect: str, quoted_table: str) -> str:
    """``DROP TABLE IF EXISTS`` for an already-quoted table name.

    Example:
        >>> drop_table_statement("postgres", '"users"')
        'DROP TABLE IF EXISTS "users" CASCADE;'
    """
    return f"DROP TABLE IF EXISTS {quoted_table}{dialect_format(dialect).drop_suffix};"
