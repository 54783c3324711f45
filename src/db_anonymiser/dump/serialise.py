"""Render Python values as SQL literals for INSERT statements.

Escaping is the MySQL string-literal convention, used for every dialect:
quotes are doubled, backslashes doubled, and newline, carriage return,
NUL and Ctrl-Z become ``\\n``, ``\\r``, ``\\0`` and ``\\Z``.  PostgreSQL
dumps switch ``standard_conforming_strings`` off so the backslash forms
are honoured.  SQLite has no backslash escapes; text holding a backslash
or control character loads with the escape sequence kept literally.
"""

import json
import math
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any
from uuid import UUID

_ESCAPES = str.maketrans(
    {
        "\\": "\\\\",
        "'": "''",
        "\n": "\\n",
        "\r": "\\r",
        "\x00": "\\0",
        "\x1a": "\\Z",
    }
)


def escape_string(text: str) -> str:
    """Quote ``text`` as a SQL string literal.

    Example:
        >>> escape_string("it's")
        "'it''s'"
    """
    return "'" + text.translate(_ESCAPES) + "'"


def format_value(value: Any) -> str:
    """Render one column value as SQL text.

    ``None`` is ``NULL``, booleans are ``1``/``0``, numbers are bare
    decimal text, timestamps are ``'YYYY-MM-DD HH:MM:SS'`` and everything
    else is a quoted string.  Non-finite floats and decimals are quoted so
    the statement still parses.

    Example:
        >>> format_value(True)
        '1'
        >>> format_value(datetime(2024, 1, 15, 10, 30))
        "'2024-01-15 10:30:00'"
    """
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            return escape_string(str(value))
        return repr(value)
    if isinstance(value, Decimal):
        if not value.is_finite():
            return escape_string(str(value))
        return format(value, "f")
    if isinstance(value, datetime):
        return escape_string(value.strftime("%Y-%m-%d %H:%M:%S"))
    if isinstance(value, date):
        return escape_string(value.strftime("%Y-%m-%d"))
    if isinstance(value, time):
        return escape_string(value.strftime("%H:%M:%S"))
    if isinstance(value, (bytes, bytearray, memoryview)):
        return escape_string(bytes(value).decode("utf-8", errors="replace"))
    if isinstance(value, str):
        return escape_string(value)
    if isinstance(value, UUID):
        return escape_string(str(value))
    if isinstance(value, (dict, list)):
        return escape_string(json.dumps(value, default=str))
    return escape_string(str(value))


def format_row(values: list[Any]) -> str:
    """``(v1, v2, ...)`` for one row."""
    return "(" + ", ".join(format_value(v) for v in values) + ")"
