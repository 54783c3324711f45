"""Pydantic models for the export configuration file.

Flexible fields in the file (a rule string, a ``retain`` that is either an
integer or an object) are turned into tagged variants once, while the
model is validated.  Code that consumes the models only ever sees
``NullRule | StaticValueRule | FakerRule`` and
``Full | Truncate | CountLimit | DateThreshold``.
"""

import re
from datetime import date, datetime, time
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from sqlalchemy.engine import URL

from db_anonymiser.errors import ConfigurationError

# {{faker.email}} -> "email"
FAKER_TEMPLATE = re.compile(r"\{\{faker\.(\w+)\}\}")

# Tried in order before falling back to RFC 3339
DATE_FORMATS = ("%Y-%m-%d", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M:%S")

DRIVERS = {
    "mysql": "mysql+aiomysql",
    "postgres": "postgresql+asyncpg",
    "sqlite": "sqlite+aiosqlite",
}

DEFAULT_PORTS = {"mysql": 3306, "postgres": 5432}


def parse_date(text: str) -> datetime:
    """Parse an ``after_date`` value.

    Accepts ``YYYY-MM-DD``, ``YYYY-MM-DDTHH:MM:SS``, ``YYYY-MM-DD HH:MM:SS``
    and a full RFC 3339 timestamp with zone, tried in that order.

    Raises:
        ConfigurationError: If none of the formats match.

    Example:
        >>> parse_date("2024-01-01")
        datetime.datetime(2024, 1, 1, 0, 0)
    """
    text = str(text).strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        parsed = None
    if parsed is not None and parsed.tzinfo is not None:
        return parsed

    raise ConfigurationError(
        f"could not parse date {text!r}, supported formats: YYYY-MM-DD, "
        "YYYY-MM-DDTHH:MM:SS, YYYY-MM-DD HH:MM:SS, RFC 3339 with zone"
    )


# ============================================================================
# Connection
# ============================================================================


class ConnectionSettings(BaseModel):
    """Database connection block of the config file."""

    type: str
    host: str | None = None
    port: int | None = None
    username: str | None = None
    password: str | None = Field(default=None, repr=False)
    database_name: str | None = None
    file: str | None = None  # SQLite only

    @model_validator(mode="after")
    def _check_required(self) -> "ConnectionSettings":
        if self.type not in DRIVERS:
            raise ConfigurationError(
                f"invalid connection type {self.type!r}, must be mysql, postgres, or sqlite"
            )
        if self.type == "sqlite":
            if not self.file:
                raise ConfigurationError("sqlite connection requires 'file' parameter")
        else:
            if not self.host:
                raise ConfigurationError("connection requires 'host' parameter")
            if not self.database_name:
                raise ConfigurationError("connection requires 'database_name' parameter")
        return self

    def url(self) -> URL:
        """Build the SQLAlchemy async URL for this connection."""
        if self.type == "sqlite":
            return URL.create(DRIVERS["sqlite"], database=self.file)

        return URL.create(
            DRIVERS[self.type],
            username=self.username,
            password=self.password,
            host=self.host,
            port=self.port or DEFAULT_PORTS[self.type],
            database=self.database_name,
        )


# ============================================================================
# Column rules
# ============================================================================


class NullRule(BaseModel):
    """Replace the column with SQL NULL."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["null"] = "null"

    def to_raw(self) -> str | None:
        return None


class StaticValueRule(BaseModel):
    """Replace the column with a fixed literal."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["static"] = "static"
    value: str

    def to_raw(self) -> str | None:
        return self.value


class FakerRule(BaseModel):
    """Replace the column with a generated value, e.g. ``{{faker.email}}``."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["faker"] = "faker"
    function: str

    def to_raw(self) -> str | None:
        return "{{faker." + self.function + "}}"


ColumnRule = NullRule | StaticValueRule | FakerRule


def parse_column_rule(raw: Any) -> ColumnRule:
    """Decide the rule variant for a raw config value.

    ``None``, ``""`` and ``"null"`` become ``NullRule``; any string holding a
    ``{{faker.<name>}}`` template becomes ``FakerRule``; everything else is
    used verbatim as a ``StaticValueRule``.

    Example:
        >>> parse_column_rule("{{faker.email}}")
        FakerRule(kind='faker', function='email')
    """
    if isinstance(raw, (NullRule, StaticValueRule, FakerRule)):
        return raw
    if raw is None:
        return NullRule()
    if isinstance(raw, bool):
        raw = "true" if raw else "false"
    elif isinstance(raw, (int, float)):
        raw = str(raw)
    elif not isinstance(raw, str):
        raise ConfigurationError(
            f"column rule must be a string or null, got {type(raw).__name__}"
        )

    if raw == "" or raw == "null":
        return NullRule()

    match = FAKER_TEMPLATE.search(raw)
    if match:
        return FakerRule(function=match.group(1))

    return StaticValueRule(value=raw)


# ============================================================================
# Retention
# ============================================================================


class Full(BaseModel):
    """Export every row."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["full"] = "full"


class Truncate(BaseModel):
    """Export the table structure only."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["truncate"] = "truncate"


class CountLimit(BaseModel):
    """Export the first ``count`` rows in source order."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["count"] = "count"
    count: int = Field(gt=0)


class DateThreshold(BaseModel):
    """Export rows whose ``column`` is strictly greater than ``after``."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["date"] = "date"
    column: str = Field(min_length=1)
    after: datetime


RetentionPolicy = Full | Truncate | CountLimit | DateThreshold


def parse_retain(raw: Any) -> CountLimit | DateThreshold | None:
    """Turn a raw ``retain`` value into its variant.

    An integer is a row count (``0`` means no limit); an object needs
    ``column_name`` and ``after_date``.

    Raises:
        ConfigurationError: On any other shape or an unparseable date.
    """
    if raw is None or isinstance(raw, (CountLimit, DateThreshold)):
        return raw

    if isinstance(raw, int) and not isinstance(raw, bool):
        if raw == 0:
            return None
        if raw < 0:
            raise ConfigurationError(f"retain count must be positive, got {raw}")
        return CountLimit(count=raw)

    if isinstance(raw, dict):
        column = raw.get("column_name")
        after = raw.get("after_date")
        if not column:
            raise ConfigurationError("retain object requires column_name")
        if not after:
            raise ConfigurationError("retain object requires after_date")

        # YAML and TOML hand back native date/datetime values for unquoted dates
        if isinstance(after, datetime):
            parsed = after
        elif isinstance(after, date):
            parsed = datetime.combine(after, time())
        else:
            parsed = parse_date(after)

        return DateThreshold(column=column, after=parsed)

    raise ConfigurationError(
        "retain must be an integer or an object with column_name and after_date"
    )


# ============================================================================
# Table and file configuration
# ============================================================================


class TableRules(BaseModel):
    """Per-table processing rules."""

    model_config = ConfigDict(extra="forbid")

    truncate: bool = False
    foreign_key_integrity: bool | None = None  # None inherits the global setting
    retain: CountLimit | DateThreshold | None = None
    columns: dict[str, ColumnRule] = Field(default_factory=dict)

    @field_validator("retain", mode="before")
    @classmethod
    def _parse_retain(cls, value: Any) -> Any:
        return parse_retain(value)

    @field_validator("columns", mode="before")
    @classmethod
    def _parse_columns(cls, value: Any) -> Any:
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise ConfigurationError("columns must be a mapping of column name to rule")
        return {str(col): parse_column_rule(rule) for col, rule in value.items()}

    @property
    def policy(self) -> RetentionPolicy:
        """Retention policy for the table; ``truncate`` wins over ``retain``."""
        if self.truncate:
            return Truncate()
        if self.retain is not None:
            return self.retain
        return Full()

    def to_document(self) -> dict[str, Any]:
        """Render back to the config-file shape."""
        doc: dict[str, Any] = {}
        if self.truncate:
            doc["truncate"] = True
        if self.foreign_key_integrity is not None:
            doc["foreign_key_integrity"] = self.foreign_key_integrity
        if isinstance(self.retain, CountLimit):
            doc["retain"] = self.retain.count
        elif isinstance(self.retain, DateThreshold):
            after = self.retain.after
            if after.tzinfo is None and after.time() == time():
                after_text = after.strftime("%Y-%m-%d")
            else:
                after_text = after.isoformat()
            doc["retain"] = {"column_name": self.retain.column, "after_date": after_text}
        if self.columns:
            doc["columns"] = {col: rule.to_raw() for col, rule in self.columns.items()}
        return doc


class DumpConfig(BaseModel):
    """Complete configuration file: connection, global defaults, table rules."""

    connection: ConnectionSettings
    foreign_key_integrity: bool | None = None
    configuration: dict[str, TableRules] = Field(default_factory=dict)

    @field_validator("configuration", mode="before")
    @classmethod
    def _empty_tables(cls, value: Any) -> Any:
        # "users:" with no body loads as None in YAML
        if value is None:
            return {}
        if isinstance(value, dict):
            return {name: ({} if rules is None else rules) for name, rules in value.items()}
        return value

    def table_rules(self, table: str) -> TableRules | None:
        """Rules for a table, or ``None`` when it has no entry (full export)."""
        return self.configuration.get(table)

    def should_enforce_fk_integrity(self, table: str) -> bool:
        """Table-level setting, then the global default, then ``False``."""
        rules = self.table_rules(table)
        if rules is not None and rules.foreign_key_integrity is not None:
            return rules.foreign_key_integrity
        if self.foreign_key_integrity is not None:
            return self.foreign_key_integrity
        return False

    def has_table(self, table: str) -> bool:
        return table in self.configuration

    def add_table(self, table: str, rules: TableRules | None = None) -> bool:
        """Add a table entry unless one exists.  Returns ``True`` if added."""
        if table in self.configuration:
            return False
        self.configuration[table] = rules or TableRules()
        return True

    def list_tables(self) -> list[str]:
        return list(self.configuration)

    def to_document(self) -> dict[str, Any]:
        """Render back to the config-file shape."""
        doc: dict[str, Any] = {
            "connection": self.connection.model_dump(exclude_none=True),
        }
        if self.foreign_key_integrity is not None:
            doc["foreign_key_integrity"] = self.foreign_key_integrity
        doc["configuration"] = {
            name: rules.to_document() for name, rules in self.configuration.items()
        }
        return doc
