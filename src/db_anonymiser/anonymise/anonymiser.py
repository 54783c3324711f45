"""Per-column row transformation with a run-wide consistency map.

A ``FakerRule`` replaces a value with a generated one; the first
substitute produced for an original value is remembered and reused, so a
repeated email anonymises to the same fake email everywhere in the dump.

The consistency map is keyed by *column name only*.  Two tables that both
have an ``email`` column share one namespace: ``users.email`` and
``newsletter.email`` holding ``a@x.com`` get the same substitute, which
keeps denormalised copies of a value consistent across tables.
"""

import logging
import warnings
from collections.abc import Callable, Mapping
from typing import Any

from db_anonymiser.anonymise.generators import FakeValueGenerator
from db_anonymiser.config.models import (
    ColumnRule,
    DumpConfig,
    FakerRule,
    NullRule,
    StaticValueRule,
)
from db_anonymiser.errors import ValidationWarning
from db_anonymiser.locks import ReadWriteLock

logger = logging.getLogger(__name__)


def _original_text(value: Any) -> str:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    return str(value)


class ConsistencyMap:
    """Thread-safe ``(column, original)`` -> substitute cache."""

    def __init__(self) -> None:
        self._lock = ReadWriteLock()
        self._values: dict[tuple[str, str], str] = {}

    @staticmethod
    def key(column: str, original: str) -> tuple[str, str]:
        return (column, original)

    def get(self, column: str, original: str) -> str | None:
        with self._lock.read():
            return self._values.get(self.key(column, original))

    def get_or_create(self, column: str, original: str, factory: Callable[[], str]) -> str:
        """Return the stored substitute, generating and storing it on first use."""
        key = self.key(column, original)
        with self._lock.read():
            existing = self._values.get(key)
        if existing is not None:
            return existing

        with self._lock.write():
            # Another writer may have filled the key between the two locks
            existing = self._values.get(key)
            if existing is None:
                existing = factory()
                self._values[key] = existing
            return existing

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._values)


def find_unknown_generators(
    config: DumpConfig, generator: FakeValueGenerator | None = None
) -> list[str]:
    """Describe every ``FakerRule`` whose generator does not exist.

    Returns:
        Messages like ``"users.email: unknown faker function 'emial'"``.
    """
    generator = generator or FakeValueGenerator()
    problems = []
    for table in config.configuration:
        problems.extend(_table_problems(config, table, generator))
    return problems


def _table_problems(config: DumpConfig, table: str, generator: FakeValueGenerator) -> list[str]:
    rules = config.table_rules(table)
    if rules is None:
        return []
    return [
        f"{table}.{column}: unknown faker function {rule.function!r}"
        for column, rule in rules.columns.items()
        if isinstance(rule, FakerRule) and not generator.has(rule.function)
    ]


class Anonymiser:
    """Applies the configured column rules to rows.

    Args:
        config: Loaded export configuration.
        generator: Generator registry; a fresh unseeded one if omitted.
        consistency: Consistency map; a fresh one if omitted.

    Example:
        anonymiser = Anonymiser(config, FakeValueGenerator(seed=1))
        anonymiser.validate_rules()
        row = anonymiser.apply("users", {"id": 1, "email": "a@x.com"})
    """

    def __init__(
        self,
        config: DumpConfig,
        generator: FakeValueGenerator | None = None,
        consistency: ConsistencyMap | None = None,
    ) -> None:
        self._config = config
        self._generator = generator or FakeValueGenerator()
        self._consistency = consistency if consistency is not None else ConsistencyMap()

    @property
    def consistency(self) -> ConsistencyMap:
        return self._consistency

    def validate_rules(self) -> list[str]:
        """Warn about every rule naming an unknown generator.

        Each problem is logged and emitted as ``ValidationWarning``.  The
        affected columns are left unchanged when rows are processed.
        """
        problems = find_unknown_generators(self._config, self._generator)
        for message in problems:
            logger.warning("%s; values will be exported unchanged", message)
            warnings.warn(message, ValidationWarning, stacklevel=2)
        return problems

    def rule_problems(self, table: str) -> list[str]:
        """Unknown-generator messages for one table's rules."""
        return _table_problems(self._config, table, self._generator)

    def anonymised_columns(self, table: str) -> list[str]:
        rules = self._config.table_rules(table)
        return list(rules.columns) if rules is not None else []

    def apply(self, table: str, row: Mapping[str, Any]) -> dict[str, Any]:
        """Return a transformed copy of ``row``; the input is not modified."""
        result = dict(row)
        rules = self._config.table_rules(table)
        if rules is None or not rules.columns:
            return result

        for column, rule in rules.columns.items():
            if column in result:
                result[column] = self._transform(column, rule, result[column])
        return result

    def _transform(self, column: str, rule: ColumnRule, value: Any) -> Any:
        if isinstance(rule, NullRule):
            return None
        if isinstance(rule, StaticValueRule):
            return rule.value

        if not self._generator.has(rule.function):
            return value

        original = "" if value is None else _original_text(value)
        if not original:
            # Nothing stable to key on
            return self._generator.generate(rule.function)

        return self._consistency.get_or_create(
            column, original, lambda: self._generator.generate(rule.function)
        )
