"""Registry of key values already written to the dump.

Dependent tables are filtered against this registry so a child row is
only exported when the parent row it references was exported too.
Entries are keyed ``"table.column"``.

Drivers hand back the same key in different Python types (``bytes`` from
one, ``str`` from another; ``uuid.UUID`` or its text).  Every value is
normalised before it is stored or looked up:

- ``bool`` and every ``int`` subclass -> ``int``
- ``float`` subclasses -> ``float``
- ``bytes``/``bytearray``/``memoryview`` -> ``str`` (UTF-8)
- ``uuid.UUID`` -> ``str``

``None`` is never stored and always counts as present: a NULL foreign
key references nothing.
"""

from typing import Any
from uuid import UUID

from db_anonymiser.locks import ReadWriteLock


def normalise_value(value: Any) -> Any:
    """Bring equal keys of different driver types to one representation."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return int(value)
    if isinstance(value, float):
        return float(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    if isinstance(value, UUID):
        return str(value)
    return value


class ForeignKeyTracker:
    """Thread-safe ``table.column`` -> exported value set registry.

    Example:
        >>> tracker = ForeignKeyTracker()
        >>> tracker.record("users", "id", 7)
        >>> tracker.contains("users", "id", 7.0)
        True
        >>> tracker.contains("users", "id", None)
        True
    """

    def __init__(self) -> None:
        self._lock = ReadWriteLock()
        self._values: dict[str, set[Any]] = {}

    @staticmethod
    def _key(table: str, column: str) -> str:
        return f"{table}.{column}"

    def track(self, table: str, column: str) -> None:
        """Register ``table.column`` with no values yet.

        A tracked column with no values makes every non-NULL reference to
        it fail ``contains``, which is what a truncated parent needs.
        """
        with self._lock.write():
            self._values.setdefault(self._key(table, column), set())

    def is_tracked(self, table: str, column: str) -> bool:
        with self._lock.read():
            return self._key(table, column) in self._values

    def record(self, table: str, column: str, value: Any) -> None:
        """Add one exported value.  ``None`` is ignored."""
        if value is None:
            return
        normalised = normalise_value(value)
        with self._lock.write():
            self._values.setdefault(self._key(table, column), set()).add(normalised)

    def record_many(self, table: str, column: str, values: list[Any]) -> None:
        """Add a batch of values under a single write lock."""
        normalised = {normalise_value(v) for v in values if v is not None}
        with self._lock.write():
            self._values.setdefault(self._key(table, column), set()).update(normalised)

    def contains(self, table: str, column: str, value: Any) -> bool:
        if value is None:
            return True
        normalised = normalise_value(value)
        with self._lock.read():
            values = self._values.get(self._key(table, column))
            return values is not None and normalised in values

    def exported_values(self, table: str, column: str) -> list[Any]:
        with self._lock.read():
            return list(self._values.get(self._key(table, column), ()))

    def exported_count(self, table: str, column: str) -> int:
        with self._lock.read():
            return len(self._values.get(self._key(table, column), ()))
