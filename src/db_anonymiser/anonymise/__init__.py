"""Row anonymisation: column rules, fake value generators, consistency map.

Usage:
    >>> from db_anonymiser.anonymise import Anonymiser, FakeValueGenerator
"""

from db_anonymiser.anonymise.anonymiser import (
    Anonymiser,
    ConsistencyMap,
    find_unknown_generators,
)
from db_anonymiser.anonymise.generators import FakeValueGenerator

__all__ = [
    "Anonymiser",
    "ConsistencyMap",
    "FakeValueGenerator",
    "find_unknown_generators",
]
