"""Turn a table's retention policy into streaming constraints."""

from dataclasses import dataclass, field

from db_anonymiser.adapters.base import RowFilter
from db_anonymiser.config.models import (
    CountLimit,
    DateThreshold,
    Full,
    RetentionPolicy,
    TableRules,
    Truncate,
)


@dataclass(frozen=True)
class RetentionPlan:
    """What the dump writer does with a table's data.

    ``skip_data`` means only the structure is written.  Otherwise rows are
    streamed through ``row_filter``; limits and date thresholds become
    part of the source query instead of being applied after fetching.
    """

    policy: RetentionPolicy
    skip_data: bool = False
    row_filter: RowFilter = field(default_factory=RowFilter)

    def describe(self) -> str:
        """Short human-readable action, e.g. ``RETAIN 100 rows``."""
        if isinstance(self.policy, Truncate):
            return "TRUNCATE"
        if isinstance(self.policy, CountLimit):
            return f"RETAIN {self.policy.count} rows"
        if isinstance(self.policy, DateThreshold):
            return f"RETAIN rows where {self.policy.column} > {self.policy.after.isoformat(sep=' ')}"
        return "FULL EXPORT"


def plan_retention(rules: TableRules | None) -> RetentionPlan:
    """Evaluate the retention policy for one table.

    Args:
        rules: The table's rules, or ``None`` for a table without an entry.

    Returns:
        ``RetentionPlan`` with either ``skip_data`` set or a ``RowFilter``.

    Example:
        >>> plan = plan_retention(TableRules(retain=100))
        >>> plan.row_filter.limit
        100
    """
    policy: RetentionPolicy = rules.policy if rules is not None else Full()

    if isinstance(policy, Truncate):
        return RetentionPlan(policy=policy, skip_data=True)
    if isinstance(policy, CountLimit):
        return RetentionPlan(policy=policy, row_filter=RowFilter(limit=policy.count))
    if isinstance(policy, DateThreshold):
        return RetentionPlan(
            policy=policy,
            row_filter=RowFilter(date_column=policy.column, after=policy.after),
        )
    return RetentionPlan(policy=policy)
