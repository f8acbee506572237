"""Recurrence engine package."""

from budget_engine.recurrence.engine import (
    classify,
    classify_date,
    instantiate,
    iter_occurrences,
    materialize_due,
    occurrences_between,
    refresh_metadata,
    series_index,
)
from budget_engine.recurrence.intervals import (
    add_interval,
    cycle_bounds,
    cycle_index,
    normalize_anchor,
    shift_months,
)

__all__ = [
    "classify",
    "classify_date",
    "instantiate",
    "iter_occurrences",
    "materialize_due",
    "occurrences_between",
    "refresh_metadata",
    "series_index",
    "add_interval",
    "cycle_bounds",
    "cycle_index",
    "normalize_anchor",
    "shift_months",
]
