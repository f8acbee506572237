"""
Budget Period Windows

Budget periods are cycles of the ledger's budget_period interval,
anchored on the natural start (1st of month, Monday, January 1st) of the
ledger's earliest scheduled date.
"""

from datetime import date

from budget_engine.models.ledger import Ledger
from budget_engine.models.reports import BudgetScope, DateWindow
from budget_engine.recurrence.intervals import cycle_bounds, cycle_index, normalize_anchor


_SCOPE_OFFSETS = {
    BudgetScope.PAST: -1,
    BudgetScope.CURRENT: 0,
    BudgetScope.FUTURE: 1,
}


def budget_anchor(ledger: Ledger) -> date:
    """Earliest scheduled date in the ledger, or its creation date."""
    dates = [txn.scheduled_date for txn in ledger.transactions]
    earliest = min(dates) if dates else ledger.created_at.date()
    return normalize_anchor(earliest, ledger.budget_period)


def budget_window(
    ledger: Ledger,
    reference: date,
    scope: BudgetScope = BudgetScope.CURRENT,
    offset: int = 0,
) -> DateWindow:
    """
    The budget period around a reference date.
    
    Args:
        ledger: Ledger providing the period interval and anchor
        reference: Date that falls inside the current period
        scope: PAST / CURRENT / FUTURE shifts by one period
        offset: Additional whole periods to shift by
    """
    anchor = budget_anchor(ledger)
    index = cycle_index(anchor, reference, ledger.budget_period)
    start, end = cycle_bounds(anchor, ledger.budget_period, index + _SCOPE_OFFSETS[scope] + offset)
    return DateWindow(start=start, end=end)
