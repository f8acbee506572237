"""
Budget Summary Aggregator

Sums budgeted and actual amounts inside a window, per category and per
account, and classifies each bucket's health from its variance.

A transaction counts as budgeted when its scheduled date is inside the
window and as actual when its actual date is. Entries in a currency other
than the ledger's are left out of the sums and flagged incomplete.
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel

from budget_engine.config import get_settings
from budget_engine.models.common import ZERO
from budget_engine.models.entities import Transaction
from budget_engine.models.ledger import Ledger
from budget_engine.models.reports import (
    AccountBudget,
    BudgetSummary,
    BudgetTotals,
    CategoryBudget,
    DateWindow,
    SimulationComparison,
)
from budget_engine.models.simulation import Simulation
from budget_engine.simulation.overlay import overlay_transactions


UNCATEGORIZED = "Uncategorized"
UNKNOWN_CATEGORY = "Unknown Category"
UNKNOWN_ACCOUNT = "Unknown Account"


class _Bucket(BaseModel):
    budgeted: Decimal = ZERO
    actual: Decimal = ZERO
    incomplete: int = 0
    
    def totals(self, tolerance: Decimal) -> BudgetTotals:
        return BudgetTotals.from_parts(self.budgeted, self.actual, self.incomplete, tolerance)


def _category_name(ledger: Ledger, category_id: Optional[UUID]) -> str:
    if category_id is None:
        return UNCATEGORIZED
    category = ledger.get_category(category_id)
    return category.name if category else UNKNOWN_CATEGORY


def _account_name(ledger: Ledger, account_id: UUID) -> str:
    account = ledger.get_account(account_id)
    return account.name if account else UNKNOWN_ACCOUNT


def _aggregate(
    ledger: Ledger,
    transactions: list[Transaction],
    window: DateWindow,
    tolerance: Decimal,
) -> BudgetSummary:
    overall = _Bucket()
    by_category: dict[Optional[UUID], _Bucket] = {}
    by_account: dict[UUID, _Bucket] = {}
    orphaned = 0
    incomplete = 0
    warnings: list[str] = []
    
    for txn in transactions:
        in_budget = window.contains(txn.scheduled_date)
        in_actual = txn.actual_date is not None and window.contains(txn.actual_date)
        if not (in_budget or in_actual):
            continue
        
        category_bucket = by_category.setdefault(txn.category_id, _Bucket())
        account_bucket = by_account.setdefault(txn.from_account, _Bucket())
        buckets = (overall, category_bucket, account_bucket)
        
        if (
            (txn.category_id is not None and ledger.get_category(txn.category_id) is None)
            or ledger.get_account(txn.from_account) is None
        ):
            orphaned += 1
        
        currency = ledger.currency_for(txn)
        if currency != ledger.currency:
            incomplete += 1
            for bucket in buckets:
                bucket.incomplete += 1
            warnings.append(
                f"Transaction {txn.id} in {currency} left out of {ledger.currency} "
                "totals: FX rates are disabled"
            )
            continue
        
        for bucket in buckets:
            if in_budget:
                bucket.budgeted += txn.budgeted_amount
            if in_actual:
                bucket.actual += txn.actual_amount
    
    per_category = [
        CategoryBudget(
            category_id=category_id,
            name=_category_name(ledger, category_id),
            totals=bucket.totals(tolerance),
        )
        for category_id, bucket in by_category.items()
    ]
    per_category.sort(key=lambda c: (c.name.lower(), str(c.category_id)))
    
    per_account = [
        AccountBudget(
            account_id=account_id,
            name=_account_name(ledger, account_id),
            totals=bucket.totals(tolerance),
        )
        for account_id, bucket in by_account.items()
    ]
    per_account.sort(key=lambda a: (a.name.lower(), str(a.account_id)))
    
    return BudgetSummary(
        window=window,
        currency=ledger.currency,
        totals=overall.totals(tolerance),
        per_category=per_category,
        per_account=per_account,
        orphaned=orphaned,
        incomplete=incomplete,
        warnings=warnings,
    )


def summarize(
    ledger: Ledger,
    window: DateWindow,
    simulation: Optional[Simulation] = None,
    tolerance: Optional[Decimal] = None,
) -> BudgetSummary:
    """
    Budgeted vs. actual totals for a window.
    
    With a simulation, the summary describes the overlaid transactions and
    carries a comparison against the plain ledger.
    """
    if tolerance is None:
        tolerance = get_settings().engine.over_budget_tolerance
    
    base = _aggregate(ledger, ledger.transactions, window, tolerance)
    if simulation is None:
        return base
    
    simulated = _aggregate(ledger, overlay_transactions(ledger, simulation), window, tolerance)
    simulated.comparison = SimulationComparison.between(
        simulation.name, base.totals, simulated.totals
    )
    return simulated
