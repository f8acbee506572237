"""
Forecast Engine

Projects a date window by merging:
(a) real ledger transactions scheduled or performed inside the window,
(b) synthetic occurrences of active recurrences not yet materialized,
(c) optionally, a simulation's changes on top of both.

DESIGN DECISION: A synthetic occurrence is dropped as soon as any
transaction of its series sits on that date, so a real entry and its
projection are never both counted. Synthetic entries get deterministic
ids (uuid5 of series id and date) so repeated forecasts are comparable.

The ledger is never mutated; simulations are rendered through
overlay_transactions, which works on copies.
"""

from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import NAMESPACE_OID, UUID, uuid5

import structlog

from budget_engine.config import get_settings
from budget_engine.models.common import ZERO, quantize_money
from budget_engine.models.entities import (
    Account,
    AccountKind,
    Category,
    CategoryKind,
    Transaction,
)
from budget_engine.models.ledger import Ledger
from budget_engine.models.reports import (
    DateWindow,
    EntryDirection,
    ForecastEntry,
    ForecastReport,
    OccurrenceStatus,
)
from budget_engine.models.simulation import Simulation
from budget_engine.recurrence.engine import (
    classify,
    classify_date,
    materialized_dates,
    occurrences_between,
    performed_dates,
    series_index,
    templates,
)
from budget_engine.reports.periods import budget_window
from budget_engine.reports.summary import summarize
from budget_engine.simulation.overlay import overlay_transactions


logger = structlog.get_logger(__name__)

_CATEGORY_DIRECTIONS = {
    CategoryKind.INCOME: EntryDirection.INFLOW,
    CategoryKind.EXPENSE: EntryDirection.OUTFLOW,
    CategoryKind.TRANSFER: EntryDirection.TRANSFER,
}


def synthetic_id(series_id: UUID, occurrence_date: date) -> UUID:
    """Stable id for a projected occurrence."""
    return uuid5(NAMESPACE_OID, f"{series_id}:{occurrence_date.isoformat()}")


def entry_direction(
    txn: Transaction,
    accounts: dict[UUID, Account],
    categories: dict[UUID, Category],
) -> EntryDirection:
    """
    Cash-flow direction of a transaction.
    
    The category kind decides when there is one. Otherwise money moving
    into an asset from anywhere else is an inflow, money leaving an asset
    for anywhere else is an outflow, and everything else is a transfer.
    """
    category = categories.get(txn.category_id) if txn.category_id else None
    if category is not None:
        return _CATEGORY_DIRECTIONS[category.kind]
    
    source = accounts.get(txn.from_account)
    target = accounts.get(txn.to_account)
    if source is None or target is None:
        return EntryDirection.TRANSFER
    if target.kind == AccountKind.ASSET and source.kind != AccountKind.ASSET:
        return EntryDirection.INFLOW
    if source.kind == AccountKind.ASSET and target.kind != AccountKind.ASSET:
        return EntryDirection.OUTFLOW
    return EntryDirection.TRANSFER


def _signed(amount: Decimal, direction: EntryDirection) -> Decimal:
    if direction == EntryDirection.INFLOW:
        return amount
    if direction == EntryDirection.OUTFLOW:
        return -amount
    return ZERO


def _entry(
    ledger: Ledger,
    txn: Transaction,
    occurs_on: date,
    status: OccurrenceStatus,
    direction: EntryDirection,
    transaction_id: Optional[UUID] = None,
    is_synthetic: bool = False,
) -> ForecastEntry:
    amount = txn.budgeted_amount if is_synthetic else txn.effective_amount
    currency = ledger.currency_for(txn)
    incomplete = currency != ledger.currency
    return ForecastEntry(
        transaction_id=transaction_id or txn.id,
        series_id=txn.series_key,
        occurs_on=occurs_on,
        amount=amount,
        signed_amount=ZERO if incomplete else _signed(amount, direction),
        currency=currency,
        incomplete=incomplete,
        direction=direction,
        status=status,
        is_synthetic=is_synthetic,
        category_id=txn.category_id,
        from_account=txn.from_account,
        to_account=txn.to_account,
        notes=txn.notes,
    )


def forecast_window(
    ledger: Ledger,
    window: DateWindow,
    simulation: Optional[Simulation] = None,
    today: Optional[date] = None,
    top_n: Optional[int] = None,
) -> ForecastReport:
    """
    Build a read-only forecast for [window.start, window.end).
    
    Args:
        ledger: Ledger snapshot to project
        window: Half-open date window; an empty window gives an empty report
        simulation: Optional simulation whose changes are overlaid
        today: Reference date for overdue/pending/future (default: today)
        top_n: How many soonest open entries to highlight
    """
    today = today or date.today()
    if top_n is None:
        top_n = get_settings().engine.forecast_top_n
    simulation_name = simulation.name if simulation else None
    
    if window.is_empty:
        return ForecastReport(
            window=window,
            currency=ledger.currency,
            simulation_name=simulation_name,
        )
    
    if simulation is not None:
        transactions = overlay_transactions(ledger, simulation)
    else:
        transactions = ledger.transactions
    
    accounts = {a.id: a for a in ledger.accounts}
    categories = {c.id: c for c in ledger.categories}
    current_period = budget_window(ledger, today)
    entries: list[ForecastEntry] = []
    
    # (a) real transactions
    for txn in transactions:
        scheduled_in = window.contains(txn.scheduled_date)
        actual_in = txn.actual_date is not None and window.contains(txn.actual_date)
        if not (scheduled_in or actual_in):
            continue
        direction = entry_direction(txn, accounts, categories)
        if txn.is_performed:
            occurs_on = txn.actual_date if actual_in else txn.scheduled_date
            entries.append(_entry(ledger, txn, occurs_on, OccurrenceStatus.COMPLETED, direction))
        else:
            status = classify_date(txn.scheduled_date, today, current_period)
            entries.append(_entry(ledger, txn, txn.scheduled_date, status, direction))
    
    # (b) projected occurrences, suppressed where a real transaction exists.
    # Dates excluded by a simulation stay suppressed too.
    index = series_index(transactions)
    base_index = series_index(ledger.transactions) if simulation is not None else index
    
    for template in templates(transactions):
        rule = template.recurrence
        if not rule.is_active:
            continue
        series = index.get(rule.series_id, [])
        taken = materialized_dates(series) | materialized_dates(base_index.get(rule.series_id, []))
        direction = entry_direction(template, accounts, categories)
        
        for occurrence in occurrences_between(rule, window, performed_dates(series)):
            if occurrence in taken:
                continue
            status = classify(rule, occurrence, today, current_period)
            if status is None:
                continue
            entries.append(_entry(
                ledger,
                template,
                occurrence,
                status,
                direction,
                transaction_id=synthetic_id(rule.series_id, occurrence),
                is_synthetic=True,
            ))
    
    entries.sort(key=lambda e: (e.occurs_on, e.is_synthetic, str(e.transaction_id)))
    
    counted = [e for e in entries if not e.incomplete]
    inflow = sum(
        (e.amount for e in counted if e.direction == EntryDirection.INFLOW), ZERO
    )
    outflow = sum(
        (e.amount for e in counted if e.direction == EntryDirection.OUTFLOW), ZERO
    )
    incomplete = [e for e in entries if e.incomplete]
    counts = {status: 0 for status in OccurrenceStatus}
    for entry in entries:
        counts[entry.status] += 1
    
    upcoming = [e for e in entries if e.status != OccurrenceStatus.COMPLETED][:top_n]
    
    report = ForecastReport(
        window=window,
        currency=ledger.currency,
        simulation_name=simulation_name,
        entries=entries,
        upcoming=upcoming,
        total_inflow=quantize_money(inflow),
        total_outflow=quantize_money(outflow),
        net=quantize_money(inflow - outflow),
        overdue_count=counts[OccurrenceStatus.OVERDUE],
        pending_count=counts[OccurrenceStatus.PENDING],
        future_count=counts[OccurrenceStatus.FUTURE],
        completed_count=counts[OccurrenceStatus.COMPLETED],
        synthetic_count=sum(1 for e in entries if e.is_synthetic),
        incomplete_count=len(incomplete),
        warnings=[
            f"Entry {e.transaction_id} on {e.occurs_on.isoformat()} in {e.currency} left out of "
            f"{ledger.currency} totals: FX rates are disabled"
            for e in incomplete
        ],
        summary=summarize(ledger, window, simulation),
    )
    
    logger.debug(
        "forecast_built",
        ledger_id=str(ledger.id),
        window_start=window.start.isoformat(),
        window_end=window.end.isoformat(),
        entries=len(entries),
        synthetic=report.synthetic_count,
    )
    return report
