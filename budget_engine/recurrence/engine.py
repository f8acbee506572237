"""
Recurrence Engine

Walks recurrence rules, classifies occurrences and materializes the ones
that are due.

DESIGN DECISION: There is no separate table of recurrence instances.
Each materialized transaction carries its series id, and "what has been
generated for this series" is always answered by grouping the ledger's
transactions by series id on demand (series_index). The derived fields
on the rule are rebuilt from that grouping by refresh_metadata.

Walk rules:
- FIXED_SCHEDULE occurrences are start + k * interval, so month-end
  dates clamp without drifting (Jan 31, Feb 28, Mar 31).
- AFTER_LAST_PERFORMED re-anchors on the actual date of the previous
  occurrence when it has been performed.
- Exception dates are skipped and do not count towards an "after N"
  end condition.
- Dates are strictly increasing; a walk that exceeds the iteration cap
  while still inside its bound raises RecurrenceLimitError.
- Windowed FIXED_SCHEDULE walks seek to the window start instead of
  stepping from start_date, so old rules stay under the cap.
"""

from datetime import date
from typing import Iterator, Optional
from uuid import UUID, uuid4

import structlog

from budget_engine.config import get_settings
from budget_engine.errors import RecurrenceLimitError
from budget_engine.models.entities import Transaction, TransactionStatus
from budget_engine.models.ledger import Ledger
from budget_engine.models.recurrence import (
    Recurrence,
    RecurrenceEndKind,
    RecurrenceMode,
    RecurrenceStatus,
)
from budget_engine.models.reports import (
    DateWindow,
    MaterializationResult,
    OccurrenceStatus,
)
from budget_engine.recurrence.intervals import add_interval, cycle_index


logger = structlog.get_logger(__name__)


def _seek(rule: Recurrence, since: date) -> tuple[int, date]:
    """Index and date of the first FIXED_SCHEDULE occurrence on or after since."""
    index = max(0, cycle_index(rule.start_date, since, rule.interval))
    current = add_interval(rule.start_date, rule.interval, index)
    if current < since:
        index += 1
        current = add_interval(rule.start_date, rule.interval, index)
    return index, current


def _skipped_before(rule: Recurrence, before: date) -> int:
    """Exception dates that fall on the schedule ahead of `before`."""
    anchor = rule.start_date
    return sum(
        1 for d in set(rule.exceptions)
        if anchor <= d < before
        and add_interval(anchor, rule.interval, cycle_index(anchor, d, rule.interval)) == d
    )


def iter_occurrences(
    rule: Recurrence,
    until: Optional[date] = None,
    performed: Optional[dict[date, date]] = None,
    max_iterations: Optional[int] = None,
    since: Optional[date] = None,
) -> Iterator[date]:
    """
    Lazily yield occurrence dates of a rule in increasing order.
    
    Args:
        rule: The recurrence rule
        until: Stop after this date (inclusive). None means walk until the
               rule's own end condition.
        performed: Mapping of occurrence date -> actual date, used by
                   AFTER_LAST_PERFORMED to re-anchor
        max_iterations: Walk cap; defaults to the engine setting
        since: Skip occurrences before this date. FIXED_SCHEDULE rules jump
               straight to it, and the cap counts steps from there.
    """
    cap = max_iterations or get_settings().engine.max_recurrence_iterations
    performed = performed or {}
    exceptions = set(rule.exceptions)
    end = rule.end
    
    current = rule.start_date
    index = 0
    produced = 0
    steps = 0
    
    if (
        since is not None
        and since > rule.start_date
        and rule.mode == RecurrenceMode.FIXED_SCHEDULE
    ):
        try:
            index, current = _seek(rule, since)
        except (OverflowError, ValueError):
            return
        produced = index - _skipped_before(rule, current)
        if end.kind == RecurrenceEndKind.AFTER and produced >= end.count:
            return
    
    while True:
        if until is not None and current > until:
            return
        if end.kind == RecurrenceEndKind.ON_DATE and current > end.until:
            return
        
        steps += 1
        if steps > cap:
            raise RecurrenceLimitError(
                f"Recurrence walk exceeded {cap} iterations",
                details={"series_id": str(rule.series_id), "reached": current.isoformat()},
            )
        
        if current not in exceptions:
            if since is None or current >= since:
                yield current
            produced += 1
            if end.kind == RecurrenceEndKind.AFTER and produced >= end.count:
                return
        
        try:
            if rule.mode == RecurrenceMode.AFTER_LAST_PERFORMED:
                base = performed.get(current, current)
                following = add_interval(base, rule.interval)
                if following <= current:
                    following = add_interval(current, rule.interval)
            else:
                index += 1
                following = add_interval(rule.start_date, rule.interval, index)
        except (OverflowError, ValueError):
            # Past the last representable date
            return
        current = following


def occurrences_between(
    rule: Recurrence,
    window: DateWindow,
    performed: Optional[dict[date, date]] = None,
) -> list[date]:
    """Occurrence dates inside a half-open window."""
    last_day = window.last_day
    if last_day is None:
        return []
    return list(iter_occurrences(
        rule, until=last_day, performed=performed, since=window.start
    ))


def series_index(transactions: list[Transaction]) -> dict[UUID, list[Transaction]]:
    """Group transactions (templates included) by series id."""
    index: dict[UUID, list[Transaction]] = {}
    for txn in transactions:
        key = txn.series_key
        if key is not None:
            index.setdefault(key, []).append(txn)
    return index


def materialized_dates(series: list[Transaction]) -> set[date]:
    return {txn.scheduled_date for txn in series}


def performed_dates(series: list[Transaction]) -> dict[date, date]:
    return {
        txn.scheduled_date: txn.actual_date
        for txn in series
        if txn.actual_date is not None
    }


def templates(transactions: list[Transaction]) -> list[Transaction]:
    return [txn for txn in transactions if txn.recurrence is not None]


def classify(
    rule: Recurrence,
    occurrence_date: date,
    today: date,
    current_period: Optional[DateWindow] = None,
    transaction: Optional[Transaction] = None,
    pending_days: Optional[int] = None,
) -> Optional[OccurrenceStatus]:
    """
    Classify one occurrence relative to today.
    
    Args:
        rule: The recurrence the occurrence belongs to
        occurrence_date: The occurrence date
        today: Reference date
        current_period: The budget period holding today. When absent, the
                        pending horizon is today + pending_days.
        transaction: The ledger transaction for this occurrence, if one
                     has been materialized
    
    Returns:
        COMPLETED for performed occurrences, OVERDUE when the date has
        passed without being performed, PENDING inside the current period,
        FUTURE beyond it. None for occurrences of a paused or completed
        rule that were never materialized (they are not due).
    """
    if transaction is not None and transaction.is_performed:
        return OccurrenceStatus.COMPLETED
    if transaction is None and not rule.is_active:
        return None
    
    return classify_date(occurrence_date, today, current_period, pending_days)


def classify_date(
    occurrence_date: date,
    today: date,
    current_period: Optional[DateWindow] = None,
    pending_days: Optional[int] = None,
) -> OccurrenceStatus:
    """Overdue / pending / future for an open (unperformed) date."""
    if occurrence_date < today:
        return OccurrenceStatus.OVERDUE
    
    if current_period is not None:
        if current_period.contains(occurrence_date):
            return OccurrenceStatus.PENDING
        return OccurrenceStatus.FUTURE
    
    if pending_days is None:
        pending_days = get_settings().engine.pending_window_days
    if (occurrence_date - today).days <= pending_days:
        return OccurrenceStatus.PENDING
    return OccurrenceStatus.FUTURE


def _next_unmaterialized(
    rule: Recurrence,
    materialized: set[date],
    performed: dict[date, date],
) -> Optional[date]:
    for occurrence in iter_occurrences(rule, performed=performed):
        if occurrence not in materialized:
            return occurrence
    return None


def refresh_metadata(ledger: Ledger) -> None:
    """
    Rebuild the derived fields of every recurrence in the ledger.
    
    Uses only the rules and the transactions grouped by series id, so
    calling it twice in a row produces identical metadata.
    """
    index = series_index(ledger.transactions)
    
    for template in templates(ledger.transactions):
        rule = template.recurrence
        series = index.get(rule.series_id, [])
        materialized = materialized_dates(series)
        performed = performed_dates(series)
        
        rule.last_generated = max(materialized) if materialized else None
        rule.last_completed = max(performed.values()) if performed else None
        rule.generated_occurrences = len(materialized)
        rule.next_scheduled = _next_unmaterialized(rule, materialized, performed)
        
        if rule.status != RecurrenceStatus.PAUSED:
            rule.status = (
                RecurrenceStatus.ACTIVE
                if rule.next_scheduled is not None
                else RecurrenceStatus.COMPLETED
            )


def instantiate(template: Transaction, occurrence_date: date) -> Transaction:
    """Clone a template into a fresh scheduled instance for one occurrence."""
    return template.model_copy(
        update={
            "id": uuid4(),
            "scheduled_date": occurrence_date,
            "actual_date": None,
            "actual_amount": None,
            "status": TransactionStatus.SCHEDULED,
            "recurrence": None,
            "series_id": template.recurrence.series_id,
        },
        deep=True,
    )


def materialize_due(ledger: Ledger, as_of: date) -> MaterializationResult:
    """
    Create ledger transactions for every active occurrence due by as_of.
    
    All new instances are computed before the ledger is touched, so a
    failing walk leaves the ledger unchanged. Re-running with the same
    as_of creates nothing.
    """
    index = series_index(ledger.transactions)
    created: list[Transaction] = []
    
    for template in templates(ledger.transactions):
        rule = template.recurrence
        if not rule.is_active:
            continue
        series = index.get(rule.series_id, [])
        materialized = materialized_dates(series)
        performed = performed_dates(series)
        
        for occurrence in iter_occurrences(rule, until=as_of, performed=performed):
            if occurrence in materialized:
                continue
            created.append(instantiate(template, occurrence))
            materialized.add(occurrence)
    
    if created:
        ledger.transactions.extend(created)
        ledger.touch()
    refresh_metadata(ledger)
    
    logger.info(
        "materialized_occurrences",
        ledger_id=str(ledger.id),
        as_of=as_of.isoformat(),
        count=len(created),
    )
    return MaterializationResult(created=created)
