"""
Ledger Consistency Checks

DESIGN DECISION: Consistency is checked in two places with two stances:

ON MUTATION (check_* helpers, used by the ledger service):
- Unknown account/category ids, broken hierarchies and foreign
  currencies are returned as "error" issues and the caller refuses the
  change before touching anything.

ON LOAD (LedgerValidator.validate):
- The same problems are reported as "warning" issues. A file that was
  edited by hand or only partly migrated still loads; the caller decides
  whether to proceed.

IMPORTANT: Validation NEVER silently fixes issues.
It reports them for review.
"""

from collections import Counter
from typing import Optional
from uuid import UUID

from budget_engine.models.common import LedgerValidationResult, ValidationIssue
from budget_engine.models.entities import Category, Transaction
from budget_engine.models.ledger import Ledger
from budget_engine.models.recurrence import RecurrenceStatus


class LedgerValidator:
    """
    Cross-reference validation over a whole ledger.
    
    Each check returns a list of issues; validate() runs them all.
    """
    
    def __init__(self, severity: str = "warning"):
        """
        Initialize validator.
        
        Args:
            severity: Severity used for reference problems. "warning" for
                      the permissive load-time stance, "error" for strict checks.
        """
        self._severity = severity
    
    def check_transaction_refs(
        self,
        ledger: Ledger,
        txn: Transaction,
    ) -> list[ValidationIssue]:
        """Accounts and category referenced by one transaction must exist."""
        issues = []
        
        for field in ("from_account", "to_account"):
            account_id = getattr(txn, field)
            if ledger.get_account(account_id) is None:
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="unknown_account",
                    message=f"Transaction {txn.id} references unknown account {account_id}",
                    severity=self._severity,
                    entity_id=txn.id,
                    suggested_fix="Create the account or point the transaction at an existing one",
                ))
        
        if txn.category_id is not None and ledger.get_category(txn.category_id) is None:
            issues.append(ValidationIssue(
                field="category_id",
                issue_type="unknown_category",
                message=f"Transaction {txn.id} references unknown category {txn.category_id}",
                severity=self._severity,
                entity_id=txn.id,
                suggested_fix="Create the category or clear it on the transaction",
            ))
        
        return issues
    
    def check_transaction_currency(
        self,
        ledger: Ledger,
        txn: Transaction,
    ) -> list[ValidationIssue]:
        currency = ledger.currency_for(txn)
        if currency == ledger.currency:
            return []
        return [ValidationIssue(
            field="currency",
            issue_type="currency_mismatch",
            message=(
                f"Transaction {txn.id} uses {currency} but the ledger uses "
                f"{ledger.currency}; FX rates are disabled"
            ),
            severity=self._severity,
            entity_id=txn.id,
        )]
    
    def check_category_parent(
        self,
        ledger: Ledger,
        category: Category,
    ) -> list[ValidationIssue]:
        """
        A parent must exist, must be top-level, and the category must not
        already be a parent itself (hierarchy is one level deep).
        """
        if category.parent_id is None:
            return []
        
        parent = ledger.get_category(category.parent_id)
        if parent is None:
            return [ValidationIssue(
                field="parent_id",
                issue_type="unknown_category",
                message=f"Category '{category.name}' has unknown parent {category.parent_id}",
                severity=self._severity,
                entity_id=category.id,
            )]
        
        issues = []
        if parent.parent_id is not None:
            issues.append(ValidationIssue(
                field="parent_id",
                issue_type="hierarchy_too_deep",
                message=f"Category '{parent.name}' is itself a subcategory and cannot be a parent",
                severity=self._severity,
                entity_id=category.id,
            ))
        has_children = any(
            c.parent_id == category.id for c in ledger.categories if c.id != category.id
        )
        if has_children:
            issues.append(ValidationIssue(
                field="parent_id",
                issue_type="hierarchy_too_deep",
                message=f"Category '{category.name}' has subcategories and cannot get a parent",
                severity=self._severity,
                entity_id=category.id,
            ))
        return issues
    
    def _check_duplicate_ids(self, ledger: Ledger) -> list[ValidationIssue]:
        issues = []
        collections = {
            "accounts": [a.id for a in ledger.accounts],
            "categories": [c.id for c in ledger.categories],
            "transactions": [t.id for t in ledger.transactions],
            "simulations": [s.id for s in ledger.simulations],
        }
        for field, ids in collections.items():
            for entity_id, count in Counter(ids).items():
                if count > 1:
                    issues.append(ValidationIssue(
                        field=field,
                        issue_type="duplicate_id",
                        message=f"Id {entity_id} appears {count} times in {field}",
                        severity=self._severity,
                        entity_id=entity_id,
                    ))
        
        names = Counter(s.name for s in ledger.simulations)
        for name, count in names.items():
            if count > 1:
                issues.append(ValidationIssue(
                    field="simulations",
                    issue_type="duplicate_name",
                    message=f"Simulation name '{name}' is used {count} times",
                    severity=self._severity,
                ))
        return issues
    
    def _check_recurrences(self, ledger: Ledger) -> list[ValidationIssue]:
        issues = []
        for txn in ledger.transactions:
            rule = txn.recurrence
            if rule is None:
                continue
            if rule.status == RecurrenceStatus.PAUSED and rule.next_scheduled is None:
                issues.append(ValidationIssue(
                    field="recurrence",
                    issue_type="inactive_recurrence",
                    message=(
                        f"Recurrence on transaction {txn.id} is paused and has "
                        "no remaining occurrences"
                    ),
                    severity="info",
                    entity_id=txn.id,
                ))
        return issues
    
    def _check_series_links(self, ledger: Ledger) -> list[ValidationIssue]:
        """Materialized instances should point at a series that still has a template."""
        live_series: set[Optional[UUID]] = {
            t.recurrence.series_id for t in ledger.transactions if t.recurrence is not None
        }
        issues = []
        for txn in ledger.transactions:
            if txn.recurrence is None and txn.series_id is not None and txn.series_id not in live_series:
                issues.append(ValidationIssue(
                    field="series_id",
                    issue_type="orphaned_instance",
                    message=f"Transaction {txn.id} belongs to series {txn.series_id} with no template",
                    severity="info",
                    entity_id=txn.id,
                ))
        return issues
    
    def validate(self, ledger: Ledger) -> LedgerValidationResult:
        """
        Run every check over the ledger.
        
        Returns:
            LedgerValidationResult with all issues found
        """
        issues: list[ValidationIssue] = []
        issues.extend(self._check_duplicate_ids(ledger))
        
        for category in ledger.categories:
            issues.extend(self.check_category_parent(ledger, category))
        
        for txn in ledger.transactions:
            issues.extend(self.check_transaction_refs(ledger, txn))
            issues.extend(self.check_transaction_currency(ledger, txn))
        
        issues.extend(self._check_recurrences(ledger))
        issues.extend(self._check_series_links(ledger))
        
        return LedgerValidationResult(issues=issues)
