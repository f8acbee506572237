"""
Ledger Mutation Service

The narrow API callers use to edit a ledger: accounts, categories,
transactions and their recurrence rules.

DESIGN DECISION: Every operation follows the same three steps:
1. Validate against the current ledger and raise before touching anything
2. Apply the change
3. Refresh recurrence metadata and bump updated_at

Removals never cascade. If something still points at the removed entity
the removal goes through and the dangling references come back as
warnings, matching how a loaded file with the same problem is treated.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

import structlog
from pydantic import BaseModel, ValidationError

from budget_engine.errors import (
    CurrencyMismatchError,
    InvalidInputError,
    NotFoundError,
)
from budget_engine.models.entities import (
    Account,
    Category,
    Transaction,
    TransactionStatus,
)
from budget_engine.models.ledger import Ledger
from budget_engine.models.recurrence import Recurrence, RecurrenceStatus
from budget_engine.recurrence.engine import refresh_metadata
from budget_engine.validation.validator import LedgerValidator


logger = structlog.get_logger(__name__)


def _rebuild(model: BaseModel, changes: dict[str, Any]) -> Any:
    """Re-validate a model with some fields replaced."""
    if "id" in changes and changes["id"] != model.id:
        raise InvalidInputError("Ids cannot be changed", details={"id": str(model.id)})
    data = model.model_dump()
    data.update(changes)
    try:
        return type(model).model_validate(data)
    except ValidationError as e:
        raise InvalidInputError(
            f"Invalid {type(model).__name__.lower()}: {e.errors()[0]['msg']}",
            details={"errors": e.errors(include_url=False)},
        ) from e


def _replace(items: list, updated: Any) -> None:
    for idx, item in enumerate(items):
        if item.id == updated.id:
            items[idx] = updated
            return


class LedgerService:
    """
    Validated mutations on a ledger.
    
    The service holds no ledger state; every method receives the ledger it
    works on, so the caller controls locking and snapshots.
    """
    
    def __init__(self, validator: Optional[LedgerValidator] = None):
        self._validator = validator or LedgerValidator(severity="error")
    
    def _after_mutation(self, ledger: Ledger, operation: str) -> None:
        refresh_metadata(ledger)
        ledger.touch()
        logger.debug("ledger_mutated", ledger_id=str(ledger.id), operation=operation)
    
    def _raise_issues(self, issues: list) -> None:
        errors = [issue for issue in issues if issue.severity == "error"]
        if not errors:
            return
        first = errors[0]
        exc_type = CurrencyMismatchError if first.issue_type == "currency_mismatch" else InvalidInputError
        raise exc_type(
            first.message,
            details={"issues": [issue.model_dump(mode="json") for issue in errors]},
        )
    
    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------
    
    def get_account(self, ledger: Ledger, account_id: UUID) -> Account:
        account = ledger.get_account(account_id)
        if account is None:
            raise NotFoundError(f"Account {account_id} not found", details={"id": str(account_id)})
        return account
    
    def add_account(self, ledger: Ledger, account: Account) -> Account:
        if ledger.get_account(account.id) is not None:
            raise InvalidInputError(f"Account {account.id} already exists")
        ledger.accounts.append(account)
        self._after_mutation(ledger, "add_account")
        return account
    
    def update_account(self, ledger: Ledger, account_id: UUID, **changes: Any) -> Account:
        updated = _rebuild(self.get_account(ledger, account_id), changes)
        _replace(ledger.accounts, updated)
        self._after_mutation(ledger, "update_account")
        return updated
    
    def remove_account(self, ledger: Ledger, account_id: UUID) -> list[str]:
        """Remove an account. Returns warnings for transactions still using it."""
        account = self.get_account(ledger, account_id)
        users = [
            t for t in ledger.transactions
            if account_id in (t.from_account, t.to_account)
        ]
        ledger.accounts = [a for a in ledger.accounts if a.id != account_id]
        self._after_mutation(ledger, "remove_account")
        return [
            f"Transaction {t.id} still references removed account '{account.name}'"
            for t in users
        ]
    
    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------
    
    def get_category(self, ledger: Ledger, category_id: UUID) -> Category:
        category = ledger.get_category(category_id)
        if category is None:
            raise NotFoundError(f"Category {category_id} not found", details={"id": str(category_id)})
        return category
    
    def add_category(self, ledger: Ledger, category: Category) -> Category:
        if ledger.get_category(category.id) is not None:
            raise InvalidInputError(f"Category {category.id} already exists")
        self._raise_issues(self._validator.check_category_parent(ledger, category))
        ledger.categories.append(category)
        self._after_mutation(ledger, "add_category")
        return category
    
    def update_category(self, ledger: Ledger, category_id: UUID, **changes: Any) -> Category:
        updated = _rebuild(self.get_category(ledger, category_id), changes)
        self._raise_issues(self._validator.check_category_parent(ledger, updated))
        _replace(ledger.categories, updated)
        self._after_mutation(ledger, "update_category")
        return updated
    
    def remove_category(self, ledger: Ledger, category_id: UUID) -> list[str]:
        """Remove a category. Returns warnings for subcategories and transactions still using it."""
        category = self.get_category(ledger, category_id)
        warnings = [
            f"Subcategory '{c.name}' still references removed category '{category.name}'"
            for c in ledger.categories
            if c.parent_id == category_id
        ]
        warnings.extend(
            f"Transaction {t.id} still references removed category '{category.name}'"
            for t in ledger.transactions
            if t.category_id == category_id
        )
        ledger.categories = [c for c in ledger.categories if c.id != category_id]
        self._after_mutation(ledger, "remove_category")
        return warnings
    
    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------
    
    def get_transaction(self, ledger: Ledger, transaction_id: UUID) -> Transaction:
        txn = ledger.get_transaction(transaction_id)
        if txn is None:
            raise NotFoundError(
                f"Transaction {transaction_id} not found",
                details={"id": str(transaction_id)},
            )
        return txn
    
    def _check_transaction(self, ledger: Ledger, txn: Transaction) -> None:
        self._raise_issues(self._validator.check_transaction_refs(ledger, txn))
        self._raise_issues(self._validator.check_transaction_currency(ledger, txn))
    
    def add_transaction(self, ledger: Ledger, txn: Transaction) -> Transaction:
        if ledger.get_transaction(txn.id) is not None:
            raise InvalidInputError(f"Transaction {txn.id} already exists")
        self._check_transaction(ledger, txn)
        ledger.transactions.append(txn)
        self._after_mutation(ledger, "add_transaction")
        return txn
    
    def update_transaction(self, ledger: Ledger, transaction_id: UUID, **changes: Any) -> Transaction:
        updated = _rebuild(self.get_transaction(ledger, transaction_id), changes)
        self._check_transaction(ledger, updated)
        _replace(ledger.transactions, updated)
        self._after_mutation(ledger, "update_transaction")
        return updated
    
    def remove_transaction(self, ledger: Ledger, transaction_id: UUID) -> list[str]:
        """Remove a transaction. Removing a template leaves its instances in place."""
        txn = self.get_transaction(ledger, transaction_id)
        warnings = []
        if txn.recurrence is not None:
            instances = [
                t for t in ledger.transactions
                if t.id != txn.id and t.series_id == txn.recurrence.series_id
            ]
            if instances:
                warnings.append(
                    f"{len(instances)} materialized occurrences of series "
                    f"{txn.recurrence.series_id} remain without a template"
                )
        ledger.transactions = [t for t in ledger.transactions if t.id != transaction_id]
        self._after_mutation(ledger, "remove_transaction")
        return warnings
    
    def complete_transaction(
        self,
        ledger: Ledger,
        transaction_id: UUID,
        actual_date: date,
        actual_amount: Decimal,
    ) -> Transaction:
        """Record when and for how much a transaction actually happened."""
        return self.update_transaction(
            ledger,
            transaction_id,
            actual_date=actual_date,
            actual_amount=actual_amount,
            status=TransactionStatus.COMPLETED,
        )
    
    # ------------------------------------------------------------------
    # Recurrence rules
    # ------------------------------------------------------------------
    
    def _template(self, ledger: Ledger, transaction_id: UUID) -> Transaction:
        txn = self.get_transaction(ledger, transaction_id)
        if txn.recurrence is None:
            raise InvalidInputError(
                f"Transaction {transaction_id} has no recurrence",
                details={"id": str(transaction_id)},
            )
        return txn
    
    def set_recurrence(
        self,
        ledger: Ledger,
        transaction_id: UUID,
        recurrence: Recurrence,
    ) -> Transaction:
        """Attach (or replace) the rule on a transaction, making it a template."""
        txn = self.get_transaction(ledger, transaction_id)
        if txn.series_id is not None:
            raise InvalidInputError(
                "A materialized occurrence cannot carry its own recurrence",
                details={"id": str(transaction_id), "series_id": str(txn.series_id)},
            )
        rule = recurrence.model_copy(deep=True)
        if rule.series_id is None:
            rule.series_id = (
                txn.recurrence.series_id if txn.recurrence is not None else txn.id
            )
        txn.recurrence = rule
        self._after_mutation(ledger, "set_recurrence")
        return txn
    
    def clear_recurrence(self, ledger: Ledger, transaction_id: UUID) -> Transaction:
        txn = self._template(ledger, transaction_id)
        txn.recurrence = None
        self._after_mutation(ledger, "clear_recurrence")
        return txn
    
    def pause_recurrence(self, ledger: Ledger, transaction_id: UUID) -> Recurrence:
        rule = self._template(ledger, transaction_id).recurrence
        rule.status = RecurrenceStatus.PAUSED
        self._after_mutation(ledger, "pause_recurrence")
        return rule
    
    def resume_recurrence(self, ledger: Ledger, transaction_id: UUID) -> Recurrence:
        """Resume a paused rule; it becomes completed if nothing is left to schedule."""
        rule = self._template(ledger, transaction_id).recurrence
        rule.status = RecurrenceStatus.ACTIVE
        self._after_mutation(ledger, "resume_recurrence")
        return rule
    
    def skip_occurrence(
        self,
        ledger: Ledger,
        transaction_id: UUID,
        occurrence_date: date,
    ) -> list[str]:
        """Add an exception date so the occurrence is never scheduled."""
        rule = self._template(ledger, transaction_id).recurrence
        rule.exceptions = sorted(set(rule.exceptions) | {occurrence_date})
        warnings = [
            f"Transaction {t.id} was already materialized for {occurrence_date.isoformat()}"
            for t in ledger.transactions
            if t.series_key == rule.series_id and t.scheduled_date == occurrence_date
        ]
        self._after_mutation(ledger, "skip_occurrence")
        return warnings
