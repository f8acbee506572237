"""Ledger validation package."""

from budget_engine.validation.validator import LedgerValidator

__all__ = ["LedgerValidator"]
