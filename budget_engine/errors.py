"""
Error Hierarchy for the Budget Engine

DESIGN DECISION: Every failure raised by the core belongs to one of a
small, fixed set of categories. Callers sitting behind a binding layer
only need the category to decide how to react; the message and details
are for humans and logs.

Validation and simulation-state errors are raised before anything is
mutated. Persistence errors during a save leave the previous file intact.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import ValidationError


class ErrorCategory(str, Enum):
    """Fixed error categories exposed across the binding boundary."""
    VALIDATION = "validation"
    PERSISTENCE = "persistence"
    CURRENCY_MISMATCH = "currency_mismatch"
    SIMULATION_STATE = "simulation_state"
    INTERNAL = "internal"


class BudgetError(Exception):
    """Base exception for all budget engine failures."""

    category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Payload suitable for JSON marshaling."""
        return {
            "category": self.category.value,
            "message": self.message,
            "details": self.details,
        }


class InvalidInputError(BudgetError):
    """Malformed input, negative amount, unknown id, broken hierarchy."""
    category = ErrorCategory.VALIDATION


class NotFoundError(InvalidInputError):
    """A referenced entity does not exist."""
    pass


class CurrencyMismatchError(InvalidInputError):
    """A transaction uses a currency other than the ledger's (FX rates are disabled)."""
    category = ErrorCategory.CURRENCY_MISMATCH


class SimulationStateError(BudgetError):
    """Operation not allowed in the simulation's current lifecycle state."""
    category = ErrorCategory.SIMULATION_STATE


class PersistenceError(BudgetError):
    """Reading or writing a ledger file failed."""
    category = ErrorCategory.PERSISTENCE


class SchemaVersionError(PersistenceError):
    """File was written by a newer schema than this build understands."""
    pass


class InternalError(BudgetError):
    """An invariant was violated inside the engine."""
    category = ErrorCategory.INTERNAL


class RecurrenceLimitError(InternalError):
    """A recurrence walk exceeded the configured iteration cap."""
    pass


def categorize(exc: BaseException) -> ErrorCategory:
    """
    Map any exception to its error category.

    Engine errors carry their own category. pydantic validation failures
    count as validation, OS-level failures as persistence, anything else
    as internal.
    """
    if isinstance(exc, BudgetError):
        return exc.category
    if isinstance(exc, ValidationError):
        return ErrorCategory.VALIDATION
    if isinstance(exc, OSError):
        return ErrorCategory.PERSISTENCE
    return ErrorCategory.INTERNAL
