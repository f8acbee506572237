"""
Data Models Package

This package contains all Pydantic models used in the Budget Engine.
All data flowing through the system must conform to these schemas.
"""

from budget_engine.models.common import (
    Money,
    SignedMoney,
    LedgerValidationResult,
    ValidationIssue,
    quantize_money,
    utcnow,
)
from budget_engine.models.recurrence import (
    IntervalUnit,
    Recurrence,
    RecurrenceEnd,
    RecurrenceEndKind,
    RecurrenceMode,
    RecurrenceStatus,
    TimeInterval,
)
from budget_engine.models.entities import (
    Account,
    AccountKind,
    Category,
    CategoryKind,
    Transaction,
    TransactionStatus,
)
from budget_engine.models.simulation import (
    AddTransaction,
    ExcludeTransaction,
    ModifyTransaction,
    Simulation,
    SimulationChange,
    SimulationStatus,
    TransactionPatch,
)
from budget_engine.models.ledger import CURRENT_SCHEMA_VERSION, Ledger
from budget_engine.models.reports import (
    AccountBudget,
    BudgetDelta,
    BudgetHealth,
    BudgetScope,
    BudgetSummary,
    BudgetTotals,
    CategoryBudget,
    DateWindow,
    EntryDirection,
    ForecastEntry,
    ForecastReport,
    MaterializationResult,
    OccurrenceStatus,
    SimulationComparison,
)
from budget_engine.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Common
    "Money",
    "SignedMoney",
    "LedgerValidationResult",
    "ValidationIssue",
    "quantize_money",
    "utcnow",
    # Recurrence
    "IntervalUnit",
    "Recurrence",
    "RecurrenceEnd",
    "RecurrenceEndKind",
    "RecurrenceMode",
    "RecurrenceStatus",
    "TimeInterval",
    # Entities
    "Account",
    "AccountKind",
    "Category",
    "CategoryKind",
    "Transaction",
    "TransactionStatus",
    # Simulations
    "AddTransaction",
    "ExcludeTransaction",
    "ModifyTransaction",
    "Simulation",
    "SimulationChange",
    "SimulationStatus",
    "TransactionPatch",
    # Ledger
    "CURRENT_SCHEMA_VERSION",
    "Ledger",
    # Reports
    "AccountBudget",
    "BudgetDelta",
    "BudgetHealth",
    "BudgetScope",
    "BudgetSummary",
    "BudgetTotals",
    "CategoryBudget",
    "DateWindow",
    "EntryDirection",
    "ForecastEntry",
    "ForecastReport",
    "MaterializationResult",
    "OccurrenceStatus",
    "SimulationComparison",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
