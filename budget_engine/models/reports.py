"""
Derived Report Models

Windows, budget summaries, forecasts and materialization results.
None of these are persisted; they are recomputed on demand from a ledger
snapshot.
"""

from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from budget_engine.models.common import CENT, ZERO, SignedMoney, quantize_money
from budget_engine.models.entities import Transaction


class DateWindow(BaseModel):
    """Half-open date range [start, end)."""
    
    start: date
    end: date
    
    @model_validator(mode='after')
    def validate_order(self) -> 'DateWindow':
        if self.end < self.start:
            raise ValueError("Window end cannot be before its start")
        return self
    
    def contains(self, value: date) -> bool:
        return self.start <= value < self.end
    
    @property
    def days(self) -> int:
        return (self.end - self.start).days
    
    @property
    def is_empty(self) -> bool:
        return self.start == self.end
    
    @property
    def last_day(self) -> Optional[date]:
        """Last date inside the window, None when empty."""
        if self.is_empty:
            return None
        return self.end - timedelta(days=1)


class BudgetScope(str, Enum):
    PAST = "past"
    CURRENT = "current"
    FUTURE = "future"


class BudgetHealth(str, Enum):
    WITHIN_BUDGET = "within_budget"
    OVER_BUDGET = "over_budget"
    NO_DATA = "no_data"


class BudgetTotals(BaseModel):
    """Budgeted vs. actual for one bucket (or the whole window)."""
    
    budgeted: SignedMoney = ZERO
    actual: SignedMoney = ZERO
    variance: SignedMoney = ZERO
    remaining: SignedMoney = ZERO
    percent_used: Optional[Decimal] = None
    health: BudgetHealth = BudgetHealth.NO_DATA
    incomplete: int = Field(default=0, ge=0)
    
    @classmethod
    def from_parts(
        cls,
        budgeted: Decimal,
        actual: Decimal,
        incomplete: int = 0,
        tolerance: Decimal = ZERO,
    ) -> 'BudgetTotals':
        """
        Derive variance and health from raw sums.
        
        variance = actual - budgeted. A variance above the tolerance is
        over budget; an empty bucket has no data.
        """
        variance = actual - budgeted
        percent_used = None
        if budgeted > 0:
            percent_used = (actual / budgeted * 100).quantize(CENT)
        
        if budgeted == 0 and actual == 0:
            health = BudgetHealth.NO_DATA
        elif variance > tolerance:
            health = BudgetHealth.OVER_BUDGET
        else:
            health = BudgetHealth.WITHIN_BUDGET
        
        return cls(
            budgeted=budgeted,
            actual=actual,
            variance=variance,
            remaining=budgeted - actual,
            percent_used=percent_used,
            health=health,
            incomplete=incomplete,
        )


class CategoryBudget(BaseModel):
    category_id: Optional[UUID] = None
    name: str
    totals: BudgetTotals


class AccountBudget(BaseModel):
    account_id: Optional[UUID] = None
    name: str
    totals: BudgetTotals


class BudgetDelta(BaseModel):
    budgeted: SignedMoney = ZERO
    actual: SignedMoney = ZERO
    variance: SignedMoney = ZERO


class SimulationComparison(BaseModel):
    """Side-by-side totals for the ledger with and without a simulation."""
    
    simulation_name: str
    base: BudgetTotals
    simulated: BudgetTotals
    delta: BudgetDelta
    
    @classmethod
    def between(cls, name: str, base: BudgetTotals, simulated: BudgetTotals) -> 'SimulationComparison':
        return cls(
            simulation_name=name,
            base=base,
            simulated=simulated,
            delta=BudgetDelta(
                budgeted=simulated.budgeted - base.budgeted,
                actual=simulated.actual - base.actual,
                variance=simulated.variance - base.variance,
            ),
        )


class BudgetSummary(BaseModel):
    """Budgeted vs. actual for a window, per category and per account."""
    
    window: DateWindow
    currency: str
    totals: BudgetTotals
    per_category: list[CategoryBudget] = Field(default_factory=list)
    per_account: list[AccountBudget] = Field(default_factory=list)
    orphaned: int = Field(
        default=0,
        description="Entries referencing unknown accounts or categories"
    )
    incomplete: int = Field(
        default=0,
        description="Entries left out of the sums (e.g. foreign currency)"
    )
    warnings: list[str] = Field(default_factory=list)
    comparison: Optional[SimulationComparison] = None
    
    def category(self, category_id: Optional[UUID]) -> Optional[CategoryBudget]:
        return next((c for c in self.per_category if c.category_id == category_id), None)
    
    def account(self, account_id: Optional[UUID]) -> Optional[AccountBudget]:
        return next((a for a in self.per_account if a.account_id == account_id), None)


class OccurrenceStatus(str, Enum):
    OVERDUE = "overdue"
    PENDING = "pending"
    FUTURE = "future"
    COMPLETED = "completed"


class EntryDirection(str, Enum):
    INFLOW = "inflow"
    OUTFLOW = "outflow"
    TRANSFER = "transfer"


class ForecastEntry(BaseModel):
    """One real or projected transaction inside a forecast window."""
    
    transaction_id: UUID
    series_id: Optional[UUID] = None
    occurs_on: date
    amount: SignedMoney
    signed_amount: SignedMoney = Field(
        ...,
        description="Amount with its cash-flow sign; zero for transfers and incomplete entries"
    )
    currency: str
    incomplete: bool = Field(
        default=False,
        description="In a currency other than the ledger's, so left out of the totals"
    )
    direction: EntryDirection
    status: OccurrenceStatus
    is_synthetic: bool = False
    category_id: Optional[UUID] = None
    from_account: UUID
    to_account: UUID
    notes: Optional[str] = None


class ForecastReport(BaseModel):
    """Read-only projection over a window."""
    
    window: DateWindow
    currency: str
    simulation_name: Optional[str] = None
    entries: list[ForecastEntry] = Field(default_factory=list)
    upcoming: list[ForecastEntry] = Field(default_factory=list)
    total_inflow: SignedMoney = ZERO
    total_outflow: SignedMoney = ZERO
    net: SignedMoney = ZERO
    overdue_count: int = 0
    pending_count: int = 0
    future_count: int = 0
    completed_count: int = 0
    synthetic_count: int = 0
    incomplete_count: int = 0
    warnings: list[str] = Field(default_factory=list)
    summary: Optional[BudgetSummary] = None
    
    @property
    def signed_total(self) -> Decimal:
        return quantize_money(sum((e.signed_amount for e in self.entries), ZERO))


class MaterializationResult(BaseModel):
    """Transactions created by one materialization pass."""
    
    created: list[Transaction] = Field(default_factory=list)
    
    @property
    def count(self) -> int:
        return len(self.created)
