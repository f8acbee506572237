"""
Ledger Entities: accounts, categories and transactions.

These models are pure: constructing one validates it, nothing here does
I/O or looks at other entities. Checks that need the whole ledger (does
this account exist? would this parent create a cycle?) live in the
ledger service and the ledger validator.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from budget_engine.models.common import Money, normalize_currency
from budget_engine.models.recurrence import Recurrence


class AccountKind(str, Enum):
    """Where money lives (assets), is owed (liabilities) or is spent/earned (category buckets)."""
    ASSET = "asset"
    LIABILITY = "liability"
    CATEGORY = "category"


class CategoryKind(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER = "transfer"


class TransactionStatus(str, Enum):
    SCHEDULED = "scheduled"
    PENDING = "pending"
    COMPLETED = "completed"


class Account(BaseModel):
    """A ledger account."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="allow")
    
    id: UUID = Field(default_factory=uuid4)
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Display name"
    )
    kind: AccountKind = AccountKind.ASSET
    currency: Optional[str] = Field(
        default=None,
        description="Currency override; defaults to the ledger currency"
    )
    notes: Optional[str] = Field(default=None, max_length=1000)
    
    @field_validator('currency')
    @classmethod
    def validate_currency(cls, v: Optional[str]) -> Optional[str]:
        return normalize_currency(v)


class Category(BaseModel):
    """
    A budgeting category.
    
    Categories may have one parent; the parent itself must be top-level.
    """
    model_config = ConfigDict(str_strip_whitespace=True, extra="allow")
    
    id: UUID = Field(default_factory=uuid4)
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
    )
    kind: CategoryKind = CategoryKind.EXPENSE
    parent_id: Optional[UUID] = None
    notes: Optional[str] = Field(default=None, max_length=1000)
    
    @model_validator(mode='after')
    def validate_not_own_parent(self) -> 'Category':
        if self.parent_id is not None and self.parent_id == self.id:
            raise ValueError("A category cannot be its own parent")
        return self


class Transaction(BaseModel):
    """
    A planned or performed movement of money between two accounts.
    
    A transaction carrying a recurrence is a "template". Instances
    materialized from it carry the template's series id in series_id.
    """
    model_config = ConfigDict(str_strip_whitespace=True, extra="allow")
    
    id: UUID = Field(default_factory=uuid4)
    from_account: UUID = Field(..., description="Source account")
    to_account: UUID = Field(..., description="Destination account")
    category_id: Optional[UUID] = None
    
    scheduled_date: date = Field(..., description="When the transaction is planned")
    budgeted_amount: Money = Field(..., description="Planned amount")
    
    # Populated together once the transaction is performed
    actual_date: Optional[date] = None
    actual_amount: Optional[Money] = None
    
    currency: Optional[str] = Field(
        default=None,
        description="Currency; defaults to the ledger currency"
    )
    status: TransactionStatus = TransactionStatus.SCHEDULED
    notes: Optional[str] = Field(default=None, max_length=1000)
    
    recurrence: Optional[Recurrence] = None
    series_id: Optional[UUID] = Field(
        default=None,
        description="Series this instance was materialized from"
    )
    
    @field_validator('currency')
    @classmethod
    def validate_currency(cls, v: Optional[str]) -> Optional[str]:
        return normalize_currency(v)
    
    @model_validator(mode='after')
    def validate_actuals(self) -> 'Transaction':
        """Actual date and amount are set together or not at all."""
        if (self.actual_date is None) != (self.actual_amount is None):
            raise ValueError("Actual date and actual amount must be set together")
        if self.recurrence is not None and self.recurrence.series_id is None:
            self.recurrence.series_id = self.id
        return self
    
    @property
    def series_key(self) -> Optional[UUID]:
        """Series this transaction belongs to, if any."""
        if self.recurrence is not None:
            return self.recurrence.series_id
        return self.series_id
    
    @property
    def is_performed(self) -> bool:
        return self.actual_date is not None
    
    @property
    def effective_amount(self) -> Decimal:
        """Actual amount once performed, budgeted amount before."""
        if self.actual_amount is not None:
            return self.actual_amount
        return self.budgeted_amount
    
    @property
    def effective_date(self) -> date:
        return self.actual_date or self.scheduled_date
