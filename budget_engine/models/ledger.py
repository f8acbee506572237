"""
Ledger Model - the ownership root.

The ledger holds ordered collections of accounts, categories,
transactions and simulations, plus the budget period and schema version.
It is the unit that gets saved, loaded, locked and snapshotted.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from budget_engine.models.common import normalize_currency, utcnow
from budget_engine.models.entities import Account, Category, Transaction
from budget_engine.models.recurrence import IntervalUnit, TimeInterval
from budget_engine.models.simulation import Simulation


CURRENT_SCHEMA_VERSION = 4


def _monthly() -> TimeInterval:
    return TimeInterval(every=1, unit=IntervalUnit.MONTH)


class Ledger(BaseModel):
    """
    A complete household ledger.
    
    Unknown fields are kept so files written by newer tools round-trip.
    """
    model_config = ConfigDict(str_strip_whitespace=True, extra="allow")
    
    id: UUID = Field(default_factory=uuid4)
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
    )
    currency: str = Field(
        default="USD",
        description="Single accounting currency"
    )
    budget_period: TimeInterval = Field(default_factory=_monthly)
    
    accounts: list[Account] = Field(default_factory=list)
    categories: list[Category] = Field(default_factory=list)
    transactions: list[Transaction] = Field(default_factory=list)
    simulations: list[Simulation] = Field(default_factory=list)
    
    schema_version: int = Field(default=CURRENT_SCHEMA_VERSION, ge=1)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    
    @field_validator('currency')
    @classmethod
    def validate_currency(cls, v: str) -> str:
        return normalize_currency(v)
    
    def touch(self) -> None:
        self.updated_at = utcnow()
    
    def get_account(self, account_id: Optional[UUID]) -> Optional[Account]:
        return next((a for a in self.accounts if a.id == account_id), None)
    
    def get_category(self, category_id: Optional[UUID]) -> Optional[Category]:
        return next((c for c in self.categories if c.id == category_id), None)
    
    def get_transaction(self, transaction_id: UUID) -> Optional[Transaction]:
        return next((t for t in self.transactions if t.id == transaction_id), None)
    
    def get_simulation(self, name: str) -> Optional[Simulation]:
        """Case-sensitive lookup by name."""
        return next((s for s in self.simulations if s.name == name), None)
    
    def transaction_index(self, transaction_id: UUID) -> Optional[int]:
        for idx, txn in enumerate(self.transactions):
            if txn.id == transaction_id:
                return idx
        return None
    
    def currency_for(self, transaction: Transaction) -> str:
        """
        Effective currency of a transaction.
        
        Explicit transaction currency wins, then the source account's
        override, then the ledger currency.
        """
        if transaction.currency:
            return transaction.currency
        account = self.get_account(transaction.from_account)
        if account is not None and account.currency:
            return account.currency
        return self.currency
