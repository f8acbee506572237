"""
Simulation Models

A simulation is a named, ordered list of hypothetical changes against the
ledger's transactions. It is stored inside the ledger but never changes
the ledger until it is applied.

DESIGN DECISION: Changes are a tagged union keyed on "kind" so the JSON
file stays readable and new change kinds can be added without breaking
older files.
"""

from datetime import date, datetime
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SerializerFunctionWrapHandler,
    field_validator,
    model_serializer,
)

from budget_engine.models.common import Money, normalize_currency, utcnow
from budget_engine.models.entities import Transaction, TransactionStatus


class SimulationStatus(str, Enum):
    """Lifecycle: DRAFT -> APPLIED or DRAFT -> DISCARDED."""
    DRAFT = "draft"
    APPLIED = "applied"
    DISCARDED = "discarded"


class TransactionPatch(BaseModel):
    """
    Partial update for a transaction.
    
    Only fields that were explicitly provided are applied (and persisted),
    so a patch can set a field to None without being confused with
    "leave unchanged". Keys this version does not know are kept and
    written back, but never applied.
    """
    model_config = ConfigDict(extra="allow")
    
    from_account: Optional[UUID] = None
    to_account: Optional[UUID] = None
    category_id: Optional[UUID] = None
    scheduled_date: Optional[date] = None
    budgeted_amount: Optional[Money] = None
    actual_date: Optional[date] = None
    actual_amount: Optional[Money] = None
    currency: Optional[str] = None
    status: Optional[TransactionStatus] = None
    notes: Optional[str] = None
    
    @field_validator('currency')
    @classmethod
    def validate_currency(cls, v: Optional[str]) -> Optional[str]:
        return normalize_currency(v)
    
    @model_serializer(mode="wrap")
    def _serialize_set_fields(self, handler: SerializerFunctionWrapHandler) -> dict[str, Any]:
        data = handler(self)
        keep = self.model_fields_set | set(self.model_extra or {})
        return {key: value for key, value in data.items() if key in keep}
    
    @property
    def applied_fields(self) -> set[str]:
        """Declared fields that were explicitly provided."""
        return self.model_fields_set & set(type(self).model_fields)
    
    @property
    def is_empty(self) -> bool:
        return not self.applied_fields
    
    def apply_to(self, transaction: Transaction) -> Transaction:
        """
        Return a patched, re-validated copy of the transaction.
        
        Raises pydantic's ValidationError if the result is inconsistent
        (e.g. an actual date without an actual amount).
        """
        data = transaction.model_dump()
        for name in self.applied_fields:
            data[name] = getattr(self, name)
        return Transaction.model_validate(data)


class AddTransaction(BaseModel):
    model_config = ConfigDict(extra="allow")
    
    kind: Literal["add_transaction"] = "add_transaction"
    transaction: Transaction
    
    @property
    def target_id(self) -> UUID:
        return self.transaction.id


class ModifyTransaction(BaseModel):
    model_config = ConfigDict(extra="allow")
    
    kind: Literal["modify_transaction"] = "modify_transaction"
    target_id: UUID
    patch: TransactionPatch


class ExcludeTransaction(BaseModel):
    model_config = ConfigDict(extra="allow")
    
    kind: Literal["exclude_transaction"] = "exclude_transaction"
    target_id: UUID


SimulationChange = Annotated[
    Union[AddTransaction, ModifyTransaction, ExcludeTransaction],
    Field(discriminator="kind"),
]


class Simulation(BaseModel):
    """A named what-if scenario."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="allow")
    
    id: UUID = Field(default_factory=uuid4)
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Unique, case-sensitive key within the ledger"
    )
    notes: Optional[str] = Field(default=None, max_length=1000)
    status: SimulationStatus = SimulationStatus.DRAFT
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    applied_at: Optional[datetime] = None
    changes: list[SimulationChange] = Field(default_factory=list)
    
    @property
    def is_editable(self) -> bool:
        return self.status == SimulationStatus.DRAFT
    
    def touch(self) -> None:
        self.updated_at = utcnow()
