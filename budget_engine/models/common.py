"""
Shared Model Building Blocks

Money handling, timestamps and validation issue records used across the
ledger, report and storage models.

DESIGN DECISION: Money is always a Decimal quantized to cents and written
to JSON as a fixed two-decimal string. Floats never touch the ledger, so
saving the same ledger twice produces byte-identical files.
"""

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated, Optional
from uuid import UUID

from pydantic import (
    AfterValidator,
    BaseModel,
    Field,
    PlainSerializer,
)


CENT = Decimal("0.01")


def quantize_money(value: Decimal) -> Decimal:
    """Round a Decimal to cents."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _money_to_str(value: Decimal) -> str:
    return f"{value:.2f}"


# Non-negative amount stored on ledger entities
Money = Annotated[
    Decimal,
    Field(ge=0),
    AfterValidator(quantize_money),
    PlainSerializer(_money_to_str, return_type=str, when_used="json"),
]

# Signed amount used in derived reports (variances, deltas, net flows)
SignedMoney = Annotated[
    Decimal,
    AfterValidator(quantize_money),
    PlainSerializer(_money_to_str, return_type=str, when_used="json"),
]

ZERO = Decimal("0.00")


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def normalize_currency(value: Optional[str]) -> Optional[str]:
    """Upper-case a three-letter currency code, rejecting anything else."""
    if value is None:
        return None
    code = value.strip().upper()
    if len(code) != 3 or not code.isalpha():
        raise ValueError(f"Invalid currency code: {value!r}")
    return code


class ValidationIssue(BaseModel):
    """A single issue found while checking ledger consistency."""
    
    field: str = Field(
        ...,
        description="Field or collection with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'unknown_account', 'duplicate_id')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="Entity the issue was found on"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class LedgerValidationResult(BaseModel):
    """Outcome of a cross-reference check over a whole ledger."""
    
    validated_at: datetime = Field(default_factory=utcnow)
    issues: list[ValidationIssue] = Field(default_factory=list)
    
    @property
    def is_valid(self) -> bool:
        return not any(issue.severity == "error" for issue in self.issues)
    
    @property
    def warnings(self) -> list[str]:
        return [issue.message for issue in self.issues if issue.severity != "info"]
