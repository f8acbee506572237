"""
Recurrence Rule Models

A recurrence is embedded in exactly one "template" transaction and
describes how that transaction repeats.

DESIGN DECISION: The rule fields (start, interval, mode, end, exceptions,
status) are authoritative. The derived fields (last_generated,
last_completed, generated_occurrences, next_scheduled) are only a cache
that refresh_metadata rebuilds from the rule and the ledger. Missing or
stale derived values must never break anything.
"""

from datetime import date
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


class IntervalUnit(str, Enum):
    """Calendar unit of a repeat interval."""
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


class RecurrenceMode(str, Enum):
    """
    How the next occurrence is derived.
    
    FIXED_SCHEDULE: always counted from the start date.
    AFTER_LAST_PERFORMED: counted from when the previous occurrence was
    actually performed (e.g. "water plants 7 days after last watering").
    """
    FIXED_SCHEDULE = "fixed_schedule"
    AFTER_LAST_PERFORMED = "after_last_performed"


class RecurrenceEndKind(str, Enum):
    NEVER = "never"
    AFTER = "after"
    ON_DATE = "on_date"


class RecurrenceStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


class TimeInterval(BaseModel):
    """Every N days/weeks/months/years."""
    model_config = ConfigDict(extra="allow")
    
    every: int = Field(
        default=1,
        ge=1,
        description="Number of units between occurrences"
    )
    unit: IntervalUnit = Field(
        default=IntervalUnit.MONTH,
        description="Calendar unit"
    )
    
    def label(self) -> str:
        if self.every == 1:
            return f"every {self.unit.value}"
        return f"every {self.every} {self.unit.value}s"


class RecurrenceEnd(BaseModel):
    """When a recurrence stops producing occurrences."""
    model_config = ConfigDict(extra="allow")
    
    kind: RecurrenceEndKind = RecurrenceEndKind.NEVER
    count: Optional[int] = Field(
        default=None,
        ge=1,
        description="Total occurrences for kind=after"
    )
    until: Optional[date] = Field(
        default=None,
        description="Last allowed date (inclusive) for kind=on_date"
    )
    
    @model_validator(mode='after')
    def validate_kind_fields(self) -> 'RecurrenceEnd':
        if self.kind == RecurrenceEndKind.AFTER and self.count is None:
            raise ValueError("An 'after' end condition requires a count")
        if self.kind == RecurrenceEndKind.ON_DATE and self.until is None:
            raise ValueError("An 'on_date' end condition requires a date")
        return self
    
    @classmethod
    def never(cls) -> 'RecurrenceEnd':
        return cls(kind=RecurrenceEndKind.NEVER)
    
    @classmethod
    def after(cls, count: int) -> 'RecurrenceEnd':
        return cls(kind=RecurrenceEndKind.AFTER, count=count)
    
    @classmethod
    def on(cls, until: date) -> 'RecurrenceEnd':
        return cls(kind=RecurrenceEndKind.ON_DATE, until=until)


class Recurrence(BaseModel):
    """
    A repeat rule owned by a template transaction.
    
    The series id defaults to the template's id (filled in by Transaction).
    Every materialized instance carries the same series id.
    """
    model_config = ConfigDict(extra="allow")
    
    series_id: Optional[UUID] = Field(
        default=None,
        description="Stable identifier shared by all instances of the series"
    )
    start_date: date = Field(
        ...,
        description="First occurrence"
    )
    interval: TimeInterval = Field(default_factory=TimeInterval)
    mode: RecurrenceMode = RecurrenceMode.FIXED_SCHEDULE
    end: RecurrenceEnd = Field(default_factory=RecurrenceEnd)
    exceptions: list[date] = Field(
        default_factory=list,
        description="Occurrence dates to skip"
    )
    status: RecurrenceStatus = RecurrenceStatus.ACTIVE
    
    # Derived metadata (cache)
    last_generated: Optional[date] = None
    last_completed: Optional[date] = None
    generated_occurrences: int = Field(default=0, ge=0)
    next_scheduled: Optional[date] = None
    
    @field_validator('exceptions')
    @classmethod
    def normalize_exceptions(cls, v: list[date]) -> list[date]:
        """Keep exception dates unique and ordered."""
        return sorted(set(v))
    
    @model_validator(mode='after')
    def validate_end_after_start(self) -> 'Recurrence':
        if (
            self.end.kind == RecurrenceEndKind.ON_DATE
            and self.end.until is not None
            and self.end.until < self.start_date
        ):
            raise ValueError("Recurrence end date cannot be before its start date")
        return self
    
    @property
    def is_active(self) -> bool:
        return self.status == RecurrenceStatus.ACTIVE
