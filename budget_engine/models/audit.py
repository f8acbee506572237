"""
Audit Models for the Budget Engine

Every significant change to a ledger is recorded as an audit event.
This provides:
1. Traceability of saves, restores and migrations
2. A record of what each simulation did when it was applied
3. Debugging information when something goes wrong

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from budget_engine.models.common import utcnow


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Ledger lifecycle
    LEDGER_CREATED = "ledger_created"
    LEDGER_LOADED = "ledger_loaded"
    LEDGER_SAVED = "ledger_saved"
    SAVE_FAILED = "save_failed"
    SCHEMA_MIGRATED = "schema_migrated"
    
    # Backups
    BACKUP_CREATED = "backup_created"
    BACKUP_RESTORED = "backup_restored"
    
    # Ledger edits
    LEDGER_MUTATED = "ledger_mutated"
    MUTATION_REJECTED = "mutation_rejected"
    TRANSACTIONS_MATERIALIZED = "transactions_materialized"
    
    # Simulations
    SIMULATION_CREATED = "simulation_created"
    SIMULATION_APPLIED = "simulation_applied"
    SIMULATION_DISCARDED = "simulation_discarded"
    
    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.
    
    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """
    
    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="When the event occurred (UTC)"
    )
    
    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )
    
    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'ledger', 'simulation', 'backup')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )
    
    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., a restore and its reload)"
    )
    
    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )
    
    # Error information (if applicable)
    error_category: Optional[str] = None
    error_message: Optional[str] = None
    
    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_category": self.error_category,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.
    
    Usage:
        event = AuditEventBuilder.ledger_saved(ledger_id, path, correlation_id)
        event = AuditEventBuilder.simulation_applied(ledger_id, name, 3, correlation_id)
    """
    
    @staticmethod
    def ledger_created(
        ledger_id: UUID,
        name: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_CREATED,
            entity_type="ledger",
            entity_id=ledger_id,
            correlation_id=correlation_id,
            description=f"Ledger created: {name}",
            details={"name": name},
        )
    
    @staticmethod
    def ledger_loaded(
        ledger_id: UUID,
        path: str,
        warnings: list[str],
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_LOADED,
            severity=AuditSeverity.WARNING if warnings else AuditSeverity.INFO,
            entity_type="ledger",
            entity_id=ledger_id,
            correlation_id=correlation_id,
            description=f"Ledger loaded from {path} with {len(warnings)} warnings",
            details={"path": path, "warnings": warnings},
        )
    
    @staticmethod
    def ledger_saved(
        ledger_id: UUID,
        path: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_SAVED,
            entity_type="ledger",
            entity_id=ledger_id,
            correlation_id=correlation_id,
            description=f"Ledger saved to {path}",
            details={"path": path},
        )
    
    @staticmethod
    def save_failed(
        ledger_id: UUID,
        path: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="ledger",
            entity_id=ledger_id,
            correlation_id=correlation_id,
            description=f"Saving ledger to {path} failed",
            details={"path": path},
            error_category="persistence",
            error_message=error_message,
        )
    
    @staticmethod
    def schema_migrated(
        ledger_id: UUID,
        steps: list[str],
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SCHEMA_MIGRATED,
            entity_type="ledger",
            entity_id=ledger_id,
            correlation_id=correlation_id,
            description=f"Ledger schema migrated in {len(steps)} steps",
            details={"steps": steps},
        )
    
    @staticmethod
    def backup_created(
        ledger_id: UUID,
        backup_path: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_CREATED,
            entity_type="ledger",
            entity_id=ledger_id,
            correlation_id=correlation_id,
            description=f"Previous ledger file backed up to {backup_path}",
            details={"backup_path": backup_path},
        )
    
    @staticmethod
    def backup_restored(
        ledger_id: UUID,
        backup_path: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_RESTORED,
            severity=AuditSeverity.WARNING,
            entity_type="ledger",
            entity_id=ledger_id,
            correlation_id=correlation_id,
            description=f"Ledger restored from backup {backup_path}",
            details={"backup_path": backup_path},
        )
    
    @staticmethod
    def ledger_mutated(
        ledger_id: UUID,
        operation: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_MUTATED,
            entity_type="ledger",
            entity_id=ledger_id,
            correlation_id=correlation_id,
            description=f"Ledger changed: {operation}",
            details={"operation": operation},
        )
    
    @staticmethod
    def mutation_rejected(
        ledger_id: UUID,
        operation: str,
        error_category: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MUTATION_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="ledger",
            entity_id=ledger_id,
            correlation_id=correlation_id,
            description=f"Ledger change rejected: {operation}",
            details={"operation": operation},
            error_category=error_category,
            error_message=error_message,
        )
    
    @staticmethod
    def transactions_materialized(
        ledger_id: UUID,
        count: int,
        as_of: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTIONS_MATERIALIZED,
            entity_type="ledger",
            entity_id=ledger_id,
            correlation_id=correlation_id,
            description=f"Materialized {count} recurring transactions due by {as_of}",
            details={"count": count, "as_of": as_of},
        )
    
    @staticmethod
    def simulation_created(
        simulation_id: UUID,
        name: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SIMULATION_CREATED,
            entity_type="simulation",
            entity_id=simulation_id,
            correlation_id=correlation_id,
            description=f"Simulation created: {name}",
            details={"name": name},
        )
    
    @staticmethod
    def simulation_applied(
        simulation_id: UUID,
        name: str,
        change_count: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SIMULATION_APPLIED,
            entity_type="simulation",
            entity_id=simulation_id,
            correlation_id=correlation_id,
            description=f"Simulation applied: {name} ({change_count} changes)",
            details={"name": name, "change_count": change_count},
        )
    
    @staticmethod
    def simulation_discarded(
        simulation_id: UUID,
        name: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SIMULATION_DISCARDED,
            entity_type="simulation",
            entity_id=simulation_id,
            correlation_id=correlation_id,
            description=f"Simulation discarded: {name}",
            details={"name": name},
        )
    
    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            correlation_id=correlation_id,
            description=f"System error: {error_type}",
            details=details or {},
            error_category="internal",
            error_message=error_message,
        )
