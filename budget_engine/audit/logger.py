"""
Audit Logger

DESIGN DECISION: Every significant change to a ledger is logged.
This provides:
1. Complete traceability of saves, restores and applied simulations
2. Debugging capability
3. A history users can inspect

The audit logger:
- Is synchronous; ledger operations are local and short
- Gracefully handles failures (a broken audit file never blocks a save)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from budget_engine.errors import BudgetError, categorize
from budget_engine.models.audit import AuditEvent, AuditEventBuilder
from budget_engine.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.
    
    Logs events both to:
    1. Structured local log (for debugging)
    2. An audit storage backend (for persistence and user visibility)
    """
    
    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
        enabled: bool = True,
    ):
        """
        Initialize audit logger.
        
        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
            enabled: When False, events are dropped entirely.
        """
        self._storage = storage
        self._enabled = enabled
        self._logger = structlog.get_logger("budget_engine.audit")
    
    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.
        
        Always logs locally. Persists to storage if available.
        
        Returns True if storage write succeeded (or no storage configured).
        """
        if not self._enabled:
            return True
        
        log_dict = event.to_log_dict()
        
        if event.severity.value == "error":
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)
        
        if self._storage:
            try:
                return self._storage.append_event(event)
            except (OSError, ValueError) as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False
        
        return True
    
    def log_ledger_created(self, ledger_id: UUID, name: str, correlation_id: UUID) -> None:
        self.log(AuditEventBuilder.ledger_created(ledger_id, name, correlation_id))
    
    def log_ledger_loaded(
        self,
        ledger_id: UUID,
        path: str,
        warnings: list[str],
        migrations: list[str],
        correlation_id: UUID,
    ) -> None:
        """Log a load, plus a migration event when the schema was upgraded."""
        if migrations:
            self.log(AuditEventBuilder.schema_migrated(ledger_id, migrations, correlation_id))
        self.log(AuditEventBuilder.ledger_loaded(ledger_id, path, warnings, correlation_id))
    
    def log_ledger_saved(self, ledger_id: UUID, path: str, correlation_id: UUID) -> None:
        self.log(AuditEventBuilder.ledger_saved(ledger_id, path, correlation_id))
    
    def log_save_failed(
        self,
        ledger_id: UUID,
        path: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.save_failed(ledger_id, path, error_message, correlation_id))
    
    def log_backup_created(self, ledger_id: UUID, backup_path: str, correlation_id: UUID) -> None:
        self.log(AuditEventBuilder.backup_created(ledger_id, backup_path, correlation_id))
    
    def log_backup_restored(self, ledger_id: UUID, backup_path: str, correlation_id: UUID) -> None:
        self.log(AuditEventBuilder.backup_restored(ledger_id, backup_path, correlation_id))
    
    def log_mutation(self, ledger_id: UUID, operation: str, correlation_id: UUID) -> None:
        self.log(AuditEventBuilder.ledger_mutated(ledger_id, operation, correlation_id))
    
    def log_mutation_rejected(
        self,
        ledger_id: UUID,
        operation: str,
        error: Exception,
        correlation_id: UUID,
    ) -> None:
        """Log a refused change with its error category."""
        message = error.message if isinstance(error, BudgetError) else str(error)
        self.log(AuditEventBuilder.mutation_rejected(
            ledger_id,
            operation,
            categorize(error).value,
            message,
            correlation_id,
        ))
    
    def log_materialized(
        self,
        ledger_id: UUID,
        count: int,
        as_of: str,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.transactions_materialized(ledger_id, count, as_of, correlation_id))
    
    def log_simulation_created(self, simulation_id: UUID, name: str, correlation_id: UUID) -> None:
        self.log(AuditEventBuilder.simulation_created(simulation_id, name, correlation_id))
    
    def log_simulation_applied(
        self,
        simulation_id: UUID,
        name: str,
        change_count: int,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.simulation_applied(simulation_id, name, change_count, correlation_id))
    
    def log_simulation_discarded(self, simulation_id: UUID, name: str, correlation_id: UUID) -> None:
        self.log(AuditEventBuilder.simulation_discarded(simulation_id, name, correlation_id))
    
    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.
    
    Use this at the start of a ledger operation (e.g., a restore).
    Pass it through all subsequent events.
    """
    return uuid4()
