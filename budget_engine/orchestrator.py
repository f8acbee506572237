"""
Main Orchestrator for the Budget Engine

Ties the components together behind one explicit ledger handle:
1. Edits (ledger service) and materialization
2. Simulations (create / edit / apply / discard)
3. Reports (forecast, summary, overlay preview)
4. Persistence (save, load, restore)

DESIGN DECISION: The handle enforces the concurrency contract:
- One exclusive lock per ledger; every mutation holds it for its full
  duration and works on a copy that replaces the live ledger only when
  the whole operation succeeded, so no half-applied change is ever visible
- Reads copy a snapshot under the lock and compute outside it
- Every mutation is audited, including refused ones

There is no process-wide "current ledger"; callers pass the handle.
"""

import threading
from datetime import date
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar, Union
from uuid import UUID

import structlog

from budget_engine.audit import AuditLogger, create_correlation_id
from budget_engine.config import get_settings
from budget_engine.errors import BudgetError, PersistenceError
from budget_engine.models.entities import Transaction
from budget_engine.models.ledger import Ledger
from budget_engine.models.recurrence import TimeInterval
from budget_engine.models.reports import (
    BudgetScope,
    BudgetSummary,
    DateWindow,
    ForecastReport,
    MaterializationResult,
)
from budget_engine.models.simulation import Simulation, SimulationChange
from budget_engine.recurrence.engine import materialize_due
from budget_engine.reports import budget_window, forecast_window, summarize
from budget_engine.services.ledger_service import LedgerService
from budget_engine.services.storage import (
    BackupInfo,
    BackupRef,
    JsonLedgerStore,
    JsonlAuditStorage,
    LedgerStorageInterface,
    LoadResult,
)
from budget_engine.simulation import overlay as simulations


logger = structlog.get_logger(__name__)

T = TypeVar("T")


class LedgerHandle:
    """
    Thread-safe access to one ledger.
    
    Mutations:
        handle.mutate("add_account", lambda service, ledger: service.add_account(ledger, acct))
        handle.materialize_due(date.today())
        handle.apply_simulation("New car")
    
    Reads:
        handle.forecast(window)
        handle.summarize(window, simulation_name="New car")
    """
    
    def __init__(
        self,
        ledger: Ledger,
        path: Optional[Union[Path, str]] = None,
        store: Optional[LedgerStorageInterface] = None,
        service: Optional[LedgerService] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._ledger = ledger
        self._path = Path(path) if path is not None else None
        self._store = store or JsonLedgerStore()
        self._service = service or LedgerService()
        self._audit_logger = audit_logger or AuditLogger()
        self._lock = threading.RLock()
    
    @property
    def path(self) -> Optional[Path]:
        return self._path
    
    @property
    def store(self) -> LedgerStorageInterface:
        return self._store
    
    @property
    def ledger_id(self):
        return self._ledger.id
    
    def snapshot(self) -> Ledger:
        """Deep copy of the current ledger."""
        with self._lock:
            return self._ledger.model_copy(deep=True)
    
    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    
    def mutate(
        self,
        operation: str,
        change: Callable[[LedgerService, Ledger], T],
        correlation_id: Optional[UUID] = None,
    ) -> T:
        """
        Run a change against a working copy and publish it on success.
        
        Args:
            operation: Name recorded in the audit trail
            change: Callable receiving the service and the working copy
            correlation_id: Shared with follow-up events of the same operation
        
        Unexpected failures are audited as system errors and re-raised; the
        live ledger is left as it was.
        """
        correlation_id = correlation_id or create_correlation_id()
        with self._lock:
            working = self._ledger.model_copy(deep=True)
            try:
                result = change(self._service, working)
            except (BudgetError, ValueError) as e:
                self._audit_logger.log_mutation_rejected(
                    self._ledger.id, operation, e, correlation_id
                )
                raise
            except Exception as e:
                self._audit_logger.log_error(
                    type(e).__name__,
                    str(e),
                    details={"ledger_id": str(self._ledger.id), "operation": operation},
                    correlation_id=correlation_id,
                )
                raise
            self._ledger = working
        self._audit_logger.log_mutation(working.id, operation, correlation_id)
        return result
    
    def add_transaction(self, txn: Transaction) -> Transaction:
        return self.mutate("add_transaction", lambda svc, ledger: svc.add_transaction(ledger, txn))
    
    def update_transaction(self, transaction_id, **changes: Any) -> Transaction:
        return self.mutate(
            "update_transaction",
            lambda svc, ledger: svc.update_transaction(ledger, transaction_id, **changes),
        )
    
    def remove_transaction(self, transaction_id) -> list[str]:
        return self.mutate(
            "remove_transaction",
            lambda svc, ledger: svc.remove_transaction(ledger, transaction_id),
        )
    
    def materialize_due(self, as_of: date) -> MaterializationResult:
        """Materialize every due recurring occurrence up to as_of."""
        correlation_id = create_correlation_id()
        with self._lock:
            working = self._ledger.model_copy(deep=True)
            result = materialize_due(working, as_of)
            self._ledger = working
        self._audit_logger.log_materialized(
            working.id, result.count, as_of.isoformat(), correlation_id
        )
        return result
    
    # ------------------------------------------------------------------
    # Simulations
    # ------------------------------------------------------------------
    
    def create_simulation(self, name: str, notes: Optional[str] = None) -> Simulation:
        correlation_id = create_correlation_id()
        simulation = self.mutate(
            "create_simulation",
            lambda _, ledger: simulations.create_simulation(ledger, name, notes),
            correlation_id,
        )
        self._audit_logger.log_simulation_created(simulation.id, simulation.name, correlation_id)
        return simulation
    
    def add_simulation_change(self, name: str, change: SimulationChange) -> None:
        self.mutate(
            "add_simulation_change",
            lambda _, ledger: simulations.add_change(
                ledger, simulations.get_simulation(ledger, name), change
            ),
        )
    
    def modify_simulation_change(self, name: str, index: int, change: SimulationChange) -> None:
        self.mutate(
            "modify_simulation_change",
            lambda _, ledger: simulations.modify_change(
                ledger, simulations.get_simulation(ledger, name), index, change
            ),
        )
    
    def remove_simulation_change(self, name: str, index: int) -> SimulationChange:
        return self.mutate(
            "remove_simulation_change",
            lambda _, ledger: simulations.remove_change(
                simulations.get_simulation(ledger, name), index
            ),
        )
    
    def apply_simulation(self, name: str) -> list[str]:
        """Fold a draft simulation into the ledger. Returns warnings."""
        def _apply(_, ledger: Ledger) -> tuple[Simulation, list[str]]:
            simulation = simulations.get_simulation(ledger, name)
            return simulation, simulations.apply(ledger, simulation)
        
        correlation_id = create_correlation_id()
        simulation, warnings = self.mutate("apply_simulation", _apply, correlation_id)
        self._audit_logger.log_simulation_applied(
            simulation.id, simulation.name, len(simulation.changes), correlation_id
        )
        return warnings
    
    def discard_simulation(self, name: str) -> None:
        def _discard(_, ledger: Ledger) -> Simulation:
            simulation = simulations.get_simulation(ledger, name)
            simulations.discard(simulation)
            ledger.touch()
            return simulation
        
        correlation_id = create_correlation_id()
        simulation = self.mutate("discard_simulation", _discard, correlation_id)
        self._audit_logger.log_simulation_discarded(simulation.id, simulation.name, correlation_id)
    
    # ------------------------------------------------------------------
    # Reads (snapshot, no lock held while computing)
    # ------------------------------------------------------------------
    
    def _simulation(self, ledger: Ledger, name: Optional[str]) -> Optional[Simulation]:
        if name is None:
            return None
        return simulations.get_simulation(ledger, name)
    
    def budget_window(
        self,
        reference: Optional[date] = None,
        scope: BudgetScope = BudgetScope.CURRENT,
    ) -> DateWindow:
        return budget_window(self.snapshot(), reference or date.today(), scope)
    
    def forecast(
        self,
        window: DateWindow,
        simulation_name: Optional[str] = None,
        today: Optional[date] = None,
        top_n: Optional[int] = None,
    ) -> ForecastReport:
        ledger = self.snapshot()
        return forecast_window(
            ledger,
            window,
            self._simulation(ledger, simulation_name),
            today=today,
            top_n=top_n,
        )
    
    def summarize(
        self,
        window: Optional[DateWindow] = None,
        simulation_name: Optional[str] = None,
    ) -> BudgetSummary:
        ledger = self.snapshot()
        window = window or budget_window(ledger, date.today())
        return summarize(ledger, window, self._simulation(ledger, simulation_name))
    
    def overlay(self, simulation_name: str) -> list[Transaction]:
        ledger = self.snapshot()
        return simulations.overlay_transactions(
            ledger, simulations.get_simulation(ledger, simulation_name)
        )
    
    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    
    def _destination(self, destination: Optional[Union[Path, str]]) -> Path:
        if destination is not None:
            return Path(destination)
        if self._path is None:
            raise PersistenceError("No destination given and the ledger has no file yet")
        return self._path
    
    def save(self, destination: Optional[Union[Path, str]] = None) -> Path:
        """Save under the lock so no edit lands halfway through serialization."""
        correlation_id = create_correlation_id()
        with self._lock:
            target = self._destination(destination)
            try:
                written = self._store.save(self._ledger, target)
            except PersistenceError as e:
                self._audit_logger.log_save_failed(
                    self._ledger.id, str(target), e.message, correlation_id
                )
                raise
            self._path = written
            backup = self._store.last_backup
        if backup is not None:
            self._audit_logger.log_backup_created(self._ledger.id, str(backup), correlation_id)
        self._audit_logger.log_ledger_saved(self._ledger.id, str(written), correlation_id)
        return written
    
    def list_backups(self) -> list[BackupInfo]:
        return self._store.list_backups(self._destination(None))
    
    def restore(self, backup: BackupRef) -> LoadResult:
        """Replace the ledger with a backup (the current file is backed up first)."""
        correlation_id = create_correlation_id()
        with self._lock:
            result = self._store.restore(backup, self._destination(None))
            self._ledger = result.ledger
            safety_copy = self._store.last_backup
        if safety_copy is not None:
            self._audit_logger.log_backup_created(result.ledger.id, str(safety_copy), correlation_id)
        backup_path = backup.path if isinstance(backup, BackupInfo) else Path(backup)
        self._audit_logger.log_backup_restored(result.ledger.id, str(backup_path), correlation_id)
        return result


def create_ledger(
    name: str,
    currency: Optional[str] = None,
    budget_period: Optional[TimeInterval] = None,
) -> Ledger:
    """New empty ledger using configured defaults."""
    data: dict[str, Any] = {
        "name": name,
        "currency": currency or get_settings().engine.default_currency,
    }
    if budget_period is not None:
        data["budget_period"] = budget_period
    return Ledger(**data)


def create_app_components(
    data_dir: Optional[Union[Path, str]] = None,
) -> tuple[JsonLedgerStore, AuditLogger]:
    """
    Factory function to create storage and audit components from settings.
    
    Args:
        data_dir: Override for the configured ledger directory
        
    Returns:
        (ledger_store, audit_logger)
    """
    settings = get_settings()
    store = JsonLedgerStore(data_dir=data_dir)
    
    audit_storage = None
    if settings.audit.log_file is not None:
        audit_storage = JsonlAuditStorage(settings.audit.log_file)
    audit_logger = AuditLogger(audit_storage, enabled=settings.audit.enabled)
    
    return store, audit_logger


def open_ledger(
    location: Union[Path, str],
    name: Optional[str] = None,
    store: Optional[JsonLedgerStore] = None,
    audit_logger: Optional[AuditLogger] = None,
) -> tuple[LedgerHandle, list[str]]:
    """
    Open a ledger file, or start a new ledger if it does not exist yet.
    
    Returns:
        (handle, load warnings)
    """
    if store is None or audit_logger is None:
        default_store, default_audit = create_app_components()
        store = store or default_store
        audit_logger = audit_logger or default_audit
    
    path = store.resolve(location)
    correlation_id = create_correlation_id()
    
    if path.exists():
        result = store.load(path)
        audit_logger.log_ledger_loaded(
            result.ledger.id, str(path), result.warnings, result.migrations, correlation_id
        )
        return LedgerHandle(result.ledger, path, store, audit_logger=audit_logger), result.warnings
    
    ledger = create_ledger(name or path.stem)
    audit_logger.log_ledger_created(ledger.id, ledger.name, correlation_id)
    logger.info("ledger_created", ledger_id=str(ledger.id), path=str(path))
    return LedgerHandle(ledger, path, store, audit_logger=audit_logger), []
