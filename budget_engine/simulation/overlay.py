"""
Simulation Overlay

Named what-if change sets against a ledger's transactions.

DESIGN DECISION: The overlaid view is recomputed from the live ledger on
every call and never cached, so it always reflects the latest edits.
Previewing is forgiving (a change whose target has since disappeared is
skipped with a warning). Applying is strict: every change must still fit,
or nothing is applied.

Lifecycle: DRAFT -> APPLIED | DISCARDED. Only drafts accept edits, and
both terminal states are kept in the ledger for audit.
"""

from typing import Optional

import structlog
from pydantic import ValidationError

from budget_engine.errors import (
    CurrencyMismatchError,
    InvalidInputError,
    NotFoundError,
    SimulationStateError,
)
from budget_engine.models.common import utcnow
from budget_engine.models.entities import Transaction
from budget_engine.models.ledger import Ledger
from budget_engine.models.simulation import (
    AddTransaction,
    ExcludeTransaction,
    ModifyTransaction,
    Simulation,
    SimulationChange,
    SimulationStatus,
)
from budget_engine.recurrence.engine import refresh_metadata
from budget_engine.validation.validator import LedgerValidator


logger = structlog.get_logger(__name__)


def create_simulation(ledger: Ledger, name: str, notes: Optional[str] = None) -> Simulation:
    """Register a new draft simulation. Names are unique and case-sensitive."""
    name = name.strip()
    if ledger.get_simulation(name) is not None:
        raise InvalidInputError(
            f"Simulation '{name}' already exists",
            details={"name": name},
        )
    simulation = Simulation(name=name, notes=notes)
    ledger.simulations.append(simulation)
    ledger.touch()
    return simulation


def get_simulation(ledger: Ledger, name: str) -> Simulation:
    simulation = ledger.get_simulation(name)
    if simulation is None:
        raise NotFoundError(f"Simulation '{name}' not found", details={"name": name})
    return simulation


def _ensure_draft(simulation: Simulation, action: str) -> None:
    if simulation.status != SimulationStatus.DRAFT:
        raise SimulationStateError(
            f"Cannot {action} simulation '{simulation.name}': it is {simulation.status.value}",
            details={"name": simulation.name, "status": simulation.status.value},
        )


def _find(transactions: list[Transaction], transaction_id) -> Optional[int]:
    for idx, txn in enumerate(transactions):
        if txn.id == transaction_id:
            return idx
    return None


def _ensure_ledger_currency(ledger: Ledger, txn: Transaction, position: int) -> None:
    issues = LedgerValidator(severity="error").check_transaction_currency(ledger, txn)
    if issues:
        raise CurrencyMismatchError(
            f"Simulation change #{position + 1} cannot be applied: {issues[0].message}",
            details={"position": position, "transaction_id": str(txn.id)},
        )


def _fold(
    transactions: list[Transaction],
    changes: list[SimulationChange],
    strict: bool,
    offset: int = 0,
    ledger: Optional[Ledger] = None,
) -> list[Transaction]:
    """
    Apply changes in order to a list of transaction copies.
    
    In strict mode a change that does not fit raises InvalidInputError;
    otherwise it is skipped and logged. A strict fold given the ledger
    also refuses added or patched transactions in a foreign currency.
    """
    result = [txn.model_copy(deep=True) for txn in transactions]
    
    for position, change in enumerate(changes, start=offset):
        problem: Optional[str] = None
        changed: Optional[Transaction] = None
        
        if isinstance(change, AddTransaction):
            if _find(result, change.transaction.id) is not None:
                problem = f"transaction {change.transaction.id} already exists"
            else:
                changed = change.transaction.model_copy(deep=True)
                result.append(changed)
        
        elif isinstance(change, ModifyTransaction):
            idx = _find(result, change.target_id)
            if idx is None:
                problem = f"transaction {change.target_id} not found"
            else:
                try:
                    changed = change.patch.apply_to(result[idx])
                    result[idx] = changed
                except ValidationError as e:
                    problem = f"patch for {change.target_id} is invalid: {e.errors()[0]['msg']}"
        
        elif isinstance(change, ExcludeTransaction):
            idx = _find(result, change.target_id)
            if idx is None:
                problem = f"transaction {change.target_id} not found"
            else:
                del result[idx]
        
        if problem is None:
            if strict and ledger is not None and changed is not None:
                _ensure_ledger_currency(ledger, changed, position)
            continue
        if strict:
            raise InvalidInputError(
                f"Simulation change #{position + 1} cannot be applied: {problem}",
                details={"position": position, "kind": change.kind},
            )
        logger.warning(
            "simulation_overlay_missing_target",
            position=position,
            kind=change.kind,
            problem=problem,
        )
    
    return result


def _check_change(
    ledger: Ledger,
    simulation: Simulation,
    change: SimulationChange,
    position: int,
) -> None:
    """Validate a change against the ledger plus the changes before it."""
    base = _fold(ledger.transactions, simulation.changes[:position], strict=False)
    _fold(base, [change], strict=True, offset=position, ledger=ledger)


def add_change(ledger: Ledger, simulation: Simulation, change: SimulationChange) -> None:
    """Append a change to a draft simulation."""
    _ensure_draft(simulation, "modify")
    _check_change(ledger, simulation, change, len(simulation.changes))
    simulation.changes.append(change)
    simulation.touch()


def modify_change(
    ledger: Ledger,
    simulation: Simulation,
    index: int,
    change: SimulationChange,
) -> None:
    """Replace the change at `index` in a draft simulation."""
    _ensure_draft(simulation, "modify")
    if not 0 <= index < len(simulation.changes):
        raise InvalidInputError(
            f"Simulation '{simulation.name}' has no change at index {index}",
            details={"index": index},
        )
    _check_change(ledger, simulation, change, index)
    simulation.changes[index] = change
    simulation.touch()


def remove_change(simulation: Simulation, index: int) -> SimulationChange:
    """Remove and return the change at `index` of a draft simulation."""
    _ensure_draft(simulation, "modify")
    if not 0 <= index < len(simulation.changes):
        raise InvalidInputError(
            f"Simulation '{simulation.name}' has no change at index {index}",
            details={"index": index},
        )
    removed = simulation.changes.pop(index)
    simulation.touch()
    return removed


def overlay_transactions(ledger: Ledger, simulation: Simulation) -> list[Transaction]:
    """
    The ledger's transactions as they would look with the simulation applied.
    
    Returns fresh copies; the ledger is not modified.
    """
    return _fold(ledger.transactions, simulation.changes, strict=False)


def apply(ledger: Ledger, simulation: Simulation) -> list[str]:
    """
    Fold a draft simulation into the ledger and mark it applied.
    
    Either every change is applied or none is. Returns cross-reference
    warnings about the resulting ledger.
    
    Raises:
        SimulationStateError: If the simulation is not a draft
        InvalidInputError: If a change no longer fits the ledger
        CurrencyMismatchError: If a change brings in a foreign currency
    """
    _ensure_draft(simulation, "apply")
    folded = _fold(ledger.transactions, simulation.changes, strict=True, ledger=ledger)
    
    ledger.transactions = folded
    refresh_metadata(ledger)
    
    now = utcnow()
    simulation.status = SimulationStatus.APPLIED
    simulation.applied_at = now
    simulation.updated_at = now
    ledger.touch()
    
    warnings = LedgerValidator().validate(ledger).warnings
    logger.info(
        "simulation_applied",
        ledger_id=str(ledger.id),
        simulation=simulation.name,
        changes=len(simulation.changes),
        warnings=len(warnings),
    )
    return warnings


def discard(simulation: Simulation) -> None:
    """Mark a draft simulation as discarded. The record is kept."""
    _ensure_draft(simulation, "discard")
    simulation.status = SimulationStatus.DISCARDED
    simulation.touch()
    logger.info("simulation_discarded", simulation=simulation.name)
