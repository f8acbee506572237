"""
Tests for the simulation overlay and lifecycle.
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from budget_engine.errors import (
    CurrencyMismatchError,
    InvalidInputError,
    NotFoundError,
    SimulationStateError,
)
from budget_engine.models import (
    AddTransaction,
    ExcludeTransaction,
    ModifyTransaction,
    SimulationStatus,
    TransactionPatch,
)
from budget_engine.simulation import (
    add_change,
    apply,
    create_simulation,
    discard,
    get_simulation,
    modify_change,
    overlay_transactions,
    remove_change,
)


@pytest.fixture
def rent_march(ledger, make_rent):
    txn = make_rent(date(2025, 3, 1), "1000.00")
    ledger.transactions.append(txn)
    return txn


def _raise_rent(target_id, amount="1100.00"):
    return ModifyTransaction(
        target_id=target_id,
        patch=TransactionPatch(budgeted_amount=Decimal(amount)),
    )


class TestSimulationRegistry:
    """Tests for creating and finding simulations."""

    def test_create_and_get(self, ledger):
        """Test that a new simulation starts as an empty draft."""
        simulation = create_simulation(ledger, "Move out", notes="cheaper flat")

        assert simulation.status == SimulationStatus.DRAFT
        assert simulation.changes == []
        assert get_simulation(ledger, "Move out") is simulation

    def test_duplicate_name_rejected(self, ledger):
        """Test that simulation names are unique."""
        create_simulation(ledger, "Move out")
        with pytest.raises(InvalidInputError):
            create_simulation(ledger, "Move out")

    def test_names_are_case_sensitive(self, ledger):
        """Test that differently cased names are distinct."""
        create_simulation(ledger, "Move out")
        create_simulation(ledger, "move out")
        with pytest.raises(NotFoundError):
            get_simulation(ledger, "MOVE OUT")


class TestSimulationChanges:
    """Tests for editing a draft's change list."""

    def test_add_modify_remove(self, ledger, rent_march, make_rent):
        """Test the full edit cycle on a draft."""
        simulation = create_simulation(ledger, "Plan")
        add_change(ledger, simulation, _raise_rent(rent_march.id))
        add_change(ledger, simulation, AddTransaction(transaction=make_rent(date(2025, 3, 9))))

        modify_change(ledger, simulation, 0, _raise_rent(rent_march.id, "1200.00"))
        assert simulation.changes[0].patch.budgeted_amount == Decimal("1200.00")

        removed = remove_change(simulation, 1)
        assert isinstance(removed, AddTransaction)
        assert len(simulation.changes) == 1

    def test_missing_target_rejected(self, ledger):
        """Test that changes must point at an existing transaction."""
        simulation = create_simulation(ledger, "Plan")
        with pytest.raises(InvalidInputError):
            add_change(ledger, simulation, ExcludeTransaction(target_id=uuid4()))
        assert simulation.changes == []

    def test_change_can_target_earlier_addition(self, ledger, make_rent):
        """Test that a later change sees transactions added earlier in the list."""
        extra = make_rent(date(2025, 3, 9))
        simulation = create_simulation(ledger, "Plan")
        add_change(ledger, simulation, AddTransaction(transaction=extra))
        add_change(ledger, simulation, _raise_rent(extra.id))

        overlaid = overlay_transactions(ledger, simulation)
        assert overlaid[-1].budgeted_amount == Decimal("1100.00")

    def test_duplicate_add_rejected(self, ledger, rent_march):
        """Test that adding an id already in the ledger is rejected."""
        simulation = create_simulation(ledger, "Plan")
        with pytest.raises(InvalidInputError):
            add_change(ledger, simulation, AddTransaction(transaction=rent_march))

    def test_out_of_range_index(self, ledger, rent_march):
        """Test modify and remove with a bad index."""
        simulation = create_simulation(ledger, "Plan")
        with pytest.raises(InvalidInputError):
            modify_change(ledger, simulation, 0, _raise_rent(rent_march.id))
        with pytest.raises(InvalidInputError):
            remove_change(simulation, 3)

    def test_invalid_patch_rejected(self, ledger, rent_march):
        """Test that a patch producing an invalid transaction is rejected."""
        simulation = create_simulation(ledger, "Plan")
        patch = TransactionPatch(actual_date=date(2025, 3, 2))
        with pytest.raises(InvalidInputError):
            add_change(ledger, simulation, ModifyTransaction(target_id=rent_march.id, patch=patch))


class TestOverlay:
    """Tests for overlay_transactions."""

    def test_overlay_does_not_mutate_ledger(self, ledger, rent_march):
        """Test that previewing leaves the ledger byte-identical."""
        simulation = create_simulation(ledger, "Plan")
        add_change(ledger, simulation, _raise_rent(rent_march.id))
        before = ledger.model_dump_json()

        overlaid = overlay_transactions(ledger, simulation)

        assert overlaid[0].budgeted_amount == Decimal("1100.00")
        assert ledger.model_dump_json() == before

    def test_overlay_skips_vanished_targets(self, ledger, rent_march):
        """Test that a preview tolerates a target removed after the change was added."""
        simulation = create_simulation(ledger, "Plan")
        add_change(ledger, simulation, ExcludeTransaction(target_id=rent_march.id))
        ledger.transactions.clear()

        assert overlay_transactions(ledger, simulation) == []

    def test_exclude(self, ledger, rent_march):
        """Test excluding a transaction."""
        simulation = create_simulation(ledger, "Plan")
        add_change(ledger, simulation, ExcludeTransaction(target_id=rent_march.id))
        assert overlay_transactions(ledger, simulation) == []
        assert len(ledger.transactions) == 1


class TestLifecycle:
    """Tests for apply and discard."""

    def test_apply(self, ledger, rent_march, make_rent):
        """Test that applying folds changes into the ledger."""
        extra = make_rent(date(2025, 3, 9), "40.00")
        simulation = create_simulation(ledger, "Plan")
        add_change(ledger, simulation, _raise_rent(rent_march.id))
        add_change(ledger, simulation, AddTransaction(transaction=extra))

        warnings = apply(ledger, simulation)

        assert warnings == []
        assert simulation.status == SimulationStatus.APPLIED
        assert simulation.applied_at is not None
        assert ledger.get_transaction(rent_march.id).budgeted_amount == Decimal("1100.00")
        assert ledger.get_transaction(extra.id) is not None
        assert ledger.get_simulation("Plan") is simulation

    def test_apply_reports_reference_warnings(self, ledger, make_rent):
        """Test that applying surfaces dangling references as warnings."""
        simulation = create_simulation(ledger, "Plan")
        orphan = make_rent(date(2025, 3, 9), category_id=uuid4())
        add_change(ledger, simulation, AddTransaction(transaction=orphan))

        warnings = apply(ledger, simulation)
        assert len(warnings) == 1

    def test_apply_twice_rejected(self, ledger, rent_march):
        """Test that an applied simulation can't be applied again."""
        simulation = create_simulation(ledger, "Plan")
        add_change(ledger, simulation, _raise_rent(rent_march.id))
        apply(ledger, simulation)

        with pytest.raises(SimulationStateError):
            apply(ledger, simulation)
        with pytest.raises(SimulationStateError):
            discard(simulation)

    def test_applied_simulation_is_frozen(self, ledger, rent_march):
        """Test that terminal simulations reject edits."""
        simulation = create_simulation(ledger, "Plan")
        discard(simulation)

        assert simulation.status == SimulationStatus.DISCARDED
        with pytest.raises(SimulationStateError):
            add_change(ledger, simulation, _raise_rent(rent_march.id))
        with pytest.raises(SimulationStateError):
            apply(ledger, simulation)

    def test_strict_apply_is_all_or_nothing(self, ledger, rent_march, make_rent):
        """Test that a stale change aborts the whole apply."""
        other = make_rent(date(2025, 3, 20))
        ledger.transactions.append(other)
        simulation = create_simulation(ledger, "Plan")
        add_change(ledger, simulation, _raise_rent(rent_march.id))
        add_change(ledger, simulation, ExcludeTransaction(target_id=other.id))
        ledger.transactions.remove(other)
        before = ledger.model_dump_json()

        with pytest.raises(InvalidInputError, match="#2"):
            apply(ledger, simulation)

        assert simulation.status == SimulationStatus.DRAFT
        assert ledger.model_dump_json() == before


class TestSimulationRules:
    """Tests for ledger rules enforced on simulation changes."""

    def test_foreign_currency_addition_rejected(self, ledger, make_rent):
        """Test that a simulation can't bring a foreign-currency transaction in."""
        simulation = create_simulation(ledger, "Holiday")
        with pytest.raises(CurrencyMismatchError):
            add_change(ledger, simulation, AddTransaction(transaction=make_rent(date(2025, 3, 9), currency="EUR")))
        assert simulation.changes == []

    def test_foreign_currency_patch_rejected(self, ledger, rent_march):
        """Test that a patch can't switch a transaction to another currency."""
        simulation = create_simulation(ledger, "Holiday")
        patch = ModifyTransaction(target_id=rent_march.id, patch=TransactionPatch(currency="EUR"))
        with pytest.raises(CurrencyMismatchError):
            add_change(ledger, simulation, patch)

    def test_apply_rechecks_currency(self, ledger, make_rent):
        """Test that apply refuses a stored foreign-currency change."""
        simulation = create_simulation(ledger, "Holiday")
        simulation.changes.append(AddTransaction(transaction=make_rent(date(2025, 3, 9), currency="EUR")))
        before = ledger.model_dump_json()

        with pytest.raises(CurrencyMismatchError):
            apply(ledger, simulation)

        assert simulation.status == SimulationStatus.DRAFT
        assert ledger.model_dump_json() == before

    def test_padded_duplicate_name_rejected(self, ledger):
        """Test that surrounding whitespace doesn't make a name unique."""
        first = create_simulation(ledger, " Plan")
        with pytest.raises(InvalidInputError):
            create_simulation(ledger, " Plan")
        with pytest.raises(InvalidInputError):
            create_simulation(ledger, "Plan ")

        assert first.name == "Plan"
        assert [s.name for s in ledger.simulations] == ["Plan"]
