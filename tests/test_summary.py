"""
Tests for budget windows and the budget summary aggregator.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

from budget_engine.models import (
    BudgetHealth,
    BudgetScope,
    BudgetTotals,
    DateWindow,
    ModifyTransaction,
    TimeInterval,
    TransactionPatch,
)
from budget_engine.reports import budget_anchor, budget_window, summarize
from budget_engine.simulation import add_change, create_simulation


MARCH = DateWindow(start=date(2025, 3, 1), end=date(2025, 4, 1))


class TestBudgetWindow:
    """Tests for budget period windows."""

    def test_monthly_windows(self, ledger, make_rent):
        """Test past, current and future monthly windows."""
        ledger.transactions.append(make_rent(date(2025, 1, 12)))

        assert budget_anchor(ledger) == date(2025, 1, 1)
        assert budget_window(ledger, date(2025, 3, 15)) == MARCH
        assert budget_window(ledger, date(2025, 3, 15), BudgetScope.PAST).start == date(2025, 2, 1)
        assert budget_window(ledger, date(2025, 3, 15), BudgetScope.FUTURE).end == date(2025, 5, 1)
        assert budget_window(ledger, date(2025, 3, 15), offset=-2).start == date(2025, 1, 1)

    def test_weekly_windows(self, ledger, make_rent):
        """Test that weekly periods start on Monday."""
        ledger.budget_period = TimeInterval(every=1, unit="week")
        ledger.transactions.append(make_rent(date(2025, 3, 5)))

        window = budget_window(ledger, date(2025, 3, 12))
        assert window.start == date(2025, 3, 10)
        assert window.end == date(2025, 3, 17)


class TestBudgetTotals:
    """Tests for variance and health."""

    def test_over_budget(self):
        """Test that spending above the budget is over budget."""
        totals = BudgetTotals.from_parts(Decimal("100"), Decimal("120"))
        assert totals.variance == Decimal("20")
        assert totals.remaining == Decimal("-20")
        assert totals.percent_used == Decimal("120.00")
        assert totals.health == BudgetHealth.OVER_BUDGET

    def test_tolerance(self):
        """Test that a variance inside the tolerance is within budget."""
        totals = BudgetTotals.from_parts(Decimal("100"), Decimal("105"), tolerance=Decimal("5"))
        assert totals.health == BudgetHealth.WITHIN_BUDGET

    def test_no_data(self):
        """Test an empty bucket."""
        totals = BudgetTotals.from_parts(Decimal("0"), Decimal("0"))
        assert totals.health == BudgetHealth.NO_DATA
        assert totals.percent_used is None


class TestSummarize:
    """Tests for summarize."""

    def test_overspent_category(self, ledger, make_rent, rent, checking):
        """Test 100 budgeted and 120 spent gives +20 and over budget."""
        ledger.transactions.append(make_rent(
            date(2025, 3, 5),
            "100.00",
            actual_date=date(2025, 3, 6),
            actual_amount=Decimal("120.00"),
        ))

        summary = summarize(ledger, MARCH)

        assert summary.totals.budgeted == Decimal("100.00")
        assert summary.totals.actual == Decimal("120.00")
        assert summary.totals.variance == Decimal("20.00")
        assert summary.category(rent.id).totals.health == BudgetHealth.OVER_BUDGET
        assert summary.account(checking.id).totals.variance == Decimal("20.00")
        assert summary.incomplete == 0

    def test_window_boundaries(self, ledger, make_rent):
        """Test that scheduled and actual dates are counted separately."""
        ledger.transactions.append(make_rent(
            date(2025, 2, 28),
            "100.00",
            actual_date=date(2025, 3, 1),
            actual_amount=Decimal("90.00"),
        ))
        ledger.transactions.append(make_rent(date(2025, 4, 1), "50.00"))

        summary = summarize(ledger, MARCH)
        assert summary.totals.budgeted == Decimal("0")
        assert summary.totals.actual == Decimal("90.00")

    def test_currency_mismatch_is_incomplete(self, ledger, make_rent):
        """Test that foreign-currency entries are flagged, not summed."""
        ledger.transactions.append(make_rent(date(2025, 3, 5), "100.00"))
        ledger.transactions.append(make_rent(date(2025, 3, 6), "80.00", currency="EUR"))

        summary = summarize(ledger, MARCH)

        assert summary.totals.budgeted == Decimal("100.00")
        assert summary.incomplete == 1
        assert summary.totals.incomplete == 1
        assert any("EUR" in w for w in summary.warnings)

    def test_orphaned_entries(self, ledger, make_rent):
        """Test entries pointing at an unknown category."""
        ledger.transactions.append(make_rent(date(2025, 3, 5), category_id=uuid4()))

        summary = summarize(ledger, MARCH)

        assert summary.orphaned == 1
        assert summary.per_category[0].name == "Unknown Category"

    def test_uncategorized_bucket(self, ledger, make_rent):
        """Test entries without a category."""
        ledger.transactions.append(make_rent(date(2025, 3, 5), category_id=None))

        summary = summarize(ledger, MARCH)
        assert summary.category(None).name == "Uncategorized"
        assert summary.orphaned == 0

    def test_empty_window(self, ledger, make_rent):
        """Test that an empty ledger window has no data."""
        ledger.transactions.append(make_rent(date(2025, 1, 5)))

        summary = summarize(ledger, MARCH)
        assert summary.totals.health == BudgetHealth.NO_DATA
        assert summary.per_category == []

    def test_simulation_comparison(self, ledger, make_rent):
        """Test side-by-side totals with a simulation."""
        txn = make_rent(date(2025, 3, 5), "100.00")
        ledger.transactions.append(txn)
        simulation = create_simulation(ledger, "Rent hike")
        add_change(ledger, simulation, ModifyTransaction(
            target_id=txn.id,
            patch=TransactionPatch(budgeted_amount=Decimal("150.00")),
        ))

        summary = summarize(ledger, MARCH, simulation)

        assert summary.totals.budgeted == Decimal("150.00")
        assert summary.comparison.simulation_name == "Rent hike"
        assert summary.comparison.base.budgeted == Decimal("100.00")
        assert summary.comparison.delta.budgeted == Decimal("50.00")
        assert ledger.transactions[0].budgeted_amount == Decimal("100.00")
