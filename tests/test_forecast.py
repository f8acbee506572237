"""
Tests for the forecast engine.
"""

import pytest
from datetime import date
from decimal import Decimal

from budget_engine.models import (
    AddTransaction,
    DateWindow,
    EntryDirection,
    ExcludeTransaction,
    OccurrenceStatus,
    Transaction,
)
from budget_engine.recurrence import materialize_due
from budget_engine.reports import forecast_window, synthetic_id
from budget_engine.simulation import add_change, create_simulation


Q1 = DateWindow(start=date(2025, 1, 1), end=date(2025, 4, 1))
TODAY = date(2025, 2, 15)


@pytest.fixture
def payday(employer, checking, salary):
    return Transaction(
        from_account=employer.id,
        to_account=checking.id,
        category_id=salary.id,
        scheduled_date=date(2025, 2, 1),
        budgeted_amount=Decimal("3000.00"),
        actual_date=date(2025, 2, 1),
        actual_amount=Decimal("3000.00"),
    )


@pytest.fixture
def household(ledger, monthly_rent, payday):
    """Rent template materialized through February plus one paycheck."""
    ledger.transactions.extend([monthly_rent, payday])
    materialize_due(ledger, date(2025, 2, 28))
    return ledger


class TestForecastWindow:
    """Tests for forecast_window."""

    def test_real_and_synthetic_entries(self, household, monthly_rent):
        """Test that real entries and projections are merged without doubles."""
        report = forecast_window(household, Q1, today=TODAY)

        rent_dates = [e.occurs_on for e in report.entries if e.series_id == monthly_rent.id]
        assert rent_dates == [date(2025, 1, 31), date(2025, 2, 28), date(2025, 3, 31)]
        assert report.synthetic_count == 1

        synthetic = [e for e in report.entries if e.is_synthetic]
        assert synthetic[0].transaction_id == synthetic_id(monthly_rent.id, date(2025, 3, 31))

    def test_statuses(self, household, monthly_rent):
        """Test overdue, pending, future and completed counts."""
        report = forecast_window(household, Q1, today=TODAY)

        statuses = {e.occurs_on: e.status for e in report.entries}
        assert statuses[date(2025, 1, 31)] == OccurrenceStatus.OVERDUE
        assert statuses[date(2025, 2, 1)] == OccurrenceStatus.COMPLETED
        assert statuses[date(2025, 2, 28)] == OccurrenceStatus.PENDING
        assert statuses[date(2025, 3, 31)] == OccurrenceStatus.FUTURE
        assert (report.overdue_count, report.pending_count, report.future_count, report.completed_count) == (1, 1, 1, 1)

    def test_totals_match_entries(self, household):
        """Test that inflow minus outflow equals the sum of signed amounts."""
        report = forecast_window(household, Q1, today=TODAY)

        assert report.total_inflow == Decimal("3000.00")
        assert report.total_outflow == Decimal("3600.00")
        assert report.net == report.total_inflow - report.total_outflow
        assert report.net == report.signed_total
        payday_entry = next(e for e in report.entries if e.direction == EntryDirection.INFLOW)
        assert payday_entry.signed_amount == Decimal("3000.00")

    def test_sorted_and_upcoming(self, household):
        """Test entry order and the upcoming highlight."""
        report = forecast_window(household, Q1, today=TODAY, top_n=2)

        dates = [e.occurs_on for e in report.entries]
        assert dates == sorted(dates)
        assert len(report.upcoming) == 2
        assert all(e.status != OccurrenceStatus.COMPLETED for e in report.upcoming)

    def test_empty_window(self, household):
        """Test that an empty window yields an empty report."""
        report = forecast_window(household, DateWindow(start=date(2025, 3, 1), end=date(2025, 3, 1)))

        assert report.entries == []
        assert report.net == Decimal("0")

    def test_ledger_not_mutated(self, household):
        """Test that forecasting is read-only."""
        before = household.model_dump_json()
        forecast_window(household, Q1, today=TODAY)
        assert household.model_dump_json() == before

    def test_embedded_summary(self, household):
        """Test that the report carries the window's budget summary."""
        report = forecast_window(household, Q1, today=TODAY)
        assert report.summary.totals.budgeted == Decimal("5400.00")
        assert report.summary.totals.actual == Decimal("3000.00")

    def test_foreign_currency_entries_flagged(self, ledger, make_rent):
        """Test that foreign-currency entries are flagged and kept out of the totals."""
        ledger.transactions.append(make_rent(date(2025, 3, 1), "100.00"))
        foreign = make_rent(date(2025, 3, 5), "500.00", currency="EUR")
        ledger.transactions.append(foreign)

        report = forecast_window(ledger, Q1, today=TODAY)

        assert report.total_outflow == Decimal("100.00")
        assert report.net == report.signed_total
        assert report.incomplete_count == 1
        assert len(report.warnings) == 1
        flagged = next(e for e in report.entries if e.transaction_id == foreign.id)
        assert flagged.incomplete
        assert flagged.currency == "EUR"
        assert flagged.signed_amount == Decimal("0")


class TestForecastWithSimulation:
    """Tests for forecasts rendered through a simulation."""

    def test_excluded_instance_not_projected(self, household, monthly_rent):
        """Test that excluding a materialized instance drops it entirely."""
        february = next(
            t for t in household.transactions
            if t.series_id == monthly_rent.id and t.scheduled_date == date(2025, 2, 28)
        )
        simulation = create_simulation(household, "Skip February")
        add_change(household, simulation, ExcludeTransaction(target_id=february.id))

        report = forecast_window(household, Q1, simulation=simulation, today=TODAY)

        assert report.simulation_name == "Skip February"
        assert date(2025, 2, 28) not in [e.occurs_on for e in report.entries]
        assert report.total_outflow == Decimal("2400.00")

    def test_added_transaction_appears(self, household, make_rent):
        """Test that simulated additions are forecast."""
        extra = make_rent(date(2025, 3, 10), "250.00")
        simulation = create_simulation(household, "Repairs")
        add_change(household, simulation, AddTransaction(transaction=extra))

        report = forecast_window(household, Q1, simulation=simulation, today=TODAY)
        assert extra.id in [e.transaction_id for e in report.entries]
        assert report.summary.comparison.delta.budgeted == Decimal("250.00")
        assert extra.id not in [t.id for t in household.transactions]
