"""Shared fixtures for the budget engine tests."""

from datetime import date
from decimal import Decimal

import pytest

from budget_engine.config import get_settings
from budget_engine.models import (
    Account,
    AccountKind,
    Category,
    CategoryKind,
    Ledger,
    Recurrence,
    TimeInterval,
    Transaction,
)


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch, tmp_path):
    """Isolate every test from the environment and any .env file."""
    for name in (
        "BUDGET_STORAGE_DATA_DIR",
        "BUDGET_STORAGE_BACKUP_RETENTION",
        "BUDGET_ENGINE_DEFAULT_CURRENCY",
        "BUDGET_ENGINE_MAX_RECURRENCE_ITERATIONS",
        "BUDGET_ENGINE_OVER_BUDGET_TOLERANCE",
        "BUDGET_AUDIT_LOG_FILE",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("BUDGET_STORAGE_DATA_DIR", str(tmp_path / "data"))
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def checking():
    return Account(name="Checking", kind=AccountKind.ASSET)


@pytest.fixture
def landlord():
    return Account(name="Landlord", kind=AccountKind.CATEGORY)


@pytest.fixture
def employer():
    return Account(name="Employer", kind=AccountKind.CATEGORY)


@pytest.fixture
def rent():
    return Category(name="Rent", kind=CategoryKind.EXPENSE)


@pytest.fixture
def salary():
    return Category(name="Salary", kind=CategoryKind.INCOME)


@pytest.fixture
def ledger(checking, landlord, employer, rent, salary):
    """A ledger with accounts and categories but no transactions."""
    return Ledger(
        name="Household",
        currency="USD",
        accounts=[checking, landlord, employer],
        categories=[rent, salary],
    )


@pytest.fixture
def make_rent(checking, landlord, rent):
    """Factory for rent transactions out of checking."""
    def _make(scheduled: date, amount: str = "100.00", **extra) -> Transaction:
        fields = {
            "from_account": checking.id,
            "to_account": landlord.id,
            "category_id": rent.id,
            "scheduled_date": scheduled,
            "budgeted_amount": Decimal(amount),
        }
        fields.update(extra)
        return Transaction(**fields)
    return _make


@pytest.fixture
def monthly_rent(make_rent):
    """Rent template repeating monthly from 2025-01-31."""
    return make_rent(
        date(2025, 1, 31),
        "1200.00",
        recurrence=Recurrence(
            start_date=date(2025, 1, 31),
            interval=TimeInterval(every=1, unit="month"),
        ),
    )
