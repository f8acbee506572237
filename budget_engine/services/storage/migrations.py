"""
Ledger Schema Migrations

Migrations run on the raw JSON dictionary before model validation, one
version step at a time. Each step only adds or normalizes fields; it
never drops data the user entered.

Version history:
    1: accounts, categories, transactions
    2: simulations
    3: structured recurrence rules (mode, end, exceptions, status)
    4: ledger currency and budget period
"""

import copy
from typing import Any, Callable

import structlog

from budget_engine.config import get_settings
from budget_engine.errors import PersistenceError, SchemaVersionError
from budget_engine.models.ledger import CURRENT_SCHEMA_VERSION


logger = structlog.get_logger(__name__)

DERIVED_RECURRENCE_FIELDS = (
    "last_generated",
    "last_completed",
    "generated_occurrences",
    "next_scheduled",
)

_LEGACY_INTERVALS = {
    "daily": {"every": 1, "unit": "day"},
    "weekly": {"every": 1, "unit": "week"},
    "biweekly": {"every": 2, "unit": "week"},
    "monthly": {"every": 1, "unit": "month"},
    "quarterly": {"every": 3, "unit": "month"},
    "yearly": {"every": 1, "unit": "year"},
    "annually": {"every": 1, "unit": "year"},
}


def _v1_to_v2(data: dict[str, Any]) -> None:
    data.setdefault("simulations", [])


def _v2_to_v3(data: dict[str, Any]) -> None:
    for txn in data.get("transactions", []):
        rule = txn.get("recurrence")
        if not isinstance(rule, dict):
            continue
        interval = rule.get("interval")
        if isinstance(interval, str):
            rule["interval"] = dict(_LEGACY_INTERVALS.get(interval.lower(), {"every": 1, "unit": "month"}))
        rule.setdefault("start_date", txn.get("scheduled_date"))
        rule.setdefault("mode", "fixed_schedule")
        rule.setdefault("end", {"kind": "never"})
        rule.setdefault("exceptions", [])
        rule.setdefault("status", "active")
        # Rebuilt by refresh_metadata after load
        for field in DERIVED_RECURRENCE_FIELDS:
            rule.pop(field, None)


def _v3_to_v4(data: dict[str, Any]) -> None:
    data.setdefault("currency", get_settings().engine.default_currency)
    data.setdefault("budget_period", {"every": 1, "unit": "month"})
    for account in data.get("accounts", []):
        account.setdefault("kind", "asset")


MIGRATIONS: dict[int, Callable[[dict[str, Any]], None]] = {
    1: _v1_to_v2,
    2: _v2_to_v3,
    3: _v3_to_v4,
}


def migrate(raw: dict[str, Any]) -> tuple[dict[str, Any], list[str]]:
    """
    Bring a raw ledger document up to CURRENT_SCHEMA_VERSION.
    
    A missing schema_version is treated as version 1.
    
    Returns:
        (migrated copy, list of step descriptions)
    
    Raises:
        SchemaVersionError: If the document is newer than this build
        PersistenceError: If the version field is unusable
    """
    version = raw.get("schema_version", 1)
    if not isinstance(version, int) or isinstance(version, bool) or version < 1:
        raise PersistenceError(
            f"Invalid schema_version: {version!r}",
            details={"schema_version": version},
        )
    if version > CURRENT_SCHEMA_VERSION:
        raise SchemaVersionError(
            f"Ledger schema v{version} is newer than supported v{CURRENT_SCHEMA_VERSION}",
            details={"schema_version": version, "supported": CURRENT_SCHEMA_VERSION},
        )
    
    data = copy.deepcopy(raw)
    steps: list[str] = []
    while version < CURRENT_SCHEMA_VERSION:
        MIGRATIONS[version](data)
        steps.append(f"Migrated ledger schema from v{version} to v{version + 1}")
        version += 1
        data["schema_version"] = version
    
    if steps:
        logger.info("schema_migrated", steps=len(steps), version=version)
    return data, steps
