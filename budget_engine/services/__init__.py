"""Services package."""

from budget_engine.services.ledger_service import LedgerService
from budget_engine.services.storage import (
    AuditStorageInterface,
    BackupInfo,
    JsonLedgerStore,
    JsonlAuditStorage,
    LedgerStorageInterface,
    LoadResult,
)

__all__ = [
    # Ledger edits
    "LedgerService",
    # Storage services
    "AuditStorageInterface",
    "BackupInfo",
    "JsonLedgerStore",
    "JsonlAuditStorage",
    "LedgerStorageInterface",
    "LoadResult",
]
