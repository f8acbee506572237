"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Currently implements local JSON files as the backend, but designed to be swappable.
"""

from budget_engine.services.storage.interface import (
    AuditStorageInterface,
    BackupInfo,
    BackupRef,
    LedgerStorageInterface,
    LoadResult,
)
from budget_engine.services.storage.json_store import (
    JsonLedgerStore,
    canonical_name,
    serialize_ledger,
)
from budget_engine.services.storage.audit_store import JsonlAuditStorage
from budget_engine.services.storage.migrations import migrate

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "LedgerStorageInterface",
    "BackupInfo",
    "BackupRef",
    "LoadResult",
    # JSON file implementation
    "JsonLedgerStore",
    "JsonlAuditStorage",
    "canonical_name",
    "migrate",
    "serialize_ledger",
]
