"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap the JSON file store for a database later
2. Use in-memory storage for testing
3. Keep ledger logic decoupled from how bytes reach the disk

The interface is intentionally simple - one document per ledger.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field

from budget_engine.models.audit import AuditEvent
from budget_engine.models.ledger import Ledger


class BackupInfo(BaseModel):
    """A timestamped backup copy of a ledger file."""
    
    path: Path
    created_at: datetime
    size_bytes: int = Field(ge=0)


class LoadResult(BaseModel):
    """A loaded ledger plus everything worth telling the caller about it."""
    
    ledger: Ledger
    warnings: list[str] = Field(
        default_factory=list,
        description="Non-fatal migration and cross-reference warnings"
    )
    migrations: list[str] = Field(
        default_factory=list,
        description="Schema migration steps that ran"
    )
    source: Path


BackupRef = Union[BackupInfo, Path, str]


class LedgerStorageInterface(ABC):
    """
    Abstract interface for ledger storage operations.
    
    Any storage implementation must implement these methods.
    """
    
    # Backup made by the most recent save or restore, None when there was
    # no previous file to back up
    last_backup: Optional[Path] = None
    
    @abstractmethod
    def save(self, ledger: Ledger, destination: Union[Path, str]) -> Path:
        """
        Durably store a ledger.
        
        Args:
            ledger: The ledger to save
            destination: Where to store it
            
        Returns:
            The path written
            
        Raises:
            PersistenceError: If the write fails. The previous file is untouched.
        """
        pass
    
    @abstractmethod
    def load(self, source: Union[Path, str]) -> LoadResult:
        """
        Read, migrate and validate a ledger.
        
        Raises:
            PersistenceError: If the file cannot be read or parsed
            SchemaVersionError: If the file is newer than this build
        """
        pass
    
    @abstractmethod
    def list_backups(self, destination: Union[Path, str]) -> list[BackupInfo]:
        """
        List backups of a ledger file.
        
        Returns:
            Backups, newest first
        """
        pass
    
    @abstractmethod
    def restore(self, backup: BackupRef, destination: Union[Path, str]) -> LoadResult:
        """
        Copy a backup over the active file (backing the current file up
        first) and reload it.
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.
    
    Audit logs are append-only - we never delete or modify them.
    """
    
    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.
        
        Args:
            event: The audit event to log
            
        Returns:
            True if logged successfully
        """
        pass
    
    @abstractmethod
    def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one restore).
        
        Returns:
            List of related events in chronological order
        """
        pass
    
    @abstractmethod
    def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity.
        
        Args:
            entity_type: Type of entity (e.g., 'ledger', 'simulation')
            entity_id: The entity's ID
            
        Returns:
            List of events in chronological order
        """
        pass
    
    @abstractmethod
    def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.
        
        Returns:
            List of recent events (newest first)
        """
        pass
