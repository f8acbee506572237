"""
JSON-lines Audit Storage

Append-only: each event is one JSON object per line. Reads scan the
whole file, which is fine for a household-sized audit trail.
"""

from pathlib import Path
from typing import Union
from uuid import UUID

import structlog
from pydantic import ValidationError

from budget_engine.models.audit import AuditEvent
from budget_engine.services.storage.interface import AuditStorageInterface


logger = structlog.get_logger(__name__)


class JsonlAuditStorage(AuditStorageInterface):
    """Audit events persisted to a local JSON-lines file."""
    
    def __init__(self, path: Union[Path, str]):
        self._path = Path(path)
    
    @property
    def path(self) -> Path:
        return self._path
    
    def append_event(self, event: AuditEvent) -> bool:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("a", encoding="utf-8") as handle:
            handle.write(event.model_dump_json() + "\n")
        return True
    
    def _read_all(self) -> list[AuditEvent]:
        if not self._path.exists():
            return []
        events = []
        with self._path.open("r", encoding="utf-8") as handle:
            for line_number, line in enumerate(handle, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    events.append(AuditEvent.model_validate_json(line))
                except ValidationError as e:
                    logger.warning(
                        "audit_line_unreadable",
                        path=str(self._path),
                        line=line_number,
                        error=str(e),
                    )
        return events
    
    def get_events_by_correlation_id(self, correlation_id: UUID) -> list[AuditEvent]:
        return [e for e in self._read_all() if e.correlation_id == correlation_id]
    
    def get_events_by_entity(self, entity_type: str, entity_id: UUID) -> list[AuditEvent]:
        return [
            e for e in self._read_all()
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
    
    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return list(reversed(self._read_all()))[:limit]
