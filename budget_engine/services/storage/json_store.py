"""
JSON File Storage for Ledgers

DESIGN DECISION: A ledger is one pretty-printed JSON document with
sorted keys and fixed two-decimal money strings, so identical ledgers
always produce identical bytes and diffs stay readable.

Writes never expose a partial file:
1. If the destination exists, copy it to a timestamped backup
2. Write the new document to a temp file in the same directory and fsync
3. os.replace the temp file over the destination (atomic on one filesystem)
4. Prune backups beyond the retention count, oldest first

If anything fails before step 3 completes, the destination still holds
the previous ledger and the temp file is removed.
"""

import json
import os
import re
import shutil
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional, Union

import structlog
from pydantic import ValidationError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from budget_engine.config import get_settings
from budget_engine.errors import InvalidInputError, PersistenceError
from budget_engine.models.ledger import CURRENT_SCHEMA_VERSION, Ledger
from budget_engine.recurrence.engine import refresh_metadata
from budget_engine.services.storage.interface import (
    BackupInfo,
    BackupRef,
    LedgerStorageInterface,
    LoadResult,
)
from budget_engine.services.storage.migrations import migrate
from budget_engine.validation.validator import LedgerValidator


logger = structlog.get_logger(__name__)

BACKUP_TIMESTAMP_FORMAT = "%Y%m%dT%H%M%S%fZ"
LEDGER_SUFFIX = ".json"


def canonical_name(name: str) -> str:
    """Lower-case a name and replace anything but ASCII letters/digits with '_'."""
    cleaned = "".join(
        ch if ch.isascii() and ch.isalnum() else "_"
        for ch in name.lower()
    )
    return cleaned or "ledger"


def serialize_ledger(ledger: Ledger) -> str:
    """Deterministic JSON text for a ledger, stamped with the current schema version."""
    payload = ledger.model_dump(mode="json")
    payload["schema_version"] = CURRENT_SCHEMA_VERSION
    return json.dumps(payload, sort_keys=True, indent=2, ensure_ascii=False) + "\n"


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.1, min=0.1, max=1),
    retry=retry_if_exception_type(PermissionError),
    reraise=True,
)
def _replace_file(source: Path, target: Path) -> None:
    """Atomic rename; retried when the target is briefly locked by another process."""
    os.replace(source, target)


class JsonLedgerStore(LedgerStorageInterface):
    """
    Ledger storage backed by JSON files on local disk.
    
    Backups live beside the ledger file:
        <dir>/<backup_dir_name>/<name>/<name>_<UTC timestamp>.json
    """
    
    def __init__(
        self,
        data_dir: Optional[Union[Path, str]] = None,
        backup_retention: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the store.
        
        Args:
            data_dir: Base directory for relative ledger paths
            backup_retention: Backups kept per ledger (at least 1)
            clock: Source of the current UTC time, for backup names
        """
        self._settings = get_settings().storage
        self._data_dir = Path(data_dir) if data_dir is not None else self._settings.data_dir
        self._retention = (
            backup_retention if backup_retention is not None else self._settings.backup_retention
        )
        if self._retention < 1:
            raise InvalidInputError(
                "Backup retention must be at least 1",
                details={"backup_retention": self._retention},
            )
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.last_backup: Optional[Path] = None
    
    @property
    def data_dir(self) -> Path:
        return self._data_dir
    
    def resolve(self, location: Union[Path, str]) -> Path:
        """Absolute ledger path; bare names land in data_dir with a .json suffix."""
        path = Path(location)
        if not path.suffix:
            path = path.with_suffix(LEDGER_SUFFIX)
        if not path.is_absolute():
            path = self._data_dir / path
        return path
    
    def backup_dir(self, destination: Union[Path, str]) -> Path:
        path = self.resolve(destination)
        return path.parent / self._settings.backup_dir_name / canonical_name(path.stem)
    
    # ------------------------------------------------------------------
    # Save
    # ------------------------------------------------------------------
    
    def save(self, ledger: Ledger, destination: Union[Path, str]) -> Path:
        path = self.resolve(destination)
        try:
            text = serialize_ledger(ledger)
        except (TypeError, ValueError) as e:
            raise PersistenceError(
                f"Failed to serialize ledger: {e}",
                details={"ledger_id": str(ledger.id)},
            ) from e
        
        self._write(path, text)
        logger.info(
            "ledger_saved",
            ledger_id=str(ledger.id),
            path=str(path),
            transactions=len(ledger.transactions),
        )
        return path
    
    def _write(self, path: Path, text: str) -> None:
        """Backup, atomic write, prune."""
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceError(
                f"Cannot create directory {path.parent}: {e}",
                details={"path": str(path)},
            ) from e
        
        self.last_backup = self._create_backup(path) if path.exists() else None
        self._write_atomic(path, text)
        self._prune_backups(path)
    
    def _write_atomic(self, path: Path, text: str) -> None:
        tmp_path: Optional[Path] = None
        try:
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{path.name}.",
                suffix=".tmp",
                dir=path.parent,
            )
            tmp_path = Path(tmp_name)
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(text)
                handle.flush()
                os.fsync(handle.fileno())
            _replace_file(tmp_path, path)
        except OSError as e:
            if tmp_path is not None:
                tmp_path.unlink(missing_ok=True)
            raise PersistenceError(
                f"Failed to write ledger file {path}: {e}",
                details={"path": str(path)},
            ) from e
    
    # ------------------------------------------------------------------
    # Backups
    # ------------------------------------------------------------------
    
    def _backup_pattern(self, path: Path) -> re.Pattern:
        base = re.escape(canonical_name(path.stem))
        return re.compile(rf"^{base}_(\d{{8}}T\d{{12}}Z)(?:_(\d+))?\.json$")
    
    def _create_backup(self, path: Path) -> Path:
        directory = self.backup_dir(path)
        base = canonical_name(path.stem)
        stamp = self._clock().strftime(BACKUP_TIMESTAMP_FORMAT)
        
        candidate = directory / f"{base}_{stamp}{LEDGER_SUFFIX}"
        counter = 1
        while candidate.exists():
            candidate = directory / f"{base}_{stamp}_{counter}{LEDGER_SUFFIX}"
            counter += 1
        
        try:
            directory.mkdir(parents=True, exist_ok=True)
            shutil.copy2(path, candidate)
        except OSError as e:
            raise PersistenceError(
                f"Failed to back up {path}: {e}",
                details={"path": str(path), "backup": str(candidate)},
            ) from e
        
        logger.info("backup_created", path=str(path), backup=str(candidate))
        return candidate
    
    def list_backups(self, destination: Union[Path, str]) -> list[BackupInfo]:
        path = self.resolve(destination)
        directory = self.backup_dir(path)
        if not directory.is_dir():
            return []
        
        pattern = self._backup_pattern(path)
        found = []
        for entry in directory.iterdir():
            match = pattern.match(entry.name)
            if not match or not entry.is_file():
                continue
            created_at = datetime.strptime(match.group(1), BACKUP_TIMESTAMP_FORMAT).replace(
                tzinfo=timezone.utc
            )
            counter = int(match.group(2) or 0)
            found.append((created_at, counter, entry))
        
        found.sort(key=lambda item: (item[0], item[1]), reverse=True)
        return [
            BackupInfo(path=entry, created_at=created_at, size_bytes=entry.stat().st_size)
            for created_at, _, entry in found
        ]
    
    def _prune_backups(self, path: Path) -> None:
        stale = self.list_backups(path)[self._retention:]
        for info in stale:
            try:
                info.path.unlink()
            except OSError as e:
                # The new ledger is already in place; a leftover backup is harmless
                logger.warning("backup_prune_failed", backup=str(info.path), error=str(e))
        if stale:
            logger.info("backups_pruned", path=str(path), removed=len(stale))
    
    # ------------------------------------------------------------------
    # Load / restore
    # ------------------------------------------------------------------
    
    def load(self, source: Union[Path, str]) -> LoadResult:
        path = self.resolve(source)
        if not path.is_file():
            raise PersistenceError(f"Ledger file not found: {path}", details={"path": str(path)})
        
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise PersistenceError(
                f"Cannot read ledger file {path}: {e}",
                details={"path": str(path)},
            ) from e
        return self._build(raw, path)
    
    def _build(self, raw: object, path: Path) -> LoadResult:
        if not isinstance(raw, dict):
            raise PersistenceError(
                f"Ledger file {path} does not contain a JSON object",
                details={"path": str(path)},
            )
        
        data, steps = migrate(raw)
        try:
            ledger = Ledger.model_validate(data)
        except ValidationError as e:
            raise PersistenceError(
                f"Ledger file {path} is malformed: {e.error_count()} validation errors",
                details={"path": str(path), "errors": e.errors(include_url=False)},
            ) from e
        
        refresh_metadata(ledger)
        validation = LedgerValidator().validate(ledger)
        warnings = steps + validation.warnings
        
        logger.info(
            "ledger_loaded",
            ledger_id=str(ledger.id),
            path=str(path),
            migrations=len(steps),
            warnings=len(warnings),
        )
        return LoadResult(ledger=ledger, warnings=warnings, migrations=steps, source=path)
    
    def restore(self, backup: BackupRef, destination: Union[Path, str]) -> LoadResult:
        path = self.resolve(destination)
        backup_path = backup.path if isinstance(backup, BackupInfo) else Path(backup)
        
        try:
            text = backup_path.read_text(encoding="utf-8")
            raw = json.loads(text)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise PersistenceError(
                f"Cannot read backup {backup_path}: {e}",
                details={"backup": str(backup_path)},
            ) from e
        
        # Validate before overwriting the active file
        self._build(raw, backup_path)
        self._write(path, text)
        logger.info("backup_restored", path=str(path), backup=str(backup_path))
        return self.load(path)
