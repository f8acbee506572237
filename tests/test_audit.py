"""
Tests for the audit logger and the JSON-lines audit store.
"""

from uuid import uuid4

from budget_engine.audit import AuditLogger, create_correlation_id
from budget_engine.errors import CurrencyMismatchError
from budget_engine.models import AuditEventBuilder, AuditEventType, AuditSeverity
from budget_engine.services.storage import AuditStorageInterface, JsonlAuditStorage


class MemoryAuditStorage(AuditStorageInterface):
    """Keeps events in a list."""

    def __init__(self):
        self.events = []

    def append_event(self, event):
        self.events.append(event)
        return True

    def get_events_by_correlation_id(self, correlation_id):
        return [e for e in self.events if e.correlation_id == correlation_id]

    def get_events_by_entity(self, entity_type, entity_id):
        return [e for e in self.events if e.entity_type == entity_type and e.entity_id == entity_id]

    def get_recent_events(self, limit=100):
        return list(reversed(self.events))[:limit]


class BrokenAuditStorage(MemoryAuditStorage):
    """Fails every write."""

    def append_event(self, event):
        raise OSError("read-only file system")


class TestAuditLogger:
    """Tests for AuditLogger."""

    def test_events_reach_storage(self):
        """Test that helper methods persist events."""
        storage = MemoryAuditStorage()
        audit = AuditLogger(storage)
        ledger_id = uuid4()

        audit.log_ledger_saved(ledger_id, "/tmp/ledger.json", create_correlation_id())

        assert len(storage.events) == 1
        assert storage.events[0].event_type == AuditEventType.LEDGER_SAVED
        assert storage.events[0].entity_id == ledger_id

    def test_storage_failure_is_not_raised(self):
        """Test that a broken audit store doesn't break the caller."""
        audit = AuditLogger(BrokenAuditStorage())
        event = AuditEventBuilder.ledger_created(uuid4(), "Household")
        assert audit.log(event) is False

    def test_disabled_logger_drops_events(self):
        """Test the enabled switch."""
        storage = MemoryAuditStorage()
        audit = AuditLogger(storage, enabled=False)
        audit.log_ledger_created(uuid4(), "Household", create_correlation_id())
        assert storage.events == []

    def test_no_storage(self):
        """Test local-only logging."""
        assert AuditLogger().log(AuditEventBuilder.ledger_created(uuid4(), "Household")) is True

    def test_rejected_mutation_carries_category(self):
        """Test that refused changes record the error category."""
        storage = MemoryAuditStorage()
        audit = AuditLogger(storage)

        audit.log_mutation_rejected(
            uuid4(), "add_transaction", CurrencyMismatchError("EUR vs USD"), create_correlation_id()
        )

        event = storage.events[0]
        assert event.event_type == AuditEventType.MUTATION_REJECTED
        assert event.error_category == "currency_mismatch"
        assert event.error_message == "EUR vs USD"

    def test_load_with_migrations(self):
        """Test that a migrated load emits two correlated events."""
        storage = MemoryAuditStorage()
        audit = AuditLogger(storage)
        correlation_id = create_correlation_id()

        audit.log_ledger_loaded(
            uuid4(), "old.json", ["Migrated ledger schema from v1 to v2"],
            ["Migrated ledger schema from v1 to v2"], correlation_id,
        )

        types = [e.event_type for e in storage.get_events_by_correlation_id(correlation_id)]
        assert types == [AuditEventType.SCHEMA_MIGRATED, AuditEventType.LEDGER_LOADED]
        assert storage.events[1].severity == AuditSeverity.WARNING


class TestJsonlAuditStorage:
    """Tests for the JSON-lines audit file."""

    def test_append_and_query(self, tmp_path):
        """Test writing events and reading them back."""
        storage = JsonlAuditStorage(tmp_path / "audit" / "events.jsonl")
        ledger_id = uuid4()
        correlation_id = create_correlation_id()

        storage.append_event(AuditEventBuilder.ledger_created(ledger_id, "Household", correlation_id))
        storage.append_event(AuditEventBuilder.ledger_saved(ledger_id, "x.json", correlation_id))
        storage.append_event(AuditEventBuilder.ledger_created(uuid4(), "Other"))

        assert len(storage.get_events_by_correlation_id(correlation_id)) == 2
        assert len(storage.get_events_by_entity("ledger", ledger_id)) == 2
        recent = storage.get_recent_events(limit=1)
        assert recent[0].description.endswith("Other")

    def test_missing_file_is_empty(self, tmp_path):
        """Test reading before anything was written."""
        assert JsonlAuditStorage(tmp_path / "none.jsonl").get_recent_events() == []

    def test_unreadable_lines_skipped(self, tmp_path):
        """Test that a corrupt line doesn't hide the rest of the trail."""
        path = tmp_path / "events.jsonl"
        storage = JsonlAuditStorage(path)
        storage.append_event(AuditEventBuilder.ledger_created(uuid4(), "Household"))
        with path.open("a", encoding="utf-8") as handle:
            handle.write("{garbage\n")

        assert len(storage.get_recent_events()) == 1
