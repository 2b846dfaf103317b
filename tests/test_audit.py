"""Tests for the audit logger."""

from uuid import uuid4

from splitledger.audit import AuditLogger, configure_logging, create_correlation_id
from splitledger.errors import Unauthorized
from splitledger.models import EventSeverity, LedgerEvent, LedgerEventType
from splitledger.services.storage import AuditStorageInterface, InMemoryAuditStorage


class BrokenAuditStorage(AuditStorageInterface):
    """Event store that is always down."""

    def append_event(self, event):
        raise ConnectionError("event store unreachable")

    def get_events_by_correlation_id(self, correlation_id):
        return []

    def get_events_by_entity(self, entity_type, entity_id):
        return []

    def get_recent_events(self, limit=100):
        return []


def make_event(severity=EventSeverity.INFO) -> LedgerEvent:
    return LedgerEvent(
        event_type=LedgerEventType.BALANCE_CHANGED,
        severity=severity,
        group_id=1,
        entity_type="balance",
        entity_id=3,
        correlation_id=uuid4(),
        description="Balance of membership 3 moved by -5.00",
    )


class TestAuditLogger:
    """Tests for AuditLogger."""

    def test_log_persists(self):
        """Events are appended to the configured store."""
        storage = InMemoryAuditStorage()
        logger = AuditLogger(storage)
        event = make_event()

        assert logger.log(event) is True
        assert storage.get_recent_events() == [event]

    def test_log_without_storage(self):
        """Local-only logging always succeeds."""
        configure_logging("DEBUG")
        logger = AuditLogger()
        for severity in EventSeverity:
            assert logger.log(make_event(severity)) is True

    def test_storage_failure_is_swallowed(self):
        """A broken event store is reported, never raised."""
        logger = AuditLogger(BrokenAuditStorage())
        assert logger.log(make_event()) is False
        assert logger.log_events([make_event(), make_event()]) is False

    def test_log_command_failed(self):
        """Failures are turned into a persisted command_failed event."""
        storage = InMemoryAuditStorage()
        logger = AuditLogger(storage)
        correlation_id = create_correlation_id()

        event = logger.log_command_failed(
            command="confirm_settlement",
            error=Unauthorized("Only the receiver can confirm this settlement"),
            group_id=1,
            actor_id=2,
            correlation_id=correlation_id,
        )

        assert event.event_type == LedgerEventType.COMMAND_FAILED
        assert event.error_code == "unauthorized"
        assert event.actor_id == 2
        assert storage.get_events_by_correlation_id(correlation_id) == [event]

    def test_log_subscriber_failed(self):
        """Subscriber failures are only logged."""
        logger = AuditLogger(InMemoryAuditStorage())
        logger.log_subscriber_failed("notify", RuntimeError("down"), make_event())


class TestCorrelationId:
    """Tests for correlation ids."""

    def test_unique(self):
        """Every command gets its own id."""
        assert create_correlation_id() != create_correlation_id()
