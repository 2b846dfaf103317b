"""
Audit Logger

DESIGN DECISION: Every ledger event is logged.
This provides:
1. Complete traceability of balance movements
2. Debugging capability
3. Members can see the history of their group
4. Compliance readiness

The audit logger:
- Gracefully handles storage failures (a committed command is never undone
  because the log could not be written)
- Supports correlation IDs to trace all events of one command
"""

import logging
from typing import Iterable, Optional
from uuid import UUID, uuid4

import structlog

from splitledger.models.events import EventSeverity, LedgerEvent, LedgerEventBuilder
from splitledger.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """Route structlog output through stdlib logging at the given level."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, level.upper(), logging.INFO))
    logging.getLogger("splitledger").setLevel(level.upper())


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An append-only event store (for persistence and member visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("splitledger.audit")

    def log(self, event: LedgerEvent) -> bool:
        """
        Log a ledger event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity == EventSeverity.ERROR:
            self._logger.error("ledger_event", **log_dict)
        elif event.severity == EventSeverity.WARNING:
            self._logger.warning("ledger_event", **log_dict)
        elif event.severity == EventSeverity.DEBUG:
            self._logger.debug("ledger_event", **log_dict)
        else:
            self._logger.info("ledger_event", **log_dict)

        if self._storage:
            try:
                return self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    def log_events(self, events: Iterable[LedgerEvent]) -> bool:
        """Log several events; True only if every write succeeded."""
        results = [self.log(event) for event in events]
        return all(results)

    def log_command_failed(
        self,
        command: str,
        error: Exception,
        group_id: Optional[int] = None,
        actor_id: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> LedgerEvent:
        """Log a rolled-back command and return the event that describes it."""
        event = LedgerEventBuilder.command_failed(
            command=command,
            error=error,
            group_id=group_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
        )
        self.log(event)
        return event

    def log_subscriber_failed(
        self,
        subscriber: str,
        error: Exception,
        event: LedgerEvent,
    ) -> None:
        self._logger.error(
            "event_subscriber_failed",
            subscriber=subscriber,
            error=str(error),
            event_id=str(event.event_id),
            event_type=event.event_type.value,
        )


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a ledger command.
    Pass it through all subsequent operations.
    """
    return uuid4()
