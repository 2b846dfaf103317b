"""
Ledger Event Models

Every mutating ledger command returns explicit, immutable event values.
The coordinator hands them to the audit logger and to any subscriber
after the unit of work commits.

This provides:
1. Complete traceability of balance movements
2. A message-passing seam for notifications
3. Correlation of all events emitted by one command

DESIGN DECISION: Events are values. Nothing subscribes to an entity;
there are no observer lists to rebuild after every load.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from splitledger.models.clock import utcnow


class LedgerEventType(str, Enum):
    """Types of events the ledger emits."""
    # Expenses
    EXPENSE_RECORDED = "expense_recorded"
    EXPENSE_UPDATED = "expense_updated"
    EXPENSE_DELETED = "expense_deleted"

    # Settlements
    SETTLEMENT_PROPOSED = "settlement_proposed"
    SETTLEMENT_CONFIRMED = "settlement_confirmed"
    SETTLEMENT_CANCELLED = "settlement_cancelled"

    # Balances
    BALANCE_OPENED = "balance_opened"
    BALANCE_CHANGED = "balance_changed"

    # Failures
    COMMAND_FAILED = "command_failed"


class EventSeverity(str, Enum):
    """Severity level for ledger events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class LedgerEvent(BaseModel):
    """
    A single ledger event.

    Frozen: once emitted it cannot be altered by a subscriber.
    """
    model_config = ConfigDict(frozen=True)

    # Identity
    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="When the event occurred (UTC)"
    )

    # Classification
    event_type: LedgerEventType
    severity: EventSeverity = EventSeverity.INFO

    # Context
    group_id: Optional[int] = None
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'expense', 'settlement', 'balance')"
    )
    entity_id: Optional[int] = None
    actor_id: Optional[int] = Field(
        default=None,
        description="Membership that triggered the command"
    )
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="Ties together every event of one command"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "group_id": self.group_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "actor_id": self.actor_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }


class LedgerEventBuilder:
    """
    Helper class to build ledger events with common patterns.

    Usage:
        event = LedgerEventBuilder.expense_recorded(expense, correlation_id)
        event = LedgerEventBuilder.balance_changed(balance, delta, correlation_id)
    """

    @staticmethod
    def expense_recorded(expense, correlation_id: UUID) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.EXPENSE_RECORDED,
            group_id=expense.group_id,
            entity_type="expense",
            entity_id=expense.id,
            actor_id=expense.created_by_id,
            correlation_id=correlation_id,
            description=f"Expense recorded: {expense.description} - {expense.amount}",
            details={
                "amount": str(expense.amount),
                "payer_id": expense.payer_id,
                "category": expense.category.value,
                "shares": {
                    str(p.membership_id): str(p.share_amount)
                    for p in expense.participants
                },
            },
        )

    @staticmethod
    def expense_updated(
        expense,
        old_amount: Decimal,
        actor_id: int,
        correlation_id: UUID,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.EXPENSE_UPDATED,
            group_id=expense.group_id,
            entity_type="expense",
            entity_id=expense.id,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Expense updated: {expense.description}",
            details={
                "old_amount": str(old_amount),
                "new_amount": str(expense.amount),
                "category": expense.category.value,
            },
        )

    @staticmethod
    def expense_deleted(expense, actor_id: int, correlation_id: UUID) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.EXPENSE_DELETED,
            group_id=expense.group_id,
            entity_type="expense",
            entity_id=expense.id,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Expense deleted: {expense.description} - {expense.amount}",
            details={"amount": str(expense.amount)},
        )

    @staticmethod
    def settlement_proposed(settlement, correlation_id: UUID) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.SETTLEMENT_PROPOSED,
            group_id=settlement.group_id,
            entity_type="settlement",
            entity_id=settlement.id,
            actor_id=settlement.payer_id,
            correlation_id=correlation_id,
            description=f"Settlement proposed: {settlement.amount}",
            details={
                "payer_id": settlement.payer_id,
                "receiver_id": settlement.receiver_id,
                "amount": str(settlement.amount),
            },
        )

    @staticmethod
    def settlement_resolved(settlement, correlation_id: UUID) -> LedgerEvent:
        event_type = (
            LedgerEventType.SETTLEMENT_CONFIRMED
            if settlement.is_confirmed
            else LedgerEventType.SETTLEMENT_CANCELLED
        )
        return LedgerEvent(
            event_type=event_type,
            group_id=settlement.group_id,
            entity_type="settlement",
            entity_id=settlement.id,
            actor_id=settlement.resolved_by_id,
            correlation_id=correlation_id,
            description=f"Settlement {settlement.status.value}: {settlement.amount}",
            details={
                "payer_id": settlement.payer_id,
                "receiver_id": settlement.receiver_id,
                "amount": str(settlement.amount),
            },
        )

    @staticmethod
    def balance_opened(balance, group_id: int, correlation_id: UUID) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.BALANCE_OPENED,
            group_id=group_id,
            entity_type="balance",
            entity_id=balance.id,
            actor_id=balance.membership_id,
            correlation_id=correlation_id,
            description=f"Balance opened for membership {balance.membership_id}",
        )

    @staticmethod
    def balance_changed(
        balance,
        delta: Decimal,
        group_id: int,
        correlation_id: UUID,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.BALANCE_CHANGED,
            severity=EventSeverity.DEBUG,
            group_id=group_id,
            entity_type="balance",
            entity_id=balance.id,
            correlation_id=correlation_id,
            description=f"Balance of membership {balance.membership_id} moved by {delta}",
            details={
                "membership_id": balance.membership_id,
                "delta": str(delta),
                "amount": str(balance.amount),
            },
        )

    @staticmethod
    def command_failed(
        command: str,
        error: Exception,
        group_id: Optional[int] = None,
        actor_id: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> LedgerEvent:
        code = getattr(error, "code", type(error).__name__)
        details = dict(getattr(error, "details", {}) or {})
        details["command"] = command
        return LedgerEvent(
            event_type=LedgerEventType.COMMAND_FAILED,
            severity=EventSeverity.WARNING if hasattr(error, "code") else EventSeverity.ERROR,
            group_id=group_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Ledger command failed: {command}",
            details=details,
            error_code=code,
            error_message=str(error),
        )
