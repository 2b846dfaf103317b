"""
Settlement Model and State Machine

A settlement is a proposed repayment from a payer to a receiver:

    CREATED ──confirm(receiver)──────────────▶ CONFIRMED  (terminal)
       │
       └──cancel(payer | receiver | admin)──▶ CANCELLED  (terminal)

CRITICAL: Confirmation does NOT touch balances here. The coordinator
applies the balance effect inside the same unit of work, so a failed
balance write rolls the status change back too.

A CREATED settlement never expires.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from splitledger.errors import (
    InvalidAmount,
    InvalidSettlement,
    InvalidStateTransition,
    Unauthorized,
)
from splitledger.models.clock import utcnow
from splitledger.models.money import ZERO, to_money
from splitledger.models.registry import Membership


class SettlementStatus(str, Enum):
    """Lifecycle status of a settlement."""
    CREATED = "created"      # Proposed, awaiting the receiver
    CONFIRMED = "confirmed"  # Receiver acknowledged payment, balances moved
    CANCELLED = "cancelled"  # Withdrawn, no accounting effect


TERMINAL_STATUSES = frozenset({SettlementStatus.CONFIRMED, SettlementStatus.CANCELLED})


class Settlement(BaseModel):
    """A repayment between two memberships of the same group."""

    id: Optional[int] = None
    group_id: int
    payer_id: int = Field(
        ...,
        description="Membership sending the money (the debtor)"
    )
    receiver_id: int = Field(
        ...,
        description="Membership receiving the money (the creditor)"
    )
    amount: Decimal = Field(..., gt=0)
    status: SettlementStatus = SettlementStatus.CREATED
    created_at: datetime = Field(default_factory=utcnow)
    resolved_at: Optional[datetime] = None
    resolved_by_id: Optional[int] = None

    @field_validator("amount", mode="before")
    @classmethod
    def round_amount(cls, v) -> Decimal:
        return to_money(v)

    @model_validator(mode="after")
    def validate_parties(self) -> "Settlement":
        if self.payer_id == self.receiver_id:
            raise ValueError("Payer and receiver must be different")
        return self

    @classmethod
    def create(
        cls,
        group_id: int,
        payer_id: int,
        receiver_id: int,
        amount: Optional[Decimal],
    ) -> "Settlement":
        """
        Build a new CREATED settlement, raising ledger errors on bad input.

        The debt ceiling is NOT checked here; it depends on the payer's
        live balance and is enforced by the coordinator.
        """
        if amount is None:
            raise InvalidAmount("Settlement amount is required")
        try:
            value = to_money(amount)
        except ValueError as e:
            raise InvalidAmount(str(e)) from e
        if value <= ZERO:
            raise InvalidAmount(
                f"Settlement amount must be positive, got {amount}",
                details={"amount": str(amount)},
            )
        if payer_id == receiver_id:
            raise InvalidSettlement(
                "You cannot create a settlement to yourself",
                details={"membership_id": payer_id},
            )
        return cls(
            group_id=group_id,
            payer_id=payer_id,
            receiver_id=receiver_id,
            amount=value,
        )

    # -------------------------------------------------------------------------
    # State queries
    # -------------------------------------------------------------------------

    @property
    def is_pending(self) -> bool:
        return self.status == SettlementStatus.CREATED

    @property
    def is_confirmed(self) -> bool:
        return self.status == SettlementStatus.CONFIRMED

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def can_be_confirmed_by(self, actor: Optional[Membership]) -> bool:
        """Only the receiver can say "yes, I got the money"."""
        if actor is None:
            return False
        return actor.id == self.receiver_id

    def can_be_cancelled_by(self, actor: Optional[Membership]) -> bool:
        if actor is None:
            return False
        if actor.id in (self.payer_id, self.receiver_id):
            return True
        return actor.is_admin and actor.group_id == self.group_id

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def confirm(self, actor: Membership) -> None:
        if not self.can_be_confirmed_by(actor):
            raise Unauthorized(
                "Only the receiver can confirm this settlement",
                details={"settlement_id": self.id, "actor_id": actor.id if actor else None},
            )
        self._require_pending("confirm")
        self.status = SettlementStatus.CONFIRMED
        self._resolve(actor)

    def cancel(self, actor: Membership) -> None:
        if not self.can_be_cancelled_by(actor):
            raise Unauthorized(
                "You do not have permission to cancel this settlement",
                details={"settlement_id": self.id, "actor_id": actor.id if actor else None},
            )
        self._require_pending("cancel")
        self.status = SettlementStatus.CANCELLED
        self._resolve(actor)

    def _require_pending(self, action: str) -> None:
        if self.status != SettlementStatus.CREATED:
            raise InvalidStateTransition(
                f"Cannot {action} a settlement in status {self.status.value}",
                details={
                    "settlement_id": self.id,
                    "status": self.status.value,
                    "action": action,
                },
            )

    def _resolve(self, actor: Membership) -> None:
        self.resolved_at = utcnow()
        self.resolved_by_id = actor.id
