"""
Balance Model

A membership's signed net position inside its group:
    amount > 0  -> the member is owed money
    amount < 0  -> the member owes money
    amount == 0 -> settled

CRITICAL: the amount never carries more than two decimal digits.
Every mutation rounds half-up and refreshes the timestamp.
Balances are never deleted, only zeroed.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from splitledger.errors import InvalidAmount
from splitledger.models.clock import utcnow
from splitledger.models.money import ZERO, to_money


class Balance(BaseModel):
    """Net monetary position of one membership."""

    id: Optional[int] = Field(
        default=None,
        description="Storage identity, None until persisted"
    )
    membership_id: int = Field(
        ...,
        description="Owning membership"
    )
    amount: Decimal = Field(
        default=ZERO,
        description="Signed net amount, two decimals"
    )
    last_updated: datetime = Field(
        default_factory=utcnow,
        description="Timestamp of the last mutation"
    )
    version: int = Field(
        default=0,
        ge=0,
        description="Optimistic concurrency counter, bumped by storage on every write"
    )

    @field_validator("amount", mode="before")
    @classmethod
    def round_amount(cls, v) -> Decimal:
        if v is None:
            return ZERO
        return to_money(v)

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def increase(self, amount: Optional[Decimal]) -> None:
        """Credit the balance by a positive amount."""
        value = self._require_positive(amount)
        self.amount = to_money(self.amount + value)
        self._touch()

    def decrease(self, amount: Optional[Decimal]) -> None:
        """Debit the balance by a positive amount."""
        value = self._require_positive(amount)
        self.amount = to_money(self.amount - value)
        self._touch()

    def apply(self, delta: Optional[Decimal]) -> bool:
        """
        Apply a signed delta.

        A zero or missing delta is a no-op: neither the amount nor the
        timestamp changes. Returns True when the balance was mutated.
        A non-numeric delta (NaN, infinity, text) raises InvalidAmount.
        """
        if delta is None:
            return False
        try:
            value = to_money(delta)
        except ValueError as e:
            raise InvalidAmount(str(e), details={"amount": str(delta)}) from e
        if value == ZERO:
            return False
        self.amount = to_money(self.amount + value)
        self._touch()
        return True

    def settle(self) -> None:
        """Force the balance to exactly zero (administrative reset)."""
        self.amount = ZERO
        self._touch()

    def is_settled(self) -> bool:
        return self.amount == ZERO

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _require_positive(amount: Optional[Decimal]) -> Decimal:
        if amount is None:
            raise InvalidAmount("Amount is required")
        try:
            value = to_money(amount)
        except ValueError as e:
            raise InvalidAmount(str(e)) from e
        if value <= ZERO:
            raise InvalidAmount(
                f"Amount must be positive, got {amount}",
                details={"amount": str(amount)},
            )
        return value

    def _touch(self) -> None:
        self.last_updated = utcnow()
