"""
Expense Models

An expense is paid by one membership and split among participants.
Each participant owns a positive share; the shares sum to the amount.

DESIGN DECISION: Expenses are never hard-deleted. Deletion sets a flag
and the coordinator reverses the balance effect in the same unit of work.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)

from splitledger.errors import InvalidAmount, InvalidExpense, InvalidStateTransition, Unauthorized
from splitledger.models.clock import utcnow
from splitledger.models.money import ZERO, to_money
from splitledger.models.registry import Membership


class ExpenseCategory(str, Enum):
    """Supported expense categories."""
    FOOD = "food"
    TRANSPORT = "transport"
    ACCOMMODATION = "accommodation"
    ENTERTAINMENT = "entertainment"
    UTILITIES = "utilities"
    OTHER = "other"


MAX_DESCRIPTION_LENGTH = 255


def clean_description(description: Optional[str]) -> str:
    """Stripped description, or InvalidExpense if blank or too long."""
    if description is None or not description.strip():
        raise InvalidExpense("Description is required")
    description = description.strip()
    if len(description) > MAX_DESCRIPTION_LENGTH:
        raise InvalidExpense(
            f"Description is longer than {MAX_DESCRIPTION_LENGTH} characters",
            details={"length": len(description)},
        )
    return description


def coerce_category(category) -> ExpenseCategory:
    """ExpenseCategory from an enum member or its value."""
    try:
        return ExpenseCategory(category)
    except ValueError as e:
        raise InvalidExpense(
            f"Unknown expense category: {category!r}",
            details={"category": str(category)},
        ) from e


class ParticipantShare(BaseModel):
    """The portion of an expense attributed to one beneficiary."""

    id: Optional[int] = None
    membership_id: int = Field(
        ...,
        description="Beneficiary membership"
    )
    share_amount: Decimal = Field(
        ...,
        gt=0,
        description="Positive share, two decimals"
    )

    @field_validator("share_amount", mode="before")
    @classmethod
    def round_share(cls, v) -> Decimal:
        return to_money(v)


class Expense(BaseModel):
    """
    A shared expense inside one group.

    Mutable (amount/description/category) only by its creator or a group
    admin, and only while not deleted.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    # Identity
    id: Optional[int] = None
    group_id: int

    # Who
    payer_id: int = Field(
        ...,
        description="Membership that paid"
    )
    created_by_id: int = Field(
        ...,
        description="Membership that recorded the expense (may equal payer)"
    )

    # What
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Total amount, two decimals"
    )
    description: str = Field(
        ...,
        min_length=1,
        max_length=MAX_DESCRIPTION_LENGTH
    )
    category: ExpenseCategory = ExpenseCategory.OTHER

    # Timestamps
    expense_date: datetime = Field(default_factory=utcnow)
    last_modified: datetime = Field(default_factory=utcnow)

    is_deleted: bool = False

    participants: list[ParticipantShare] = Field(default_factory=list)

    @field_validator("amount", mode="before")
    @classmethod
    def round_amount(cls, v) -> Decimal:
        return to_money(v)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @property
    def participant_ids(self) -> list[int]:
        return [p.membership_id for p in self.participants]

    def share_of(self, membership_id: int) -> Decimal:
        """Share of one membership, zero if it does not participate."""
        for participant in self.participants:
            if participant.membership_id == membership_id:
                return participant.share_amount
        return ZERO

    def total_shares(self) -> Decimal:
        return to_money(sum((p.share_amount for p in self.participants), ZERO))

    def is_consistent(self) -> bool:
        """Do the participant shares sum to the expense amount?"""
        return self.total_shares() == self.amount

    def is_editable_by(self, actor: Optional[Membership]) -> bool:
        if actor is None or actor.group_id != self.group_id:
            return False
        return actor.is_admin or actor.id == self.created_by_id

    def can_be_deleted_by(self, actor: Optional[Membership]) -> bool:
        return self.is_editable_by(actor)

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def modify_details(
        self,
        actor: Membership,
        amount: Optional[Decimal] = None,
        description: Optional[str] = None,
        category: Optional[ExpenseCategory] = None,
    ) -> Decimal:
        """
        Change amount, description and/or category.

        Shares are NOT recomputed here; the coordinator re-splits the new
        amount so that balances and shares move together.

        Returns the amount before the change.
        """
        if not self.is_editable_by(actor):
            raise Unauthorized(
                "Only the creator or a group admin can modify this expense",
                details={"expense_id": self.id, "actor_id": actor.id if actor else None},
            )
        if self.is_deleted:
            raise InvalidStateTransition(
                "Cannot modify a deleted expense",
                details={"expense_id": self.id},
            )

        # Validate everything before assigning anything
        new_amount = self.amount
        if amount is not None:
            try:
                new_amount = to_money(amount)
            except ValueError as e:
                raise InvalidAmount(str(e)) from e
            if new_amount <= ZERO:
                raise InvalidAmount(
                    f"Expense amount must be positive, got {amount}",
                    details={"amount": str(amount)},
                )
        new_description = self.description
        if description is not None:
            new_description = clean_description(description)
        new_category = self.category
        if category is not None:
            new_category = coerce_category(category)

        old_amount = self.amount
        self.amount = new_amount
        self.description = new_description
        self.category = new_category

        self._touch()
        return old_amount

    def replace_shares(self, shares: list[ParticipantShare]) -> None:
        """Swap in recomputed shares, keeping share identities per member."""
        existing_ids = {p.membership_id: p.id for p in self.participants}
        self.participants = [
            share.model_copy(update={"id": existing_ids.get(share.membership_id)})
            for share in shares
        ]
        self._touch()

    def mark_as_deleted(self, actor: Membership) -> None:
        """Soft delete. Balance reversal is the coordinator's job."""
        if not self.can_be_deleted_by(actor):
            raise Unauthorized(
                "Only the creator or a group admin can delete this expense",
                details={"expense_id": self.id, "actor_id": actor.id if actor else None},
            )
        if self.is_deleted:
            raise InvalidStateTransition(
                "Expense already deleted",
                details={"expense_id": self.id},
            )
        self.is_deleted = True
        self._touch()

    def _touch(self) -> None:
        self.last_modified = utcnow()
