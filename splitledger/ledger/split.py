"""
Expense Split

Turns (total amount, ordered participants) into participant shares and
the balance deltas those shares imply.

ALGORITHM:
1. share = round_half_up(total / N, 2 decimals)
2. residual = total - N * share (a whole number of cents, may be negative)
3. The residual is handed out one cent at a time to participants in the
   order they were supplied, so the shares always sum to the total
4. The payer is credited the total minus their own share,
   every other participant is debited their share

The deltas of one expense always sum to zero. That is what keeps the
group a closed system.

Editing and deleting never recompute balances from scratch: they apply
the difference between the old and new deltas (or the negated deltas).
"""

from decimal import Decimal
from typing import Iterable, Optional, Sequence

from pydantic import BaseModel, Field

from splitledger.errors import InvalidAmount, InvalidExpense
from splitledger.models.expense import Expense, ParticipantShare
from splitledger.models.money import CENT, ZERO, to_cents, to_money
from splitledger.models.registry import Membership


class SplitResult(BaseModel):
    """Shares of one expense and the balance movement they cause."""

    shares: list[ParticipantShare] = Field(default_factory=list)
    deltas: dict[int, Decimal] = Field(
        default_factory=dict,
        description="membership_id -> signed balance delta"
    )

    @property
    def drift(self) -> Decimal:
        """Sum of all deltas. Zero for every well-formed split."""
        return to_money(sum(self.deltas.values(), ZERO))


def validate_participants(
    participants: Sequence[Membership],
    group_id: int,
) -> None:
    """
    Check participants are distinct, active members of the group.

    Raises InvalidExpense otherwise.
    """
    if not participants:
        raise InvalidExpense("Expense must have at least one participant")

    seen: set[int] = set()
    for member in participants:
        if member.id in seen:
            raise InvalidExpense(
                f"Participant {member.id} is listed more than once",
                details={"membership_id": member.id},
            )
        seen.add(member.id)
        if not member.belongs_to(group_id):
            raise InvalidExpense(
                "All participants must be members of the group",
                details={"membership_id": member.id, "group_id": group_id},
            )
        if not member.is_active:
            raise InvalidExpense(
                "All participants must be active members",
                details={"membership_id": member.id, "status": member.status.value},
            )


def split_equally(
    total: Optional[Decimal],
    participant_ids: Sequence[int],
) -> list[ParticipantShare]:
    """Split total equally, assigning residual cents in participant order."""
    if total is None:
        raise InvalidAmount("Expense amount is required")
    try:
        amount = to_money(total)
    except ValueError as e:
        raise InvalidAmount(str(e)) from e
    if amount <= ZERO:
        raise InvalidAmount(
            f"Expense amount must be positive, got {total}",
            details={"amount": str(total)},
        )

    count = len(participant_ids)
    if count == 0:
        raise InvalidExpense("Expense must have at least one participant")
    if len(set(participant_ids)) != count:
        raise InvalidExpense("Participants must be distinct")
    if amount < CENT * count:
        raise InvalidExpense(
            f"Amount {amount} is too small to split among {count} participants",
            details={"amount": str(amount), "participants": count},
        )

    base = to_money(amount / count)
    cents = [to_cents(base)] * count

    residual = to_cents(amount) - to_cents(base) * count
    step = 1 if residual > 0 else -1
    for i in range(abs(residual)):
        cents[i] += step

    return [
        ParticipantShare(membership_id=membership_id, share_amount=Decimal(c) * CENT)
        for membership_id, c in zip(participant_ids, cents)
    ]


def balance_deltas(
    amount: Decimal,
    payer_id: int,
    shares: Iterable[ParticipantShare],
) -> dict[int, Decimal]:
    """
    Balance movement caused by an expense with the given shares.

    The payer is credited the full amount, every beneficiary is debited
    its share; for a participating payer the two net to (amount - share).
    """
    deltas: dict[int, Decimal] = {}
    for share in shares:
        deltas[share.membership_id] = to_money(
            deltas.get(share.membership_id, ZERO) - share.share_amount
        )
    deltas[payer_id] = to_money(deltas.get(payer_id, ZERO) + amount)
    return deltas


def split_expense(
    total: Decimal,
    participant_ids: Sequence[int],
    payer_id: int,
) -> SplitResult:
    """Shares and deltas for a new expense."""
    shares = split_equally(total, participant_ids)
    return SplitResult(
        shares=shares,
        deltas=balance_deltas(to_money(total), payer_id, shares),
    )


def expense_deltas(expense: Expense) -> dict[int, Decimal]:
    """Deltas currently contributed by a stored expense."""
    return balance_deltas(expense.amount, expense.payer_id, expense.participants)


def reprice_expense(expense: Expense, new_amount: Decimal) -> SplitResult:
    """
    Re-split an expense for a new amount.

    Returns the new shares and, as deltas, the adjustment to apply on top
    of what the expense contributed before (new minus old).
    """
    old = expense_deltas(expense)
    result = split_expense(new_amount, expense.participant_ids, expense.payer_id)

    adjustment: dict[int, Decimal] = {}
    for membership_id in list(old) + [m for m in result.deltas if m not in old]:
        adjustment[membership_id] = to_money(
            result.deltas.get(membership_id, ZERO) - old.get(membership_id, ZERO)
        )
    return SplitResult(shares=result.shares, deltas=adjustment)


def reversal_deltas(expense: Expense) -> dict[int, Decimal]:
    """Deltas that undo a stored expense exactly."""
    return {
        membership_id: to_money(-delta)
        for membership_id, delta in expense_deltas(expense).items()
    }
