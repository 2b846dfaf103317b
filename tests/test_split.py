"""
Tests for expense splitting arithmetic.

The shares of an expense always sum to its amount, and the deltas of an
expense always sum to zero.
"""

import pytest
from decimal import Decimal

from splitledger.errors import InvalidAmount, InvalidExpense
from splitledger.ledger import (
    balance_deltas,
    expense_deltas,
    reprice_expense,
    reversal_deltas,
    split_equally,
    split_expense,
    validate_participants,
)
from splitledger.models import Expense, Membership, MembershipStatus


def amounts(shares):
    return [s.share_amount for s in shares]


class TestSplitEqually:
    """Tests for equal splitting with residual cents."""

    def test_even_split(self):
        """An evenly divisible amount splits exactly."""
        shares = split_equally(Decimal("100.00"), [1, 2])
        assert amounts(shares) == [Decimal("50.00"), Decimal("50.00")]
        assert [s.membership_id for s in shares] == [1, 2]

    def test_residual_cent_goes_to_first_participant(self):
        """100.00 / 3 leaves one cent for the first participant listed."""
        shares = split_equally(Decimal("100.00"), [3, 1, 2])
        assert amounts(shares) == [Decimal("33.34"), Decimal("33.33"), Decimal("33.33")]
        assert shares[0].membership_id == 3

    def test_negative_residual_taken_from_first_participants(self):
        """When the rounded share overshoots, the first participants give a cent back."""
        shares = split_equally(Decimal("0.05"), [1, 2, 3])
        assert amounts(shares) == [Decimal("0.01"), Decimal("0.02"), Decimal("0.02")]

    @pytest.mark.parametrize(
        "total,count",
        [("10.00", 3), ("0.03", 3), ("99.99", 7), ("1234.57", 11), ("0.11", 6)],
    )
    def test_shares_sum_to_total(self, total, count):
        """No cent is ever lost or invented."""
        shares = split_equally(Decimal(total), list(range(1, count + 1)))
        assert sum(amounts(shares)) == Decimal(total)
        assert all(a > 0 for a in amounts(shares))
        assert max(amounts(shares)) - min(amounts(shares)) <= Decimal("0.01")

    def test_amount_too_small_to_split(self):
        """Every participant must get at least one cent."""
        with pytest.raises(InvalidExpense):
            split_equally(Decimal("0.02"), [1, 2, 3])

    @pytest.mark.parametrize(
        "total", [None, Decimal("0"), Decimal("-10"), "abc", Decimal("NaN"), "-Infinity"]
    )
    def test_invalid_amount(self, total):
        """Missing, non-positive or non-finite amounts raise InvalidAmount."""
        with pytest.raises(InvalidAmount):
            split_equally(total, [1, 2])

    def test_empty_or_duplicate_participants(self):
        """Participants must be a non-empty list of distinct members."""
        with pytest.raises(InvalidExpense):
            split_equally(Decimal("10"), [])
        with pytest.raises(InvalidExpense):
            split_equally(Decimal("10"), [1, 1])


class TestBalanceDeltas:
    """Tests for the balance movement of an expense."""

    def test_payer_participates(self):
        """Payer gets total minus own share, others pay their share."""
        result = split_expense(Decimal("100.00"), [1, 2, 3], payer_id=1)
        assert result.deltas == {
            1: Decimal("66.66"),
            2: Decimal("-33.33"),
            3: Decimal("-33.33"),
        }
        assert result.drift == Decimal("0.00")

    def test_payer_not_participating(self):
        """A payer outside the participants is credited the full amount."""
        result = split_expense(Decimal("90.00"), [2, 3], payer_id=1)
        assert result.deltas == {
            2: Decimal("-45.00"),
            3: Decimal("-45.00"),
            1: Decimal("90.00"),
        }
        assert result.drift == Decimal("0.00")

    def test_single_participant_is_payer(self):
        """Paying only for yourself moves nothing."""
        shares = split_equally(Decimal("12.00"), [1])
        assert balance_deltas(Decimal("12.00"), 1, shares) == {1: Decimal("0.00")}


class TestEditAndReversal:
    """Tests for delta adjustments on edit and delete."""

    def _expense(self, amount, participant_ids, payer_id=1):
        split = split_expense(amount, participant_ids, payer_id)
        return Expense(
            id=1,
            group_id=1,
            payer_id=payer_id,
            created_by_id=payer_id,
            amount=amount,
            description="Groceries",
            participants=split.shares,
        )

    def test_expense_deltas_match_split(self):
        """A stored expense reproduces the deltas it was recorded with."""
        expense = self._expense(Decimal("100.00"), [1, 2, 3])
        assert expense_deltas(expense) == split_expense(
            Decimal("100.00"), [1, 2, 3], 1
        ).deltas

    def test_reprice_applies_difference(self):
        """Changing 100.00 to 60.00 moves every balance by the share difference."""
        expense = self._expense(Decimal("100.00"), [1, 2])
        result = reprice_expense(expense, Decimal("60.00"))

        assert amounts(result.shares) == [Decimal("30.00"), Decimal("30.00")]
        assert result.deltas == {1: Decimal("-20.00"), 2: Decimal("20.00")}
        assert result.drift == Decimal("0.00")

    def test_reprice_uneven(self):
        """Residual cents are re-assigned consistently after an edit."""
        expense = self._expense(Decimal("10.00"), [1, 2, 3], payer_id=2)
        result = reprice_expense(expense, Decimal("10.01"))

        old = expense_deltas(expense)
        new = split_expense(Decimal("10.01"), [1, 2, 3], 2).deltas
        for membership_id in (1, 2, 3):
            assert old[membership_id] + result.deltas[membership_id] == new[membership_id]
        assert result.drift == Decimal("0.00")

    def test_reversal_negates(self):
        """Reversal deltas exactly undo the expense."""
        expense = self._expense(Decimal("100.00"), [1, 2])
        reversal = reversal_deltas(expense)
        assert reversal == {1: Decimal("-50.00"), 2: Decimal("50.00")}
        for membership_id, delta in expense_deltas(expense).items():
            assert delta + reversal[membership_id] == Decimal("0.00")


class TestValidateParticipants:
    """Tests for participant membership rules."""

    def test_valid_participants(self):
        """Active, distinct members of the group pass."""
        validate_participants(
            [Membership(id=1, group_id=1), Membership(id=2, group_id=1)], group_id=1
        )

    def test_outsider_rejected(self):
        """Members of another group cannot take part."""
        with pytest.raises(InvalidExpense):
            validate_participants(
                [Membership(id=1, group_id=1), Membership(id=10, group_id=2)], group_id=1
            )

    def test_inactive_rejected(self):
        """Pending and removed members cannot take part."""
        for status in (MembershipStatus.WAITING_ACCEPTANCE, MembershipStatus.REMOVED):
            with pytest.raises(InvalidExpense):
                validate_participants(
                    [Membership(id=4, group_id=1, status=status)], group_id=1
                )

    def test_duplicate_and_empty_rejected(self):
        """Each member appears once; at least one member is required."""
        member = Membership(id=1, group_id=1)
        with pytest.raises(InvalidExpense):
            validate_participants([member, member], group_id=1)
        with pytest.raises(InvalidExpense):
            validate_participants([], group_id=1)
