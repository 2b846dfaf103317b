"""Tests for the greedy debt optimizer."""

import pytest
from decimal import Decimal

from splitledger.errors import LedgerInconsistent
from splitledger.ledger import MinTransactionStrategy, check_closed_system
from splitledger.models import Balance, SettlementStatus

ALICE, BOB, CHARLIE, DAVE = 1, 2, 3, 4


def apply_all(balances, settlements):
    """Confirm every suggestion against plain Balance objects."""
    ledger = {m: Balance(membership_id=m, amount=a) for m, a in balances.items()}
    for settlement in settlements:
        ledger[settlement.payer_id].increase(settlement.amount)
        ledger[settlement.receiver_id].decrease(settlement.amount)
    return {m: b.amount for m, b in ledger.items()}


class TestMinTransactionStrategy:
    """Tests for largest-debtor / largest-creditor matching."""

    def test_two_debtors_one_creditor(self):
        """Alice -50, Bob -30, Charlie +80 gives exactly two settlements."""
        balances = {
            ALICE: Decimal("-50.00"),
            BOB: Decimal("-30.00"),
            CHARLIE: Decimal("80.00"),
        }

        settlements = MinTransactionStrategy().optimize(1, balances)

        assert [(s.payer_id, s.receiver_id, s.amount) for s in settlements] == [
            (ALICE, CHARLIE, Decimal("50.00")),
            (BOB, CHARLIE, Decimal("30.00")),
        ]
        assert all(s.status == SettlementStatus.CREATED for s in settlements)
        assert all(s.id is None and s.group_id == 1 for s in settlements)
        assert set(apply_all(balances, settlements).values()) == {Decimal("0.00")}

    def test_debtor_split_across_creditors(self):
        """A large debtor pays several creditors in order of size."""
        balances = {
            ALICE: Decimal("-10.00"),
            BOB: Decimal("-20.00"),
            CHARLIE: Decimal("15.00"),
            DAVE: Decimal("15.00"),
        }

        settlements = MinTransactionStrategy().optimize(1, balances)

        assert [(s.payer_id, s.receiver_id, s.amount) for s in settlements] == [
            (BOB, CHARLIE, Decimal("15.00")),
            (BOB, DAVE, Decimal("5.00")),
            (ALICE, DAVE, Decimal("10.00")),
        ]
        assert set(apply_all(balances, settlements).values()) == {Decimal("0.00")}

    def test_settled_group_needs_nothing(self):
        """Zero balances are ignored."""
        strategy = MinTransactionStrategy()
        assert strategy.optimize(1, {}) == []
        assert strategy.optimize(1, {ALICE: Decimal("0.00"), BOB: Decimal("0")}) == []

    def test_cents_are_matched(self):
        """Odd cents from uneven splits are settled too."""
        balances = {
            ALICE: Decimal("66.66"),
            BOB: Decimal("-33.33"),
            CHARLIE: Decimal("-33.33"),
        }
        settlements = MinTransactionStrategy().optimize(1, balances)
        assert len(settlements) == 2
        assert sum(s.amount for s in settlements) == Decimal("66.66")
        assert set(apply_all(balances, settlements).values()) == {Decimal("0.00")}

    def test_unbalanced_input_fails_loudly(self):
        """Balances that do not sum to zero are a data-integrity error."""
        with pytest.raises(LedgerInconsistent) as exc:
            MinTransactionStrategy().optimize(
                1, {ALICE: Decimal("-50.00"), BOB: Decimal("40.00")}
            )
        assert exc.value.details["residual"] == "-10.00"

    def test_check_closed_system(self):
        """The closed-system check accepts any zero-sum snapshot."""
        check_closed_system({ALICE: Decimal("0.01"), BOB: Decimal("-0.01")})
        with pytest.raises(LedgerInconsistent):
            check_closed_system({ALICE: Decimal("0.01")})
