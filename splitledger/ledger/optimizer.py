"""
Debt Optimizer

Converts a snapshot of net balances into suggested settlements that,
once all confirmed, bring every balance to zero.

ALGORITHM (MinTransactionStrategy, greedy):
1. Split memberships into debtors (balance < 0, by absolute value)
   and creditors (balance > 0); zero balances are ignored
2. Sort both lists by amount, largest first
3. Match the largest remaining debtor with the largest remaining
   creditor for min(debt, credit); advance past whoever is exhausted
4. Stop when either list is exhausted

COMPLEXITY: O(n log n) for the sort, O(n) for the matching pass.

Example:
    Alice -50.00, Bob -30.00, Charlie +80.00
    -> Alice pays Charlie 50.00, Bob pays Charlie 30.00

The result is a heuristic minimum, not a proven one.

DESIGN DECISION: the snapshot must be a closed system. If total debt
differs from total credit we raise LedgerInconsistent instead of
returning a partial plan with unmatched parties.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Mapping

from splitledger.errors import LedgerInconsistent
from splitledger.models.money import ZERO, to_money
from splitledger.models.settlement import Settlement


class BalanceStrategy(ABC):
    """
    Strategy interface for debt optimization algorithms.

    Implementations receive membership_id -> net balance and return
    unpersisted CREATED settlements.
    """

    @abstractmethod
    def optimize(
        self,
        group_id: int,
        balances: Mapping[int, Decimal],
    ) -> list[Settlement]:
        pass


@dataclass
class _Position:
    """Mutable remaining amount of one party during matching."""
    membership_id: int
    remaining: Decimal


def check_closed_system(balances: Mapping[int, Decimal]) -> None:
    """Raise LedgerInconsistent when the balances do not sum to zero."""
    total = to_money(sum((to_money(v) for v in balances.values()), ZERO))
    if total != ZERO:
        raise LedgerInconsistent(
            f"Balances do not sum to zero (residual {total})",
            details={"residual": str(total)},
        )


class MinTransactionStrategy(BalanceStrategy):
    """Greedy largest-debtor / largest-creditor matching."""

    def optimize(
        self,
        group_id: int,
        balances: Mapping[int, Decimal],
    ) -> list[Settlement]:
        check_closed_system(balances)

        debtors: list[_Position] = []
        creditors: list[_Position] = []
        for membership_id, raw in balances.items():
            amount = to_money(raw)
            if amount < ZERO:
                debtors.append(_Position(membership_id, -amount))
            elif amount > ZERO:
                creditors.append(_Position(membership_id, amount))

        # Stable sort keeps snapshot order between equal amounts
        debtors.sort(key=lambda p: p.remaining, reverse=True)
        creditors.sort(key=lambda p: p.remaining, reverse=True)

        settlements: list[Settlement] = []
        i = j = 0
        while i < len(debtors) and j < len(creditors):
            debtor = debtors[i]
            creditor = creditors[j]

            amount = min(debtor.remaining, creditor.remaining)
            settlements.append(
                Settlement.create(
                    group_id=group_id,
                    payer_id=debtor.membership_id,
                    receiver_id=creditor.membership_id,
                    amount=amount,
                )
            )

            debtor.remaining = to_money(debtor.remaining - amount)
            creditor.remaining = to_money(creditor.remaining - amount)

            if debtor.remaining == ZERO:
                i += 1
            if creditor.remaining == ZERO:
                j += 1

        return settlements
