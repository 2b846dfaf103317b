"""
Balance Query Engine

DESIGN DECISION: Reads never mutate. Every query opens a transaction
on the group only to get a consistent snapshot, and leaves without
writing anything.

Positive balance = the member is owed money
Negative balance = the member owes money
Zero = settled
"""

from decimal import Decimal
from typing import Optional

from splitledger.errors import NotFound
from splitledger.ledger.optimizer import BalanceStrategy, MinTransactionStrategy
from splitledger.models.expense import Expense
from splitledger.models.money import ZERO, to_money
from splitledger.models.registry import Group, Membership
from splitledger.models.settlement import Settlement, SettlementStatus
from splitledger.services.storage import DirectoryInterface, LedgerStorageInterface


class BalanceQueries:
    """
    Read-side view of the ledger.

    Answers "who owes what" and "how do we settle up" for a group.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        directory: DirectoryInterface,
        strategy: Optional[BalanceStrategy] = None,
    ):
        self._storage = storage
        self._directory = directory
        self._strategy = strategy or MinTransactionStrategy()

    # -------------------------------------------------------------------------
    # Balances
    # -------------------------------------------------------------------------

    def get_group_balances(self, group_id: int) -> dict[int, Decimal]:
        """
        Current balance of every membership of the group.

        Returns:
            membership_id -> signed net amount
        """
        self._require_group(group_id)
        with self._storage.transaction(group_id) as tx:
            return {b.membership_id: b.amount for b in tx.find_balances()}

    def get_member_balance(self, membership_id: int) -> Decimal:
        """Balance of one membership, zero if it was never opened."""
        member = self._require_membership(membership_id)
        with self._storage.transaction(member.group_id) as tx:
            balance = tx.find_balance(membership_id)
            return balance.amount if balance else ZERO

    def is_group_settled(self, group_id: int) -> bool:
        """True when every member of the group has a zero balance."""
        return all(amount == ZERO for amount in self.get_group_balances(group_id).values())

    def get_total_group_debt(self, group_id: int) -> Decimal:
        """Sum of all negative balances, as a positive number."""
        balances = self.get_group_balances(group_id).values()
        return to_money(sum((-a for a in balances if a < ZERO), ZERO))

    def get_total_group_credit(self, group_id: int) -> Decimal:
        """
        Sum of all positive balances.

        In a closed system this always equals get_total_group_debt.
        """
        balances = self.get_group_balances(group_id).values()
        return to_money(sum((a for a in balances if a > ZERO), ZERO))

    def get_debtors(self, group_id: int) -> list[int]:
        return [m for m, a in self.get_group_balances(group_id).items() if a < ZERO]

    def get_creditors(self, group_id: int) -> list[int]:
        return [m for m, a in self.get_group_balances(group_id).items() if a > ZERO]

    def has_pending_debts(self, membership_id: int) -> bool:
        """Does the member still owe or get owed anything?"""
        return self.get_member_balance(membership_id) != ZERO

    def can_remove_member(self, membership_id: int) -> bool:
        """A membership can only be removed once its balance is zero."""
        return not self.has_pending_debts(membership_id)

    # -------------------------------------------------------------------------
    # Settlement suggestions
    # -------------------------------------------------------------------------

    def get_optimized_debts(self, group_id: int) -> list[Settlement]:
        """
        Suggested settlements that would zero every balance.

        The suggestions are CREATED and unpersisted; proposing one is a
        separate command.

        Raises:
            LedgerInconsistent: If the group's balances do not sum to zero
        """
        balances = self.get_group_balances(group_id)
        return self._strategy.optimize(group_id, balances)

    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------

    def get_expense_history(self, group_id: int) -> list[Expense]:
        """Non-deleted expenses of the group, newest first."""
        self._require_group(group_id)
        with self._storage.transaction(group_id) as tx:
            return tx.find_expenses()

    def get_group_settlements(
        self,
        group_id: int,
        status: Optional[SettlementStatus] = None,
    ) -> list[Settlement]:
        self._require_group(group_id)
        with self._storage.transaction(group_id) as tx:
            return tx.find_settlements(status)

    def get_pending_settlements(self, group_id: int) -> list[Settlement]:
        """Settlements waiting for the receiver's confirmation."""
        return self.get_group_settlements(group_id, SettlementStatus.CREATED)

    def get_confirmed_settlements(self, group_id: int) -> list[Settlement]:
        """Payment history of the group."""
        return self.get_group_settlements(group_id, SettlementStatus.CONFIRMED)

    def can_confirm(self, settlement_id: int, membership_id: int) -> bool:
        """Can this member confirm this settlement right now?"""
        member = self._require_membership(membership_id)
        group_id = self._storage.find_settlement_group(settlement_id)
        if group_id is None:
            raise NotFound("Settlement", settlement_id)
        with self._storage.transaction(group_id) as tx:
            settlement = tx.find_settlement(settlement_id)
            if settlement is None:
                raise NotFound("Settlement", settlement_id)
            return settlement.is_pending and settlement.can_be_confirmed_by(member)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _require_group(self, group_id: int) -> Group:
        group = self._directory.get_group(group_id)
        if group is None:
            raise NotFound("Group", group_id)
        return group

    def _require_membership(self, membership_id: int) -> Membership:
        member = self._directory.get_membership(membership_id)
        if member is None:
            raise NotFound("Membership", membership_id)
        return member
