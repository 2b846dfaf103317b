"""Tests for read-side balance queries."""

import pytest
from decimal import Decimal

from splitledger.errors import NotFound

TRIP = 1


class TestBalanceQueries:
    """Tests for BalanceQueries."""

    @pytest.fixture
    def trip(self, coordinator, alice, bob, charlie):
        """Alice paid 90.00 for everyone, then Bob paid 30.00 for Charlie and himself."""
        coordinator.record_expense(
            TRIP, alice.id, Decimal("90.00"), "Dinner", [alice.id, bob.id, charlie.id],
        )
        coordinator.record_expense(TRIP, bob.id, Decimal("30.00"), "Taxi", [bob.id, charlie.id])
        return coordinator

    def test_group_balances(self, trip, queries, alice, bob, charlie):
        """Balances reflect both expenses."""
        assert queries.get_group_balances(TRIP) == {
            alice.id: Decimal("60.00"),
            bob.id: Decimal("-15.00"),
            charlie.id: Decimal("-45.00"),
        }

    def test_totals_match(self, trip, queries):
        """Total debt equals total credit."""
        assert queries.get_total_group_debt(TRIP) == Decimal("60.00")
        assert queries.get_total_group_credit(TRIP) == Decimal("60.00")

    def test_debtors_and_creditors(self, trip, queries, alice, bob, charlie):
        """Signs split the group into debtors and creditors."""
        assert queries.get_creditors(TRIP) == [alice.id]
        assert sorted(queries.get_debtors(TRIP)) == [bob.id, charlie.id]

    def test_pending_debts(self, trip, queries, alice, erin):
        """Members with a non-zero balance cannot be removed."""
        assert queries.has_pending_debts(alice.id)
        assert not queries.can_remove_member(alice.id)
        assert queries.get_member_balance(erin.id) == Decimal("0.00")
        assert queries.can_remove_member(erin.id)

    def test_optimized_debts(self, trip, queries, alice, bob, charlie):
        """Both debtors pay the single creditor, largest first."""
        suggestions = queries.get_optimized_debts(TRIP)
        assert [(s.payer_id, s.receiver_id, s.amount) for s in suggestions] == [
            (charlie.id, alice.id, Decimal("45.00")),
            (bob.id, alice.id, Decimal("15.00")),
        ]
        # Suggestions are not persisted
        assert queries.get_group_settlements(TRIP) == []

    def test_expense_history_newest_first(self, trip, queries):
        """History lists the latest expense first."""
        assert [e.description for e in queries.get_expense_history(TRIP)] == ["Taxi", "Dinner"]

    def test_unknown_ids(self, queries):
        """Unknown groups, memberships and settlements are not found."""
        with pytest.raises(NotFound):
            queries.get_group_balances(99)
        with pytest.raises(NotFound):
            queries.get_member_balance(999)
        with pytest.raises(NotFound):
            queries.can_confirm(999, 1)
