"""Ledger arithmetic: expense splitting and debt optimization."""

from splitledger.ledger.optimizer import (
    BalanceStrategy,
    MinTransactionStrategy,
    check_closed_system,
)
from splitledger.ledger.split import (
    SplitResult,
    balance_deltas,
    expense_deltas,
    reprice_expense,
    reversal_deltas,
    split_equally,
    split_expense,
    validate_participants,
)

__all__ = [
    "BalanceStrategy",
    "MinTransactionStrategy",
    "SplitResult",
    "balance_deltas",
    "check_closed_system",
    "expense_deltas",
    "reprice_expense",
    "reversal_deltas",
    "split_equally",
    "split_expense",
    "validate_participants",
]
