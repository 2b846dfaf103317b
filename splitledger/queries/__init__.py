"""Read-side ledger queries."""

from splitledger.queries.balances import BalanceQueries

__all__ = ["BalanceQueries"]
