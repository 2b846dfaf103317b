"""
SplitLedger - Source Package

The balance ledger and debt-settlement engine for groups that share
expenses.

DESIGN PRINCIPLES:
1. The sum of all balances in a group is always exactly zero
2. Money is a Decimal with two places, rounded half-up after every step
3. A ledger command fully applies or fully reverts
4. Every mutation produces an explicit domain event
5. Storage is a collaborator, never global state
"""

__version__ = "1.0.0"
__author__ = "SplitLedger Team"
