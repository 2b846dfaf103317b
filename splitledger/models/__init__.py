"""
Data Models Package

This package contains all Pydantic models used by the ledger.
All data flowing through the ledger must conform to these schemas.
"""

from splitledger.models.balance import Balance
from splitledger.models.events import (
    EventSeverity,
    LedgerEvent,
    LedgerEventBuilder,
    LedgerEventType,
)
from splitledger.models.expense import (
    Expense,
    ExpenseCategory,
    ParticipantShare,
)
from splitledger.models.money import CENT, ZERO, to_money
from splitledger.models.registry import (
    Group,
    Membership,
    MembershipRole,
    MembershipStatus,
)
from splitledger.models.settlement import (
    TERMINAL_STATUSES,
    Settlement,
    SettlementStatus,
)

__all__ = [
    # Money
    "CENT",
    "ZERO",
    "to_money",
    # Registry models
    "Group",
    "Membership",
    "MembershipRole",
    "MembershipStatus",
    # Accounting models
    "Balance",
    "Expense",
    "ExpenseCategory",
    "ParticipantShare",
    "Settlement",
    "SettlementStatus",
    "TERMINAL_STATUSES",
    # Event models
    "EventSeverity",
    "LedgerEvent",
    "LedgerEventBuilder",
    "LedgerEventType",
]
