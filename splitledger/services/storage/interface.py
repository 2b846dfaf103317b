"""
Abstract Storage Interface

DESIGN DECISION: The ledger never talks to a database directly. It
opens one transaction handle per command and does all reads and writes
through it. This allows us to:
1. Swap the in-memory backend for a real database later
2. Keep every command inside one explicit begin/commit/rollback
3. Scope locking to one group instead of one global connection
4. Keep business logic decoupled from storage implementation

The interface is intentionally small - we're not building an ORM.
Just the operations the ledger needs: insert, update-by-id,
find-by-id and find-by-group.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Optional
from uuid import UUID

from splitledger.models.balance import Balance
from splitledger.models.events import LedgerEvent
from splitledger.models.expense import Expense
from splitledger.models.registry import Group, Membership
from splitledger.models.settlement import Settlement, SettlementStatus


class LedgerTransaction(ABC):
    """
    Request-scoped unit of work bound to one group.

    Objects returned by find methods are private working copies. Changes
    become durable only when the transaction commits; a rollback
    discards them all.
    """

    def __init__(self, group_id: int):
        self.group_id = group_id

    # --- Balances ---

    @abstractmethod
    def find_balance(self, membership_id: int) -> Optional[Balance]:
        """Balance of a membership of this group, None if never opened."""
        pass

    @abstractmethod
    def find_balances(self) -> list[Balance]:
        """All balances of this group."""
        pass

    @abstractmethod
    def insert_balance(self, balance: Balance) -> Balance:
        """
        Store a new balance and assign its id.

        Raises:
            DuplicateError: If the membership already has a balance
        """
        pass

    @abstractmethod
    def update_balance(self, balance: Balance) -> Balance:
        """
        Write back a mutated balance.

        Raises:
            NotFoundError: If the balance was never inserted
            ConcurrencyConflict: If another writer committed first
        """
        pass

    # --- Expenses ---

    @abstractmethod
    def insert_expense(self, expense: Expense) -> Expense:
        """Store a new expense with its shares and assign ids."""
        pass

    @abstractmethod
    def update_expense(self, expense: Expense) -> Expense:
        """
        Write back a modified expense.

        Raises:
            NotFoundError: If the expense does not exist in this group
        """
        pass

    @abstractmethod
    def find_expense(self, expense_id: int) -> Optional[Expense]:
        """Expense of this group by id, None otherwise."""
        pass

    @abstractmethod
    def find_expenses(self, include_deleted: bool = False) -> list[Expense]:
        """Expenses of this group, newest first."""
        pass

    # --- Settlements ---

    @abstractmethod
    def insert_settlement(self, settlement: Settlement) -> Settlement:
        pass

    @abstractmethod
    def update_settlement(self, settlement: Settlement) -> Settlement:
        pass

    @abstractmethod
    def find_settlement(self, settlement_id: int) -> Optional[Settlement]:
        pass

    @abstractmethod
    def find_settlements(
        self,
        status: Optional[SettlementStatus] = None,
    ) -> list[Settlement]:
        """Settlements of this group, oldest first."""
        pass

    # --- Boundary ---

    @abstractmethod
    def commit(self) -> None:
        pass

    @abstractmethod
    def rollback(self) -> None:
        pass


class LedgerStorageInterface(ABC):
    """
    Abstract interface for ledger persistence.

    Any storage implementation (in-memory, PostgreSQL, etc.)
    must implement this.
    """

    @abstractmethod
    def transaction(self, group_id: int) -> AbstractContextManager[LedgerTransaction]:
        """
        Open a unit of work for one group.

        The context manager commits on normal exit and rolls back when
        the block raises. Writers touching the same group must be
        serialised (or detected through balance versions).
        """
        pass

    @abstractmethod
    def find_expense_group(self, expense_id: int) -> Optional[int]:
        """Group owning a committed expense, None if unknown."""
        pass

    @abstractmethod
    def find_settlement_group(self, settlement_id: int) -> Optional[int]:
        """Group owning a committed settlement, None if unknown."""
        pass


class DirectoryInterface(ABC):
    """
    Read-only lookup of groups and memberships.

    Owned by the membership workflow; the ledger only consumes it.
    """

    @abstractmethod
    def get_group(self, group_id: int) -> Optional[Group]:
        pass

    @abstractmethod
    def get_membership(self, membership_id: int) -> Optional[Membership]:
        pass

    @abstractmethod
    def list_memberships(self, group_id: int) -> list[Membership]:
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for ledger event storage.

    The event log is append-only - we never delete or modify entries.
    """

    @abstractmethod
    def append_event(self, event: LedgerEvent) -> bool:
        """
        Append an event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[LedgerEvent]:
        """All events of one command, in chronological order."""
        pass

    @abstractmethod
    def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: int,
    ) -> list[LedgerEvent]:
        """All events for a specific entity, in chronological order."""
        pass

    @abstractmethod
    def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[LedgerEvent]:
        """Most recent events, newest first."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConcurrencyConflict(StorageError):
    """A balance was changed by another writer since it was read."""
    pass
