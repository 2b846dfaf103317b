"""
In-Memory Storage Implementation

DESIGN DECISION: The bundled backend keeps everything in process memory:
1. No database setup required for tests or embedding
2. Real transaction semantics (private working copies, atomic commit)
3. One lock per group, so commands on different groups run in parallel
4. Balance versions are checked on commit as a second line of safety

TRADEOFFS:
- Nothing survives the process
- Ids are never reused, even after a rollback (like a DB sequence)

The implementation follows the abstract interface, so a SQL backend can
replace it without changing business logic.
"""

import itertools
import threading
from collections import defaultdict
from contextlib import contextmanager
from typing import Iterator, Optional
from uuid import UUID

from splitledger.models.balance import Balance
from splitledger.models.events import LedgerEvent
from splitledger.models.expense import Expense
from splitledger.models.registry import Group, Membership
from splitledger.models.settlement import Settlement, SettlementStatus
from splitledger.services.storage.interface import (
    AuditStorageInterface,
    ConcurrencyConflict,
    DirectoryInterface,
    DuplicateError,
    LedgerStorageInterface,
    LedgerTransaction,
    NotFoundError,
)


class _GroupTables:
    """Committed rows of one group."""

    def __init__(self):
        self.balances: dict[int, Balance] = {}       # membership_id -> Balance
        self.expenses: dict[int, Expense] = {}       # expense_id -> Expense
        self.settlements: dict[int, Settlement] = {}  # settlement_id -> Settlement


class InMemoryTransaction(LedgerTransaction):
    """
    Working set over one group's committed tables.

    Reads copy committed rows into the working set once; later reads
    return the same object so one command sees its own writes.
    """

    def __init__(self, storage: "InMemoryLedgerStorage", group_id: int):
        super().__init__(group_id)
        self._storage = storage
        self._tables = storage._tables_for(group_id)

        self._balances: dict[int, Balance] = {}
        self._read_versions: dict[int, int] = {}
        self._dirty_balances: set[int] = set()
        self._new_balances: set[int] = set()

        self._expenses: dict[int, Expense] = {}
        self._dirty_expenses: set[int] = set()

        self._settlements: dict[int, Settlement] = {}
        self._dirty_settlements: set[int] = set()

        self._closed = False

    # -------------------------------------------------------------------------
    # Balances
    # -------------------------------------------------------------------------

    def find_balance(self, membership_id: int) -> Optional[Balance]:
        self._check_open()
        if membership_id in self._balances:
            return self._balances[membership_id]
        committed = self._tables.balances.get(membership_id)
        if committed is None:
            return None
        working = committed.model_copy(deep=True)
        self._balances[membership_id] = working
        self._read_versions[membership_id] = committed.version
        return working

    def find_balances(self) -> list[Balance]:
        self._check_open()
        ids = list(self._tables.balances) + [
            m for m in self._balances if m not in self._tables.balances
        ]
        return [self.find_balance(membership_id) for membership_id in ids]

    def insert_balance(self, balance: Balance) -> Balance:
        self._check_open()
        if self.find_balance(balance.membership_id) is not None:
            raise DuplicateError(
                f"Membership {balance.membership_id} already has a balance"
            )
        balance.id = self._storage._next_id("balance")
        self._balances[balance.membership_id] = balance
        self._new_balances.add(balance.membership_id)
        self._dirty_balances.add(balance.membership_id)
        return balance

    def update_balance(self, balance: Balance) -> Balance:
        self._check_open()
        current = self.find_balance(balance.membership_id)
        if current is None:
            raise NotFoundError(f"Balance of membership {balance.membership_id} not found")
        if current is not balance:
            # Caller holds a copy from elsewhere; its version must still match
            if balance.version != current.version:
                raise ConcurrencyConflict(
                    f"Balance of membership {balance.membership_id} is stale"
                )
            self._balances[balance.membership_id] = balance
        self._dirty_balances.add(balance.membership_id)
        return balance

    # -------------------------------------------------------------------------
    # Expenses
    # -------------------------------------------------------------------------

    def insert_expense(self, expense: Expense) -> Expense:
        self._check_open()
        if expense.group_id != self.group_id:
            raise NotFoundError(f"Group {expense.group_id} is not open in this transaction")
        expense.id = self._storage._next_id("expense")
        for share in expense.participants:
            share.id = self._storage._next_id("participant_share")
        self._expenses[expense.id] = expense
        self._dirty_expenses.add(expense.id)
        return expense

    def update_expense(self, expense: Expense) -> Expense:
        self._check_open()
        if expense.id is None or self.find_expense(expense.id) is None:
            raise NotFoundError(f"Expense {expense.id} not found")
        for share in expense.participants:
            if share.id is None:
                share.id = self._storage._next_id("participant_share")
        self._expenses[expense.id] = expense
        self._dirty_expenses.add(expense.id)
        return expense

    def find_expense(self, expense_id: int) -> Optional[Expense]:
        self._check_open()
        if expense_id in self._expenses:
            return self._expenses[expense_id]
        committed = self._tables.expenses.get(expense_id)
        if committed is None:
            return None
        working = committed.model_copy(deep=True)
        self._expenses[expense_id] = working
        return working

    def find_expenses(self, include_deleted: bool = False) -> list[Expense]:
        self._check_open()
        ids = set(self._tables.expenses) | set(self._expenses)
        expenses = [self.find_expense(expense_id) for expense_id in ids]
        if not include_deleted:
            expenses = [e for e in expenses if not e.is_deleted]
        return sorted(expenses, key=lambda e: (e.expense_date, e.id), reverse=True)

    # -------------------------------------------------------------------------
    # Settlements
    # -------------------------------------------------------------------------

    def insert_settlement(self, settlement: Settlement) -> Settlement:
        self._check_open()
        if settlement.group_id != self.group_id:
            raise NotFoundError(f"Group {settlement.group_id} is not open in this transaction")
        settlement.id = self._storage._next_id("settlement")
        self._settlements[settlement.id] = settlement
        self._dirty_settlements.add(settlement.id)
        return settlement

    def update_settlement(self, settlement: Settlement) -> Settlement:
        self._check_open()
        if settlement.id is None or self.find_settlement(settlement.id) is None:
            raise NotFoundError(f"Settlement {settlement.id} not found")
        self._settlements[settlement.id] = settlement
        self._dirty_settlements.add(settlement.id)
        return settlement

    def find_settlement(self, settlement_id: int) -> Optional[Settlement]:
        self._check_open()
        if settlement_id in self._settlements:
            return self._settlements[settlement_id]
        committed = self._tables.settlements.get(settlement_id)
        if committed is None:
            return None
        working = committed.model_copy(deep=True)
        self._settlements[settlement_id] = working
        return working

    def find_settlements(
        self,
        status: Optional[SettlementStatus] = None,
    ) -> list[Settlement]:
        self._check_open()
        ids = set(self._tables.settlements) | set(self._settlements)
        settlements = [self.find_settlement(settlement_id) for settlement_id in ids]
        if status is not None:
            settlements = [s for s in settlements if s.status == status]
        return sorted(settlements, key=lambda s: (s.created_at, s.id))

    # -------------------------------------------------------------------------
    # Boundary
    # -------------------------------------------------------------------------

    def commit(self) -> None:
        self._check_open()

        # Validate every balance write before applying anything
        for membership_id in self._dirty_balances:
            committed = self._tables.balances.get(membership_id)
            if membership_id in self._new_balances:
                if committed is not None:
                    raise ConcurrencyConflict(
                        f"Balance of membership {membership_id} was opened concurrently"
                    )
            elif committed is None or committed.version != self._read_versions.get(membership_id):
                raise ConcurrencyConflict(
                    f"Balance of membership {membership_id} changed since it was read"
                )

        for membership_id in self._dirty_balances:
            working = self._balances[membership_id]
            if membership_id not in self._new_balances:
                working.version += 1
            self._tables.balances[membership_id] = working.model_copy(deep=True)
        for expense_id in self._dirty_expenses:
            self._tables.expenses[expense_id] = self._expenses[expense_id].model_copy(deep=True)
        for settlement_id in self._dirty_settlements:
            self._tables.settlements[settlement_id] = (
                self._settlements[settlement_id].model_copy(deep=True)
            )

        self._closed = True

    def rollback(self) -> None:
        self._balances.clear()
        self._expenses.clear()
        self._settlements.clear()
        self._dirty_balances.clear()
        self._dirty_expenses.clear()
        self._dirty_settlements.clear()
        self._closed = True

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError("Transaction is already closed")


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Process-local ledger storage with per-group locking."""

    def __init__(self):
        self._groups: dict[int, _GroupTables] = defaultdict(_GroupTables)
        self._locks: dict[int, threading.RLock] = {}
        self._registry_lock = threading.Lock()
        self._sequences: dict[str, Iterator[int]] = defaultdict(lambda: itertools.count(1))

    @contextmanager
    def transaction(self, group_id: int) -> Iterator[InMemoryTransaction]:
        with self._lock_for(group_id):
            tx = InMemoryTransaction(self, group_id)
            try:
                yield tx
            except BaseException:
                tx.rollback()
                raise
            else:
                try:
                    tx.commit()
                except BaseException:
                    tx.rollback()
                    raise

    def find_expense_group(self, expense_id: int) -> Optional[int]:
        with self._registry_lock:
            for group_id, tables in self._groups.items():
                if expense_id in tables.expenses:
                    return group_id
        return None

    def find_settlement_group(self, settlement_id: int) -> Optional[int]:
        with self._registry_lock:
            for group_id, tables in self._groups.items():
                if settlement_id in tables.settlements:
                    return group_id
        return None

    def _lock_for(self, group_id: int) -> threading.RLock:
        with self._registry_lock:
            if group_id not in self._locks:
                self._locks[group_id] = threading.RLock()
            return self._locks[group_id]

    def _tables_for(self, group_id: int) -> _GroupTables:
        with self._registry_lock:
            return self._groups[group_id]

    def _next_id(self, kind: str) -> int:
        with self._registry_lock:
            return next(self._sequences[kind])


class InMemoryDirectory(DirectoryInterface):
    """Directory of groups and memberships held in memory."""

    def __init__(
        self,
        groups: Optional[list[Group]] = None,
        memberships: Optional[list[Membership]] = None,
    ):
        self._groups: dict[int, Group] = {}
        self._memberships: dict[int, Membership] = {}
        for group in groups or []:
            self.add_group(group)
        for membership in memberships or []:
            self.add_membership(membership)

    def add_group(self, group: Group) -> Group:
        if group.id in self._groups:
            raise DuplicateError(f"Group {group.id} already exists")
        self._groups[group.id] = group
        return group

    def add_membership(self, membership: Membership) -> Membership:
        if membership.id in self._memberships:
            raise DuplicateError(f"Membership {membership.id} already exists")
        if membership.group_id not in self._groups:
            raise NotFoundError(f"Group {membership.group_id} not found")
        self._memberships[membership.id] = membership
        return membership

    def update_membership(self, membership: Membership) -> Membership:
        if membership.id not in self._memberships:
            raise NotFoundError(f"Membership {membership.id} not found")
        self._memberships[membership.id] = membership
        return membership

    def get_group(self, group_id: int) -> Optional[Group]:
        return self._groups.get(group_id)

    def get_membership(self, membership_id: int) -> Optional[Membership]:
        return self._memberships.get(membership_id)

    def list_memberships(self, group_id: int) -> list[Membership]:
        return [m for m in self._memberships.values() if m.group_id == group_id]


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only event log held in memory."""

    def __init__(self):
        self._events: list[LedgerEvent] = []
        self._lock = threading.Lock()

    def append_event(self, event: LedgerEvent) -> bool:
        with self._lock:
            self._events.append(event)
        return True

    def get_events_by_correlation_id(self, correlation_id: UUID) -> list[LedgerEvent]:
        return [e for e in self._events if e.correlation_id == correlation_id]

    def get_events_by_entity(self, entity_type: str, entity_id: int) -> list[LedgerEvent]:
        return [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]

    def get_recent_events(self, limit: int = 100) -> list[LedgerEvent]:
        return list(reversed(self._events))[:limit]
