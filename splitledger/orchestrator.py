"""
Ledger Coordinator

This module ties together the ledger components and defines the
commands that change money positions:
1. Expenses (record → split → move balances; edit; soft-delete)
2. Settlements (propose → confirm | cancel)
3. Balance opening for newly active memberships

DESIGN DECISION: The coordinator enforces the boundaries:
- Every command runs inside ONE storage transaction for its group
- Authorization is checked before anything is mutated
- Any failure rolls back everything the command touched
- Only the coordinator writes balances, expenses and settlements back
- Events are delivered only after the commit succeeded

Nothing is retried here. Retrying is a caller policy; see
retry_on_conflict.
"""

from decimal import Decimal
from typing import Callable, Optional, Sequence, TypeVar
from uuid import UUID

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from splitledger.audit import AuditLogger, configure_logging, create_correlation_id
from splitledger.config import LedgerSettings, get_settings
from splitledger.errors import (
    ExceedsDebt,
    InvalidExpense,
    InvalidSettlement,
    InvalidStateTransition,
    NotFound,
    Unauthorized,
)
from splitledger.ledger.optimizer import BalanceStrategy
from splitledger.ledger.split import (
    reprice_expense,
    reversal_deltas,
    split_expense,
    validate_participants,
)
from splitledger.models.balance import Balance
from splitledger.models.events import LedgerEvent, LedgerEventBuilder
from splitledger.models.expense import (
    Expense,
    ExpenseCategory,
    clean_description,
    coerce_category,
)
from splitledger.models.money import ZERO
from splitledger.models.registry import Group, Membership
from splitledger.models.settlement import Settlement
from splitledger.queries import BalanceQueries
from splitledger.services.storage import (
    ConcurrencyConflict,
    DirectoryInterface,
    InMemoryAuditStorage,
    InMemoryDirectory,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    LedgerTransaction,
)

T = TypeVar("T")

Subscriber = Callable[[LedgerEvent], None]


class LedgerCoordinator:
    """
    Sequences multi-object ledger mutations under one unit of work.

    Every command returns (entity, events). The events are the explicit
    record of what changed and are also delivered to the audit logger
    and to every subscriber once the command has committed.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        directory: DirectoryInterface,
        settings: Optional[LedgerSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
        subscribers: Optional[Sequence[Subscriber]] = None,
    ):
        self._storage = storage
        self._directory = directory
        self._settings = settings or get_settings().ledger
        self._audit_logger = audit_logger or AuditLogger()
        self._subscribers = list(subscribers or [])

    def subscribe(self, subscriber: Subscriber) -> None:
        self._subscribers.append(subscriber)

    # =========================================================================
    # EXPENSES
    # =========================================================================

    def record_expense(
        self,
        group_id: int,
        payer_id: int,
        amount: Decimal,
        description: str,
        participant_ids: Sequence[int],
        category: ExpenseCategory = ExpenseCategory.OTHER,
        created_by_id: Optional[int] = None,
    ) -> tuple[Expense, list[LedgerEvent]]:
        """
        Record a new expense and move every participant's balance.

        FLOW:
        1. Validate group, payer, creator and participants
        2. Split the amount into shares (residual cents in list order)
        3. Insert the expense with its shares
        4. Apply one delta per affected balance
        5. Commit

        Raises:
            InvalidAmount: amount missing or not positive
            InvalidExpense: blank or overlong description, unknown category,
                inactive group, bad participants
            NotFound: group or any membership does not exist
            Unauthorized: creator is not an active member of the group
        """
        correlation_id = create_correlation_id()
        created_by_id = created_by_id if created_by_id is not None else payer_id

        try:
            description = clean_description(description)
            category = coerce_category(category)

            group = self._require_group(group_id)
            if not group.is_active:
                raise InvalidExpense(
                    "Cannot add expenses to an inactive group",
                    details={"group_id": group_id},
                )

            payer = self._require_membership(payer_id)
            if not payer.belongs_to(group_id) or not payer.is_active:
                raise InvalidExpense(
                    "Payer must be an active member of the group",
                    details={"membership_id": payer_id, "group_id": group_id},
                )

            creator = self._require_membership(created_by_id)
            if not creator.belongs_to(group_id) or not creator.is_active:
                raise Unauthorized(
                    "Only active members of the group can record expenses",
                    details={"membership_id": created_by_id, "group_id": group_id},
                )

            participants = [self._require_membership(m) for m in participant_ids]
            validate_participants(participants, group_id)

            split = split_expense(amount, [p.id for p in participants], payer_id)

            with self._storage.transaction(group_id) as tx:
                expense = Expense(
                    group_id=group_id,
                    payer_id=payer_id,
                    created_by_id=created_by_id,
                    amount=amount,
                    description=description,
                    category=category,
                    participants=split.shares,
                )
                tx.insert_expense(expense)

                events = [LedgerEventBuilder.expense_recorded(expense, correlation_id)]
                events.extend(
                    self._apply_deltas(tx, split.deltas, correlation_id)
                )
        except Exception as e:
            self._fail("record_expense", e, group_id, created_by_id, correlation_id)
            raise

        self._deliver(events)
        return expense, events

    def edit_expense(
        self,
        expense_id: int,
        actor_id: int,
        amount: Optional[Decimal] = None,
        description: Optional[str] = None,
        category: Optional[ExpenseCategory] = None,
    ) -> tuple[Expense, list[LedgerEvent]]:
        """
        Change an expense's amount, description and/or category.

        Only the creator or a group admin may edit, and only while the
        expense is not deleted. When the amount changes the shares are
        re-split and every participant's balance moves by the difference
        between its new and old share (the payer by the symmetric amount).

        Raises:
            NotFound: expense or actor does not exist
            Unauthorized: actor is neither creator nor admin
            InvalidStateTransition: the expense is deleted
            InvalidAmount: new amount not positive
            InvalidExpense: blank or overlong description, unknown category
        """
        correlation_id = create_correlation_id()
        group_id = None

        try:
            actor = self._require_membership(actor_id)
            group_id = self._require_expense_group(expense_id)

            with self._storage.transaction(group_id) as tx:
                expense = self._require_expense(tx, expense_id)
                before = expense.model_copy(deep=True)

                old_amount = expense.modify_details(
                    actor,
                    amount=amount,
                    description=description,
                    category=category,
                )

                events = [
                    LedgerEventBuilder.expense_updated(
                        expense, old_amount, actor_id, correlation_id
                    )
                ]
                if expense.amount != old_amount:
                    repriced = reprice_expense(before, expense.amount)
                    expense.replace_shares(repriced.shares)
                    events.extend(
                        self._apply_deltas(tx, repriced.deltas, correlation_id)
                    )

                tx.update_expense(expense)
        except Exception as e:
            self._fail("edit_expense", e, group_id, actor_id, correlation_id)
            raise

        self._deliver(events)
        return expense, events

    def delete_expense(
        self,
        expense_id: int,
        actor_id: int,
    ) -> tuple[Expense, list[LedgerEvent]]:
        """
        Soft-delete an expense and reverse its balance effect exactly.

        Raises:
            NotFound: expense or actor does not exist
            Unauthorized: actor is neither creator nor admin
            InvalidStateTransition: the expense is already deleted
        """
        correlation_id = create_correlation_id()
        group_id = None

        try:
            actor = self._require_membership(actor_id)
            group_id = self._require_expense_group(expense_id)

            with self._storage.transaction(group_id) as tx:
                expense = self._require_expense(tx, expense_id)
                expense.mark_as_deleted(actor)

                events = [
                    LedgerEventBuilder.expense_deleted(expense, actor_id, correlation_id)
                ]
                events.extend(
                    self._apply_deltas(tx, reversal_deltas(expense), correlation_id)
                )
                tx.update_expense(expense)
        except Exception as e:
            self._fail("delete_expense", e, group_id, actor_id, correlation_id)
            raise

        self._deliver(events)
        return expense, events

    # =========================================================================
    # SETTLEMENTS
    # =========================================================================

    def propose_settlement(
        self,
        group_id: int,
        payer_id: int,
        receiver_id: int,
        amount: Decimal,
    ) -> tuple[Settlement, list[LedgerEvent]]:
        """
        Create a CREATED settlement from a debtor to another member.

        Balances do NOT move until the receiver confirms.

        Raises:
            InvalidAmount: amount missing or not positive
            InvalidSettlement: payer == receiver, inactive group or members
            NotFound: group or membership does not exist
            ExceedsDebt: amount is larger than the payer's current debt
        """
        correlation_id = create_correlation_id()

        try:
            proposal = Settlement.create(group_id, payer_id, receiver_id, amount)

            group = self._require_group(group_id)
            if not group.is_active:
                raise InvalidSettlement(
                    "Cannot create settlement in an inactive group",
                    details={"group_id": group_id},
                )
            for membership_id, role in ((payer_id, "Payer"), (receiver_id, "Receiver")):
                member = self._require_membership(membership_id)
                if not member.belongs_to(group_id) or not member.is_active:
                    raise InvalidSettlement(
                        f"{role} must be an active member of the group",
                        details={"membership_id": membership_id, "group_id": group_id},
                    )

            with self._storage.transaction(group_id) as tx:
                if self._settings.enforce_debt_limit:
                    balance = tx.find_balance(payer_id)
                    current = balance.amount if balance else ZERO
                    debt = -current if current < ZERO else ZERO
                    if proposal.amount > debt:
                        raise ExceedsDebt(
                            f"Amount ({proposal.amount}) exceeds actual debt ({debt})",
                            details={
                                "amount": str(proposal.amount),
                                "debt": str(debt),
                                "membership_id": payer_id,
                            },
                        )

                settlement = tx.insert_settlement(proposal)
                events = [LedgerEventBuilder.settlement_proposed(settlement, correlation_id)]
        except Exception as e:
            self._fail("propose_settlement", e, group_id, payer_id, correlation_id)
            raise

        self._deliver(events)
        return settlement, events

    def confirm_settlement(
        self,
        settlement_id: int,
        actor_id: int,
    ) -> tuple[Settlement, list[LedgerEvent]]:
        """
        The receiver confirms having been paid.

        On success the settlement becomes CONFIRMED, the payer's balance
        is increased (debt reduced) and the receiver's balance is
        decreased (credit reduced), all in one unit of work.

        Raises:
            NotFound: settlement or actor does not exist
            Unauthorized: actor is not the receiver
            InvalidStateTransition: settlement is not CREATED
        """
        correlation_id = create_correlation_id()
        group_id = None

        try:
            actor = self._require_membership(actor_id)
            group_id = self._require_settlement_group(settlement_id)

            with self._storage.transaction(group_id) as tx:
                settlement = self._require_settlement(tx, settlement_id)
                settlement.confirm(actor)

                payer_balance = self._balance_for(tx, settlement.payer_id)
                receiver_balance = self._balance_for(tx, settlement.receiver_id)
                payer_balance.increase(settlement.amount)
                receiver_balance.decrease(settlement.amount)
                tx.update_balance(payer_balance)
                tx.update_balance(receiver_balance)
                tx.update_settlement(settlement)

                events = [
                    LedgerEventBuilder.settlement_resolved(settlement, correlation_id),
                    LedgerEventBuilder.balance_changed(
                        payer_balance, settlement.amount, group_id, correlation_id
                    ),
                    LedgerEventBuilder.balance_changed(
                        receiver_balance, -settlement.amount, group_id, correlation_id
                    ),
                ]
        except Exception as e:
            self._fail("confirm_settlement", e, group_id, actor_id, correlation_id)
            raise

        self._deliver(events)
        return settlement, events

    def cancel_settlement(
        self,
        settlement_id: int,
        actor_id: int,
    ) -> tuple[Settlement, list[LedgerEvent]]:
        """
        Withdraw a CREATED settlement. No balance effect.

        Payer, receiver or any admin of the group may cancel.

        Raises:
            NotFound: settlement or actor does not exist
            Unauthorized: actor is not payer, receiver or admin
            InvalidStateTransition: settlement is not CREATED
        """
        correlation_id = create_correlation_id()
        group_id = None

        try:
            actor = self._require_membership(actor_id)
            group_id = self._require_settlement_group(settlement_id)

            with self._storage.transaction(group_id) as tx:
                settlement = self._require_settlement(tx, settlement_id)
                settlement.cancel(actor)
                tx.update_settlement(settlement)
                events = [LedgerEventBuilder.settlement_resolved(settlement, correlation_id)]
        except Exception as e:
            self._fail("cancel_settlement", e, group_id, actor_id, correlation_id)
            raise

        self._deliver(events)
        return settlement, events

    # =========================================================================
    # BALANCES
    # =========================================================================

    def open_balance(self, membership_id: int) -> tuple[Balance, list[LedgerEvent]]:
        """
        Create the zero balance of a membership that became active.

        Idempotent: an existing balance is returned unchanged, with no events.

        Raises:
            NotFound: membership does not exist
            InvalidStateTransition: membership is not active
        """
        correlation_id = create_correlation_id()
        group_id = None

        try:
            member = self._require_membership(membership_id)
            group_id = member.group_id
            if not member.is_active:
                raise InvalidStateTransition(
                    "Only active memberships get a balance",
                    details={"membership_id": membership_id, "status": member.status.value},
                )

            with self._storage.transaction(group_id) as tx:
                balance = tx.find_balance(membership_id)
                events = []
                if balance is None:
                    balance = tx.insert_balance(Balance(membership_id=membership_id))
                    events.append(
                        LedgerEventBuilder.balance_opened(balance, group_id, correlation_id)
                    )
        except Exception as e:
            self._fail("open_balance", e, group_id, membership_id, correlation_id)
            raise

        self._deliver(events)
        return balance, events

    # =========================================================================
    # HELPERS
    # =========================================================================

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

    def _require_expense_group(self, expense_id: int) -> int:
        group_id = self._storage.find_expense_group(expense_id)
        if group_id is None:
            raise NotFound("Expense", expense_id)
        return group_id

    def _require_settlement_group(self, settlement_id: int) -> int:
        group_id = self._storage.find_settlement_group(settlement_id)
        if group_id is None:
            raise NotFound("Settlement", settlement_id)
        return group_id

    @staticmethod
    def _require_expense(tx: LedgerTransaction, expense_id: int) -> Expense:
        expense = tx.find_expense(expense_id)
        if expense is None:
            raise NotFound("Expense", expense_id)
        return expense

    @staticmethod
    def _require_settlement(tx: LedgerTransaction, settlement_id: int) -> Settlement:
        settlement = tx.find_settlement(settlement_id)
        if settlement is None:
            raise NotFound("Settlement", settlement_id)
        return settlement

    @staticmethod
    def _balance_for(tx: LedgerTransaction, membership_id: int) -> Balance:
        """Balance of a membership, opened at zero if it was never created."""
        balance = tx.find_balance(membership_id)
        if balance is None:
            balance = tx.insert_balance(Balance(membership_id=membership_id))
        return balance

    def _apply_deltas(
        self,
        tx: LedgerTransaction,
        deltas: dict[int, Decimal],
        correlation_id: UUID,
    ) -> list[LedgerEvent]:
        events = []
        for membership_id, delta in deltas.items():
            balance = self._balance_for(tx, membership_id)
            if balance.apply(delta):
                tx.update_balance(balance)
                events.append(
                    LedgerEventBuilder.balance_changed(
                        balance, delta, tx.group_id, correlation_id
                    )
                )
        return events

    def _fail(
        self,
        command: str,
        error: Exception,
        group_id: Optional[int],
        actor_id: Optional[int],
        correlation_id: UUID,
    ) -> None:
        self._audit_logger.log_command_failed(
            command=command,
            error=error,
            group_id=group_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
        )

    def _deliver(self, events: list[LedgerEvent]) -> None:
        self._audit_logger.log_events(events)

        for subscriber in self._subscribers:
            for event in events:
                try:
                    subscriber(event)
                except Exception as e:
                    # Committed work is never undone by a subscriber
                    self._audit_logger.log_subscriber_failed(
                        getattr(subscriber, "__name__", repr(subscriber)), e, event
                    )


def retry_on_conflict(
    command: Callable[..., T],
    *args,
    ledger_settings: Optional[LedgerSettings] = None,
    **kwargs,
) -> T:
    """
    Run a ledger command, re-running it only on ConcurrencyConflict.

    Every other error is raised immediately. Use this at the caller's
    discretion; the coordinator itself never retries.

    Usage:
        expense, events = retry_on_conflict(coordinator.record_expense, group_id, ...)
    """
    settings = ledger_settings or get_settings().ledger
    retrying = Retrying(
        stop=stop_after_attempt(settings.conflict_retry_attempts),
        wait=wait_exponential(
            multiplier=settings.conflict_retry_wait_seconds,
            max=settings.conflict_retry_wait_seconds * 10,
        ),
        retry=retry_if_exception_type(ConcurrencyConflict),
        reraise=True,
    )
    return retrying(command, *args, **kwargs)


def create_ledger_components(
    storage: Optional[LedgerStorageInterface] = None,
    directory: Optional[DirectoryInterface] = None,
    strategy: Optional[BalanceStrategy] = None,
    use_audit_storage: bool = True,
    subscribers: Optional[Sequence[Subscriber]] = None,
) -> tuple[LedgerCoordinator, BalanceQueries, AuditLogger]:
    """
    Factory function to create all ledger components.

    Args:
        storage: Ledger storage; in-memory if None
        directory: Group/membership directory; in-memory if None
        strategy: Debt optimization strategy; greedy if None
        use_audit_storage: Keep an in-memory event log besides local logs
        subscribers: Callables receiving every committed event

    Returns:
        (coordinator, queries, audit_logger)
    """
    settings = get_settings()
    configure_logging(settings.app.log_level)

    storage = storage or InMemoryLedgerStorage()
    directory = directory or InMemoryDirectory()
    audit_logger = AuditLogger(InMemoryAuditStorage() if use_audit_storage else None)

    coordinator = LedgerCoordinator(
        storage=storage,
        directory=directory,
        settings=settings.ledger,
        audit_logger=audit_logger,
        subscribers=subscribers,
    )
    queries = BalanceQueries(storage, directory, strategy)

    return coordinator, queries, audit_logger
