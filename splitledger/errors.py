"""
Ledger Error Taxonomy

Every rule violation detected by the ledger core raises one of these.
They are raised synchronously to the coordinator, which rolls back the
unit of work and re-raises the same error to its caller.

None of them are retried automatically.
"""

from typing import Optional


class LedgerError(Exception):
    """Base exception for ledger rule violations."""

    code = "ledger_error"

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class InvalidAmount(LedgerError):
    """Nonpositive or missing amount where a positive amount is required."""

    code = "invalid_amount"


class InvalidExpense(LedgerError):
    """Structurally invalid expense input (no participants, outsiders...)."""

    code = "invalid_expense"


class InvalidSettlement(LedgerError):
    """Structurally invalid settlement input (payer == receiver...)."""

    code = "invalid_settlement"


class ExceedsDebt(LedgerError):
    """Settlement amount exceeds the payer's outstanding debt."""

    code = "exceeds_debt"


class Unauthorized(LedgerError):
    """Actor lacks the role or relationship required for the action."""

    code = "unauthorized"


class InvalidStateTransition(LedgerError):
    """Transition attempted from a state that does not permit it."""

    code = "invalid_state_transition"


class NotFound(LedgerError):
    """Referenced membership, expense, settlement or group does not exist."""

    code = "not_found"

    def __init__(self, entity_type: str, entity_id):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"{entity_type} {entity_id} not found",
            details={"entity_type": entity_type, "entity_id": entity_id},
        )


class LedgerInconsistent(LedgerError):
    """
    The closed-system invariant is broken (total debt != total credit).

    This is a data-integrity bug, never a user mistake.
    """

    code = "ledger_inconsistent"
