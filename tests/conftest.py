"""
Shared fixtures for ledger tests.

Groups:
- 1 "Weekend Trip": Alice (admin), Bob, Charlie, Dave (waiting acceptance),
  Erin (active, balance never opened)
- 2 "Flatmates": Eve (admin)
- 3 "Archived": inactive group with Frank
"""

import pytest

from splitledger.audit import AuditLogger
from splitledger.config import LedgerSettings
from splitledger.models import Group, Membership, MembershipRole, MembershipStatus
from splitledger.orchestrator import LedgerCoordinator
from splitledger.queries import BalanceQueries
from splitledger.services.storage import (
    InMemoryAuditStorage,
    InMemoryDirectory,
    InMemoryLedgerStorage,
)


TRIP = 1
FLAT = 2
ARCHIVED = 3


@pytest.fixture
def directory():
    return InMemoryDirectory(
        groups=[
            Group(id=TRIP, name="Weekend Trip", currency="EUR"),
            Group(id=FLAT, name="Flatmates", currency="GBP"),
            Group(id=ARCHIVED, name="Archived", is_active=False),
        ],
        memberships=[
            Membership(id=1, group_id=TRIP, display_name="Alice", role=MembershipRole.ADMIN),
            Membership(id=2, group_id=TRIP, display_name="Bob"),
            Membership(id=3, group_id=TRIP, display_name="Charlie"),
            Membership(
                id=4,
                group_id=TRIP,
                display_name="Dave",
                status=MembershipStatus.WAITING_ACCEPTANCE,
            ),
            Membership(id=5, group_id=TRIP, display_name="Erin"),
            Membership(id=10, group_id=FLAT, display_name="Eve", role=MembershipRole.ADMIN),
            Membership(id=30, group_id=ARCHIVED, display_name="Frank"),
        ],
    )


@pytest.fixture
def alice(directory):
    return directory.get_membership(1)


@pytest.fixture
def bob(directory):
    return directory.get_membership(2)


@pytest.fixture
def charlie(directory):
    return directory.get_membership(3)


@pytest.fixture
def dave(directory):
    return directory.get_membership(4)


@pytest.fixture
def erin(directory):
    return directory.get_membership(5)


@pytest.fixture
def eve(directory):
    return directory.get_membership(10)


@pytest.fixture
def storage():
    return InMemoryLedgerStorage()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def ledger_settings():
    return LedgerSettings(enforce_debt_limit=True)


@pytest.fixture
def coordinator(storage, directory, ledger_settings, audit_logger, alice, bob, charlie):
    coordinator = LedgerCoordinator(
        storage=storage,
        directory=directory,
        settings=ledger_settings,
        audit_logger=audit_logger,
    )
    for member in (alice, bob, charlie):
        coordinator.open_balance(member.id)
    return coordinator


@pytest.fixture
def queries(storage, directory):
    return BalanceQueries(storage, directory)
