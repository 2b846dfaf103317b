"""
Registry Models (Group, Membership)

These are owned by the membership workflow, not by the ledger.
The ledger only reads them through the directory collaborator to learn
who is an admin, who is active, and which group a membership belongs to.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class MembershipRole(str, Enum):
    """Role of a user inside one group."""
    ADMIN = "admin"
    MEMBER = "member"


class MembershipStatus(str, Enum):
    """
    Membership lifecycle status.

    Only ACTIVE memberships may take part in expenses and settlements.
    """
    ACTIVE = "active"
    WAITING_ACCEPTANCE = "waiting_acceptance"
    REMOVED = "removed"


class Group(BaseModel):
    """A group sharing expenses. Currency is informational only."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: int
    name: str = Field(..., min_length=1, max_length=100)
    currency: str = Field(
        default="EUR",
        pattern="^[A-Z]{3}$",
        description="ISO 4217 currency code"
    )
    is_active: bool = True


class Membership(BaseModel):
    """A user's participation record in one group."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: int
    group_id: int
    user_id: Optional[int] = None
    display_name: Optional[str] = Field(default=None, max_length=100)
    role: MembershipRole = MembershipRole.MEMBER
    status: MembershipStatus = MembershipStatus.ACTIVE

    @property
    def is_admin(self) -> bool:
        return self.role == MembershipRole.ADMIN

    @property
    def is_active(self) -> bool:
        return self.status == MembershipStatus.ACTIVE

    def belongs_to(self, group_id: int) -> bool:
        return self.group_id == group_id

    def label(self) -> str:
        return self.display_name or f"membership-{self.id}"
