"""
Membership Protocol — Interface for identity and role resolution.

Transferman defines this protocol; the host project (or the bundled
DjangoMembershipBackend) implements it.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class UserSnapshot:
    """
    Actor identity as of the moment of an action.

    Stored as JSON next to the user FK on history/stock rows, so the trail
    keeps showing who acted even after the user is renamed or deleted.
    """

    user_id: int | None
    username: str
    full_name: str = ''
    email: str | None = None
    role: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)

    @property
    def display(self) -> str:
        role = f" ({self.role})" if self.role else ""
        return f"{self.full_name or self.username}{role}"


@runtime_checkable
class MembershipBackend(Protocol):
    """
    Protocol for resolving an actor's role inside an organization.

    Implementations should provide methods to:
    - Return the actor's role (or None when not an active member)
    - Capture a UserSnapshot for history/audit rows
    """

    def get_role(self, user, organization) -> str | None:
        """
        Role of the user in the organization.

        Args:
            user: Django user instance
            organization: Organization instance

        Returns:
            "MEMBER" / "ADMIN" / "OWNER", or None if not an active member
        """
        ...

    def snapshot(self, user, organization=None) -> UserSnapshot:
        """
        Capture the user's identity (with role, when organization is given).

        Args:
            user: Django user instance
            organization: Optional Organization for role lookup

        Returns:
            UserSnapshot
        """
        ...
