"""
Domain: portal user accounts.

Represents call-center staff who sign in to the portal. Authentication itself
is delegated to the backend auth provider; this entity is the profile row that
grants a role inside the portal.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from .time import require_utc_timestamp


class UserRole(str, Enum):
    AGENT = "agent"
    MANAGER = "manager"


@dataclass(frozen=True, slots=True)
class User:
    """
    Portal profile keyed by the auth provider's user id.

    Invariants:
    - Inactive users cannot authenticate.
    - Users are never hard-deleted; they are deactivated instead.
    """

    user_id: UUID
    username: str
    role: UserRole
    full_name: str
    email: str
    active: bool = True
    created_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "role", UserRole(self.role))
        if self.created_at is not None:
            require_utc_timestamp("created_at", self.created_at)

    def can_authenticate(self) -> bool:
        return self.active

    @property
    def is_manager(self) -> bool:
        return self.role is UserRole.MANAGER


@dataclass(frozen=True, slots=True)
class Principal:
    """
    The authenticated user for one request or one session.

    Passed explicitly to every operation that needs to know who is acting.
    """

    user: User
    access_token: Optional[str] = None

    @property
    def user_id(self) -> UUID:
        return self.user.user_id

    @property
    def username(self) -> str:
        return self.user.username

    @property
    def is_manager(self) -> bool:
        return self.user.is_manager
