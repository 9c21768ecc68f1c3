"""
User repository for portal profiles.

Provides functions to query and manage the `users` table. Profile ids are the
auth provider's user ids. Passwords live with the auth provider only; the
legacy `password` column is always written as an empty placeholder.
"""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional
from uuid import UUID

from supabase import Client

from domain.time import parse_optional_utc_datetime
from domain.user import User, UserRole
from repositories.client import RepositoryError, execute, rows_of

logger = logging.getLogger(__name__)

_USERS_TABLE: str = "users"

# Profile fields a manager may edit.
_EDITABLE_COLUMNS = frozenset({"full_name", "username", "email", "active"})


def _row_to_user(row: Mapping[str, Any]) -> User:
    return User(
        user_id=UUID(str(row["id"])),
        username=str(row["username"]),
        role=UserRole(str(row["role"])),
        full_name=str(row.get("full_name") or ""),
        email=str(row.get("email") or ""),
        active=bool(row.get("active", False)),
        created_at=parse_optional_utc_datetime(row.get("created_at")),
    )


def _first_user(response: Any) -> Optional[User]:
    rows = rows_of(response)
    if not rows:
        return None
    return _row_to_user(rows[0])


def get_user_by_id(client: Client, user_id: UUID) -> Optional[User]:
    """
    Get a profile by its user id.

    Returns:
        User domain model or None if not found
    """
    response = execute(
        client.table(_USERS_TABLE).select("*").eq("id", str(user_id)).limit(1),
        "fetch user",
    )
    return _first_user(response)


def get_user_by_username(client: Client, username: str) -> Optional[User]:
    response = execute(
        client.table(_USERS_TABLE).select("*").eq("username", username).limit(1),
        "fetch user",
    )
    return _first_user(response)


def find_email_for_username(client: Client, username: str) -> Optional[str]:
    """
    Resolve a username to the email the auth provider knows the account by.

    Example:
        email = find_email_for_username(client, "thabo")
        if email is None:
            # no such account
    """
    response = execute(
        client.table(_USERS_TABLE).select("email").eq("username", username).limit(1),
        "resolve username",
    )
    rows = rows_of(response)
    if not rows or not rows[0].get("email"):
        return None
    return str(rows[0]["email"])


def list_agents(client: Client, active_only: bool = False) -> List[User]:
    """Agents ordered by full name. Raises RepositoryError."""

    query = client.table(_USERS_TABLE).select("*").eq("role", UserRole.AGENT.value)
    if active_only:
        query = query.eq("active", True)
    response = execute(query.order("full_name"), "list agents")
    return [_row_to_user(row) for row in rows_of(response)]


def user_exists(client: Client, username: str, email: str) -> bool:
    """
    Ask the backend whether a username or email is already registered.

    Uses the `user_exists` database function so no profile rows are exposed.
    """
    response = execute(
        client.rpc("user_exists", {"check_username": username, "check_email": email}),
        "check existing user",
    )
    return bool(getattr(response, "data", False))


def ensure_profile(
    client: Client,
    user_id: UUID,
    username: str,
    role: UserRole,
    full_name: str,
    email: str,
    active: bool = True,
) -> User:
    """
    Create the profile for an auth account unless it already exists, then
    return the stored profile.

    Safe to call concurrently for the same account: duplicates on `id` are
    ignored and the row is read back either way.
    """

    payload = {
        "id": str(user_id),
        "username": username,
        "password": "",
        "role": UserRole(role).value,
        "full_name": full_name,
        "email": email,
        "active": active,
    }
    execute(
        client.table(_USERS_TABLE).upsert(payload, on_conflict="id", ignore_duplicates=True),
        "create profile",
    )

    user = get_user_by_id(client, user_id)
    if user is None:
        raise RepositoryError(f"Failed to create profile: {user_id} not readable after insert")
    return user


def update_user(client: Client, user_id: UUID, fields: Mapping[str, Any]) -> None:
    """
    Update editable profile columns.

    Raises:
        ValueError: for columns that are not editable
        RepositoryError: if the backend rejects the update
    """
    unknown = set(fields) - _EDITABLE_COLUMNS
    if unknown:
        raise ValueError(f"Profile fields cannot be changed: {', '.join(sorted(unknown))}")
    if not fields:
        return

    execute(
        client.table(_USERS_TABLE).update(dict(fields)).eq("id", str(user_id)),
        "update user",
    )


def set_user_active(client: Client, user_id: UUID, active: bool) -> None:
    update_user(client, user_id, {"active": active})


__all__ = [
    "ensure_profile",
    "find_email_for_username",
    "get_user_by_id",
    "get_user_by_username",
    "list_agents",
    "set_user_active",
    "update_user",
    "user_exists",
]
