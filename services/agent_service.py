"""
Agent management service (manager only).

Handles:
- Listing agents for dashboards, filters and reassignment
- Provisioning agent accounts (auth account + portal profile)
- Editing agent profiles and toggling activation

Agents are deactivated, never deleted.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional
from uuid import UUID

from supabase import AuthError, Client

from domain.user import Principal, User, UserRole
from repositories.client import RepositoryError
from repositories.user_repository import (
    ensure_profile,
    get_user_by_id,
    get_user_by_username,
    list_agents,
    set_user_active,
    update_user,
    user_exists,
)
from services.auth_service import require_manager

logger = logging.getLogger(__name__)


class AgentManagementError(Exception):
    """Raised when an agent cannot be created or changed."""


def load_agents(client: Client, active_only: bool = False) -> List[User]:
    """Agents ordered by name; an empty list when they cannot be read."""

    try:
        return list_agents(client, active_only=active_only)
    except RepositoryError:
        logger.exception("Failed to load agents")
        return []


def agent_names(agents: List[User]) -> dict[UUID, str]:
    return {agent.user_id: agent.full_name or agent.username for agent in agents}


def provision_agent(
    client: Client,
    principal: Principal,
    *,
    full_name: str,
    username: str,
    email: str,
    password: str,
    active: bool = True,
) -> User:
    """
    Create an agent account with a confirmed email and its profile.

    Requires a client configured with the service key (admin API).

    Raises:
        PermissionDeniedError: principal is not a manager
        AgentManagementError: duplicate username/email or backend refusal
    """

    require_manager(principal)
    if not password:
        raise AgentManagementError("Password is required for new agents")

    try:
        if user_exists(client, username, email):
            raise AgentManagementError("Username or email already exists")
    except RepositoryError as exc:
        raise AgentManagementError("Failed to validate username") from exc

    try:
        response = client.auth.admin.create_user(
            {
                "email": email,
                "password": password,
                "email_confirm": True,
                "user_metadata": {
                    "full_name": full_name,
                    "username": username,
                    "role": UserRole.AGENT.value,
                },
            }
        )
    except AuthError as exc:
        logger.exception("Failed to create agent account", extra={"username": username})
        raise AgentManagementError(getattr(exc, "message", None) or "Failed to create agent") from exc

    auth_user = getattr(response, "user", None)
    if auth_user is None:
        raise AgentManagementError("Failed to create agent")

    try:
        agent = ensure_profile(
            client,
            user_id=UUID(str(auth_user.id)),
            username=username,
            role=UserRole.AGENT,
            full_name=full_name,
            email=email,
            active=active,
        )
    except RepositoryError as exc:
        logger.exception("Failed to create agent profile", extra={"username": username})
        raise AgentManagementError("Failed to create agent") from exc

    logger.info("Agent created", extra={"user_id": str(agent.user_id), "username": username})
    return agent


def _require_agent(client: Client, agent_id: UUID) -> User:
    agent = get_user_by_id(client, agent_id)
    if agent is None or agent.role is not UserRole.AGENT:
        raise AgentManagementError(f"Agent not found: {agent_id}")
    return agent


def update_agent(
    client: Client,
    principal: Principal,
    agent_id: UUID,
    *,
    full_name: Optional[str] = None,
    username: Optional[str] = None,
    email: Optional[str] = None,
    active: Optional[bool] = None,
) -> User:
    """Edit an agent's profile; omitted fields stay as they are."""

    require_manager(principal)
    try:
        agent = _require_agent(client, agent_id)
        if username is not None and username != agent.username:
            taken = get_user_by_username(client, username)
            if taken is not None and taken.user_id != agent_id:
                raise AgentManagementError("Username already exists")

        fields: dict[str, Any] = {}
        if full_name is not None:
            fields["full_name"] = full_name
        if username is not None:
            fields["username"] = username
        if email is not None:
            fields["email"] = email
        if active is not None:
            fields["active"] = active
        update_user(client, agent_id, fields)
        updated = get_user_by_id(client, agent_id)
    except RepositoryError as exc:
        logger.exception("Failed to update agent", extra={"user_id": str(agent_id)})
        raise AgentManagementError("Failed to update agent") from exc

    if updated is None:
        raise AgentManagementError(f"Agent not found: {agent_id}")
    return updated


def toggle_agent_active(client: Client, principal: Principal, agent_id: UUID) -> bool:
    """Flip an agent's active flag and return the new value."""

    require_manager(principal)
    try:
        agent = _require_agent(client, agent_id)
        set_user_active(client, agent_id, not agent.active)
    except RepositoryError as exc:
        logger.exception("Failed to update agent status", extra={"user_id": str(agent_id)})
        raise AgentManagementError("Failed to update agent status") from exc

    logger.info(
        "Agent %s", "deactivated" if agent.active else "activated", extra={"user_id": str(agent_id)}
    )
    return not agent.active


__all__ = [
    "AgentManagementError",
    "agent_names",
    "load_agents",
    "provision_agent",
    "toggle_agent_active",
    "update_agent",
]
