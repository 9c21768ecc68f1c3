"""
Request-scoped dependencies.

Every request resolves its own principal from the bearer token; nothing about
the signed-in user is kept between requests.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from supabase import Client

from domain.user import Principal
from repositories.client import create_supabase, get_supabase
from repositories.lead_repository import LeadRepository
from services.auth_service import AuthFailureReason, AuthenticationError, resolve_principal

_bearer = HTTPBearer(auto_error=False)


def get_client() -> Client:
    """Shared data-access client."""
    return get_supabase()


def get_auth_client() -> Client:
    """Fresh client for flows that establish a user session (login, register)."""
    return create_supabase()


def get_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    client: Client = Depends(get_client),
) -> Principal:
    if credentials is None or not credentials.credentials:
        raise AuthenticationError(AuthFailureReason.CREDENTIALS_REJECTED, "Not authenticated")
    return resolve_principal(client, credentials.credentials)


def get_lead_repository(client: Client = Depends(get_client)) -> LeadRepository:
    """Lead collection loaded for this request."""
    repo = LeadRepository(client)
    repo.refresh()
    return repo
