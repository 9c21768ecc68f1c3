"""
Supabase client initialization.

This module contains *only* the backend connection setup: a cached process-wide
client for data access, a factory for throwaway clients (used by sign-in flows
so that one user's auth session never lands on the shared client), and the
error normalization every repository uses.

Environment variables required:
- SUPABASE_URL: Your Supabase project URL
- SUPABASE_KEY: Your Supabase API key (use a server-side key only on the backend)
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import httpx
from dotenv import load_dotenv
from postgrest.exceptions import APIError
from supabase import Client, create_client

# Load environment variables from the .env file at the project root
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)


class RepositoryError(RuntimeError):
    """Raised when the backend rejects or fails a read or write."""


def _require_env(name: str, hint: str) -> str:
    value = os.getenv(name)
    if not value:
        raise RuntimeError(f"Missing environment variable: {name}. {hint}")
    return value


def create_supabase() -> Client:
    """Create a new Supabase client from the environment."""

    url = _require_env("SUPABASE_URL", "Set SUPABASE_URL to your Supabase project URL.")
    key = _require_env("SUPABASE_KEY", "Set SUPABASE_KEY to your Supabase API key.")
    return create_client(url, key)


@lru_cache(maxsize=1)
def get_supabase() -> Client:
    """Process-wide Supabase client shared by the repositories."""
    return create_supabase()


def execute(query: Any, action: str) -> Any:
    """
    Run a PostgREST query and normalize failures to RepositoryError.

    Older clients report errors on `response.error`; current ones raise
    `APIError`. Transport failures surface as `httpx.HTTPError`. All of them
    end up as `RepositoryError("Failed to <action>: ...")`.
    """

    try:
        response = query.execute()
    except APIError as exc:
        raise RepositoryError(f"Failed to {action}: {exc.message or exc}") from exc
    except httpx.HTTPError as exc:
        raise RepositoryError(f"Failed to {action}: {exc}") from exc

    error = getattr(response, "error", None)
    if error:
        raise RepositoryError(f"Failed to {action}: {error}")
    return response


def rows_of(response: Any) -> list[dict[str, Any]]:
    return getattr(response, "data", None) or []


__all__ = [
    "RepositoryError",
    "create_supabase",
    "execute",
    "get_supabase",
    "rows_of",
]
