"""
Create the first manager account.

Self-service registration needs email confirmation; this script creates a
confirmed manager directly through the admin API and writes its portal
profile. Requires SUPABASE_KEY to be the service-role key.

Usage:
    python create_manager.py --full-name "Nomsa Dlamini" --username nomsa \
        --email nomsa@example.com --password '...'
"""

import argparse
import sys
from pathlib import Path
from uuid import UUID

# Add parent directory to path so we can import from repositories
sys.path.insert(0, str(Path(__file__).parent.parent))

from supabase import AuthError

from domain.user import UserRole
from repositories.client import get_supabase
from repositories.user_repository import ensure_profile, get_user_by_username


def create_manager(full_name: str, username: str, email: str, password: str) -> int:
    client = get_supabase()

    existing = get_user_by_username(client, username)
    if existing is not None:
        print(f"User already exists: {existing.username} ({existing.role.value})")
        return 0

    try:
        response = client.auth.admin.create_user(
            {
                "email": email,
                "password": password,
                "email_confirm": True,
                "user_metadata": {
                    "full_name": full_name,
                    "username": username,
                    "role": UserRole.MANAGER.value,
                },
            }
        )
    except AuthError as exc:
        print(f"[ERROR] Failed to create auth account: {exc}")
        return 1

    manager = ensure_profile(
        client,
        user_id=UUID(str(response.user.id)),
        username=username,
        role=UserRole.MANAGER,
        full_name=full_name,
        email=email,
    )

    print("[SUCCESS] Manager created successfully!")
    print(f"  User ID: {manager.user_id}")
    print(f"  Username: {manager.username}")
    print(f"  Email: {manager.email}")
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create a confirmed manager account")
    parser.add_argument("--full-name", required=True)
    parser.add_argument("--username", required=True)
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", required=True)
    args = parser.parse_args()
    sys.exit(create_manager(args.full_name, args.username, args.email, args.password))
