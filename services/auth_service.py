"""
Authentication and session service.

Handles:
- Resolving a login identifier (username or email) to an auth account
- Password sign-in against the backend auth provider
- Loading the portal profile and refusing inactive or missing profiles
- Creating the profile on first sign-in after email confirmation
- Self-service registration
- Per-request principal resolution from a bearer access token

A SessionManager tracks one principal for the lifetime of one backend client
(a CLI session, a worker). HTTP requests never share it; they resolve their own
Principal with `resolve_principal`.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from supabase import AuthError, Client

from domain.user import Principal, User, UserRole
from repositories.client import RepositoryError
from repositories.user_repository import (
    ensure_profile,
    find_email_for_username,
    get_user_by_id,
    user_exists,
)

logger = logging.getLogger(__name__)

# Auth provider events after which the profile is resolved again.
_PROFILE_EVENTS = frozenset({"INITIAL_SESSION", "SIGNED_IN", "TOKEN_REFRESHED", "USER_UPDATED"})


class PrincipalStatus(str, Enum):
    UNRESOLVED = "unresolved"
    RESOLVING = "resolving"
    AUTHENTICATED = "authenticated"
    ANONYMOUS = "anonymous"


class AuthFailureReason(str, Enum):
    NO_ACCOUNT = "no_account"
    CREDENTIALS_REJECTED = "credentials_rejected"
    INACTIVE_PROFILE = "inactive_profile"
    BACKEND_UNAVAILABLE = "backend_unavailable"


class AuthenticationError(Exception):
    """Raised when a principal cannot be established."""

    def __init__(self, reason: AuthFailureReason, message: str) -> None:
        super().__init__(message)
        self.reason = reason
        self.message = message


class RegistrationError(Exception):
    """Raised when self-service registration is refused or fails."""


class PermissionDeniedError(Exception):
    """Raised when a principal lacks the role an operation requires."""


@dataclass(frozen=True, slots=True)
class RegistrationResult:
    user_id: UUID
    confirmation_required: bool


def require_manager(principal: Principal) -> None:
    if not principal.is_manager:
        raise PermissionDeniedError(f"User {principal.username} is not a manager")


def _auth_user_id(auth_user: Any) -> UUID:
    return UUID(str(auth_user.id))


def _metadata(auth_user: Any) -> dict[str, Any]:
    return dict(getattr(auth_user, "user_metadata", None) or {})


def _profile_from_metadata(client: Client, auth_user: Any) -> Optional[User]:
    """
    Create the profile for a confirmed account from its registration metadata.

    Returns None when the account is unconfirmed or carries no username.
    """

    metadata = _metadata(auth_user)
    if not getattr(auth_user, "email_confirmed_at", None) or not metadata.get("username"):
        return None

    logger.info("Creating profile from registration metadata", extra={"user_id": str(auth_user.id)})
    return ensure_profile(
        client,
        user_id=_auth_user_id(auth_user),
        username=str(metadata["username"]),
        role=UserRole(metadata.get("role", UserRole.AGENT.value)),
        full_name=str(metadata.get("full_name", "")),
        email=str(getattr(auth_user, "email", "") or metadata.get("email", "")),
    )


class SessionManager:
    """
    Tracks the authenticated principal of one backend client.

    State machine: UNRESOLVED -> RESOLVING -> AUTHENTICATED | ANONYMOUS.

    Example:
        session = SessionManager(create_supabase())
        session.bootstrap()
        principal = session.login("thabo", "secret")
        if principal is None:
            print(session.last_error.message)
    """

    def __init__(self, client: Client) -> None:
        self._client = client
        self._subscription: Any = None
        self.status = PrincipalStatus.UNRESOLVED
        self.principal: Optional[Principal] = None
        self.last_error: Optional[AuthenticationError] = None

    @property
    def is_authenticated(self) -> bool:
        return self.status is PrincipalStatus.AUTHENTICATED

    def subscribe(self) -> None:
        """Start listening for session changes from the auth provider."""
        if self._subscription is None:
            self._subscription = self._client.auth.on_auth_state_change(self.handle_auth_event)

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    def bootstrap(self) -> Optional[Principal]:
        """
        Adopt an existing backend session, if any.

        A session whose profile is missing or inactive leaves the manager
        ANONYMOUS.
        """

        self.status = PrincipalStatus.RESOLVING
        try:
            session = self._client.auth.get_session()
        except AuthError:
            logger.exception("Failed to read existing session")
            session = None

        if session is None or getattr(session, "user", None) is None:
            return self._become_anonymous()

        profile = self._load_profile(session.user, synthesize=False)
        return self._adopt(profile, getattr(session, "access_token", None))

    def login(self, identifier: str, password: str) -> Optional[Principal]:
        """
        Sign in with a username or an email address.

        Returns the principal, or None with `last_error` describing why.
        """

        self.status = PrincipalStatus.RESOLVING
        self.last_error = None

        email = identifier.strip()
        if "@" not in email:
            try:
                email = find_email_for_username(self._client, email) or ""
            except RepositoryError:
                logger.exception("Failed to resolve username", extra={"identifier": identifier})
                return self._fail(
                    AuthFailureReason.BACKEND_UNAVAILABLE,
                    "Unable to sign in right now. Please try again.",
                )
            if not email:
                return self._fail(AuthFailureReason.NO_ACCOUNT, "No account found for that username.")

        try:
            response = self._client.auth.sign_in_with_password({"email": email, "password": password})
        except AuthError as exc:
            message = getattr(exc, "message", None) or str(exc) or "Invalid login credentials"
            return self._fail(AuthFailureReason.CREDENTIALS_REJECTED, message)

        auth_user = getattr(response, "user", None)
        session = getattr(response, "session", None)
        if auth_user is None:
            return self._fail(AuthFailureReason.CREDENTIALS_REJECTED, "Invalid login credentials")

        profile = self._load_profile(auth_user, synthesize=True)
        if profile is None or not profile.can_authenticate():
            # No usable profile: do not leave a signed-in backend session behind.
            logger.warning(
                "Signing out session without an active profile",
                extra={"user_id": str(auth_user.id)},
            )
            self._sign_out_backend()
            return self._fail(
                AuthFailureReason.INACTIVE_PROFILE,
                "This account is inactive or has no portal profile.",
            )

        self.principal = Principal(user=profile, access_token=getattr(session, "access_token", None))
        self.status = PrincipalStatus.AUTHENTICATED
        logger.info("User signed in", extra={"user_id": str(profile.user_id)})
        return self.principal

    def logout(self) -> None:
        """End the backend session and forget the principal. Safe to repeat."""
        self._sign_out_backend()
        self._become_anonymous()

    def handle_auth_event(self, event: str, session: Any) -> None:
        """Callback for auth provider session-change notifications."""

        if event == "SIGNED_OUT":
            self._become_anonymous()
            return
        if event not in _PROFILE_EVENTS or session is None or getattr(session, "user", None) is None:
            return

        self.status = PrincipalStatus.RESOLVING
        profile = self._load_profile(session.user, synthesize=True)
        self._adopt(profile, getattr(session, "access_token", None))

    def _load_profile(self, auth_user: Any, synthesize: bool) -> Optional[User]:
        try:
            profile = get_user_by_id(self._client, _auth_user_id(auth_user))
            if profile is None and synthesize:
                profile = _profile_from_metadata(self._client, auth_user)
        except RepositoryError:
            logger.exception("Failed to load profile", extra={"user_id": str(auth_user.id)})
            return None
        return profile

    def _adopt(self, profile: Optional[User], access_token: Optional[str]) -> Optional[Principal]:
        if profile is None or not profile.can_authenticate():
            return self._become_anonymous()
        self.principal = Principal(user=profile, access_token=access_token)
        self.status = PrincipalStatus.AUTHENTICATED
        return self.principal

    def _become_anonymous(self) -> None:
        self.principal = None
        self.status = PrincipalStatus.ANONYMOUS
        return None

    def _fail(self, reason: AuthFailureReason, message: str) -> None:
        self.last_error = AuthenticationError(reason, message)
        logger.info("Sign-in refused", extra={"reason": reason.value})
        return self._become_anonymous()

    def _sign_out_backend(self) -> None:
        try:
            self._client.auth.sign_out()
        except AuthError:
            logger.warning("Backend sign-out failed; clearing local session anyway", exc_info=True)


def resolve_principal(client: Client, access_token: str) -> Principal:
    """
    Resolve the principal behind a bearer access token.

    Raises:
        AuthenticationError: token rejected, or no active profile
    """

    try:
        response = client.auth.get_user(access_token)
    except AuthError as exc:
        raise AuthenticationError(
            AuthFailureReason.CREDENTIALS_REJECTED,
            getattr(exc, "message", None) or "Invalid or expired session",
        ) from exc

    auth_user = getattr(response, "user", None) if response is not None else None
    if auth_user is None:
        raise AuthenticationError(AuthFailureReason.CREDENTIALS_REJECTED, "Invalid or expired session")

    try:
        profile = get_user_by_id(client, _auth_user_id(auth_user))
    except RepositoryError as exc:
        logger.exception("Failed to load profile", extra={"user_id": str(auth_user.id)})
        raise AuthenticationError(
            AuthFailureReason.BACKEND_UNAVAILABLE, "Unable to load your profile"
        ) from exc

    if profile is None or not profile.can_authenticate():
        raise AuthenticationError(
            AuthFailureReason.INACTIVE_PROFILE,
            "This account is inactive or has no portal profile.",
        )
    return Principal(user=profile, access_token=access_token)


def register(
    client: Client,
    *,
    full_name: str,
    username: str,
    email: str,
    password: str,
    role: UserRole = UserRole.MANAGER,
    notes: str = "",
    redirect_to: Optional[str] = None,
) -> RegistrationResult:
    """
    Register a new account.

    When the backend signs the account in immediately (email confirmation
    disabled) the profile is created at once; otherwise it is created on the
    first sign-in after confirmation.

    Raises:
        RegistrationError: duplicate username/email, or the backend refused
    """

    try:
        if user_exists(client, username, email):
            raise RegistrationError("An account with that username or email already exists.")
    except RepositoryError as exc:
        logger.exception("Failed to check for existing user")
        raise RegistrationError("Failed to register. Please try again.") from exc

    options: dict[str, Any] = {
        "data": {
            "full_name": full_name,
            "username": username,
            "role": UserRole(role).value,
            "notes": notes,
        }
    }
    redirect = redirect_to or os.getenv("LEAD_PORTAL_EMAIL_REDIRECT")
    if redirect:
        options["email_redirect_to"] = redirect

    try:
        response = client.auth.sign_up({"email": email, "password": password, "options": options})
    except AuthError as exc:
        logger.exception("Registration failed")
        raise RegistrationError(getattr(exc, "message", None) or str(exc)) from exc

    auth_user = getattr(response, "user", None)
    if auth_user is None:
        raise RegistrationError("Failed to create authentication record.")

    user_id = _auth_user_id(auth_user)
    if getattr(response, "session", None) is None:
        return RegistrationResult(user_id=user_id, confirmation_required=True)

    try:
        ensure_profile(
            client,
            user_id=user_id,
            username=username,
            role=role,
            full_name=full_name,
            email=email,
        )
    except RepositoryError:
        # The account exists; the profile is created again on first sign-in.
        logger.warning("Profile creation deferred", extra={"user_id": str(user_id)}, exc_info=True)
    return RegistrationResult(user_id=user_id, confirmation_required=False)


__all__ = [
    "AuthFailureReason",
    "AuthenticationError",
    "PermissionDeniedError",
    "PrincipalStatus",
    "RegistrationError",
    "RegistrationResult",
    "SessionManager",
    "register",
    "require_manager",
    "resolve_principal",
]
