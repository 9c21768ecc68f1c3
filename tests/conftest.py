"""
Pytest configuration and shared fixtures.

This file adds the parent directory to the Python path so that tests can
import from the domain, repositories, services and api packages, and provides
an in-memory stand-in for the Supabase client (tables, rpc and auth) so the
repositories and services run without a backend.
"""

from __future__ import annotations

import re
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
from uuid import UUID, uuid4

import pytest

# Add the project root to the Python path
# so tests can import domain, repositories, etc.
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from postgrest.exceptions import APIError
from supabase import AuthError

from domain.lead import Lead, LeadDraft, LeadPriority, LeadSource, LeadStatus
from domain.user import Principal, User, UserRole
from repositories.lead_repository import LeadRepository, fields_to_row, row_to_lead

NOW = datetime(2025, 3, 15, 10, 0, tzinfo=timezone.utc)

MANAGER_ID = UUID("00000000-0000-0000-0000-0000000000a1")
AGENT_ID = UUID("00000000-0000-0000-0000-0000000000b1")
OTHER_AGENT_ID = UUID("00000000-0000-0000-0000-0000000000b2")
INACTIVE_AGENT_ID = UUID("00000000-0000-0000-0000-0000000000b3")

VALID_ID_NUMBER = "8503155800084"


class FakeAuthError(AuthError):
    """AuthError carrying only a message, like the provider's rejection errors."""

    def __init__(self, message: str) -> None:
        Exception.__init__(self, message)
        self.message = message
        self.code = None
        self.name = "AuthApiError"
        self.status = 400


@dataclass
class FakeResponse:
    data: Any = None
    count: Optional[int] = None


# ----------------------------------------------------------------------------
# Tables
# ----------------------------------------------------------------------------

def _like(pattern: str) -> re.Pattern[str]:
    return re.compile(
        "^" + ".*".join(re.escape(part) for part in pattern.split("%")) + "$", re.IGNORECASE
    )


class FakeQuery:
    """Chainable query over one in-memory table, executed on `execute()`."""

    def __init__(self, db: "FakeSupabase", table: str) -> None:
        self._db = db
        self._table = table
        self._op = "select"
        self._columns = "*"
        self._count: Optional[str] = None
        self._payload: Any = None
        self._on_conflict = "id"
        self._ignore_duplicates = False
        self._filters: List[Callable[[Dict[str, Any]], bool]] = []
        self._order: Optional[tuple[str, bool]] = None
        self._limit: Optional[int] = None

    def select(self, columns: str = "*", count: Optional[str] = None) -> "FakeQuery":
        self._op, self._columns, self._count = "select", columns, count
        return self

    def insert(self, payload: Any) -> "FakeQuery":
        self._op, self._payload = "insert", payload
        return self

    def update(self, payload: Dict[str, Any]) -> "FakeQuery":
        self._op, self._payload = "update", payload
        return self

    def upsert(self, payload: Any, on_conflict: str = "id", ignore_duplicates: bool = False) -> "FakeQuery":
        self._op, self._payload = "upsert", payload
        self._on_conflict, self._ignore_duplicates = on_conflict, ignore_duplicates
        return self

    def delete(self) -> "FakeQuery":
        self._op = "delete"
        return self

    def eq(self, column: str, value: Any) -> "FakeQuery":
        self._filters.append(lambda row: row.get(column) == value)
        return self

    def ilike(self, column: str, pattern: str) -> "FakeQuery":
        regex = _like(pattern)
        self._filters.append(lambda row: bool(regex.match(str(row.get(column) or ""))))
        return self

    def order(self, column: str, desc: bool = False) -> "FakeQuery":
        self._order = (column, desc)
        return self

    def limit(self, size: int) -> "FakeQuery":
        self._limit = size
        return self

    def _matching(self) -> List[Dict[str, Any]]:
        return [row for row in self._db.rows(self._table) if all(f(row) for f in self._filters)]

    def _project(self, row: Dict[str, Any]) -> Dict[str, Any]:
        if self._columns.strip() == "*":
            return dict(row)
        names = [name.strip() for name in self._columns.split(",")]
        return {name: row.get(name) for name in names}

    def execute(self) -> FakeResponse:
        self._db.calls.append((self._table, self._op))
        message = self._db.failures.get((self._table, self._op))
        if isinstance(message, Exception):
            raise message
        if message is not None:
            raise APIError({"message": message, "code": "XX000", "details": None, "hint": None})
        return getattr(self, f"_execute_{self._op}")()

    def _execute_select(self) -> FakeResponse:
        rows = self._matching()
        total = len(rows)
        if self._order is not None:
            column, desc = self._order
            rows = sorted(rows, key=lambda row: str(row.get(column) or ""), reverse=desc)
        if self._limit is not None:
            rows = rows[: self._limit]
        return FakeResponse(
            data=[self._project(row) for row in rows],
            count=total if self._count == "exact" else None,
        )

    def _execute_insert(self) -> FakeResponse:
        payloads = self._payload if isinstance(self._payload, list) else [self._payload]
        inserted = []
        for payload in payloads:
            row = dict(payload)
            row.setdefault("id", str(uuid4()))
            self._db.rows(self._table).append(row)
            inserted.append(dict(row))
        return FakeResponse(data=inserted)

    def _execute_update(self) -> FakeResponse:
        updated = []
        for row in self._matching():
            row.update(self._payload)
            updated.append(dict(row))
        return FakeResponse(data=updated)

    def _execute_upsert(self) -> FakeResponse:
        payload = dict(self._payload)
        key = payload.get(self._on_conflict)
        for row in self._db.rows(self._table):
            if row.get(self._on_conflict) == key:
                if self._ignore_duplicates:
                    return FakeResponse(data=[])
                row.update(payload)
                return FakeResponse(data=[dict(row)])
        self._db.rows(self._table).append(payload)
        return FakeResponse(data=[dict(payload)])

    def _execute_delete(self) -> FakeResponse:
        doomed = self._matching()
        table = self._db.rows(self._table)
        table[:] = [row for row in table if row not in doomed]
        return FakeResponse(data=[dict(row) for row in doomed])


class FakeRpc:
    def __init__(self, db: "FakeSupabase", name: str, params: Dict[str, Any]) -> None:
        self._db = db
        self._name = name
        self._params = params

    def execute(self) -> FakeResponse:
        self._db.calls.append(("rpc", self._name))
        message = self._db.failures.get(("rpc", self._name))
        if isinstance(message, Exception):
            raise message
        if message is not None:
            raise APIError({"message": message, "code": "XX000", "details": None, "hint": None})
        if self._name == "user_exists":
            username = self._params["check_username"]
            email = self._params["check_email"]
            return FakeResponse(
                data=any(
                    row.get("username") == username or row.get("email") == email
                    for row in self._db.rows("users")
                )
            )
        raise APIError({"message": f"function {self._name} does not exist", "code": "42883"})


# ----------------------------------------------------------------------------
# Auth
# ----------------------------------------------------------------------------

@dataclass
class FakeAuthUser:
    id: str
    email: str
    user_metadata: Dict[str, Any] = field(default_factory=dict)
    email_confirmed_at: Optional[str] = "2025-01-01T00:00:00Z"


@dataclass
class FakeSession:
    user: FakeAuthUser
    access_token: str


@dataclass
class FakeAuthResponse:
    user: Optional[FakeAuthUser] = None
    session: Optional[FakeSession] = None


class FakeSubscription:
    def __init__(self, auth: "FakeAuth", callback: Callable[[str, Any], None]) -> None:
        self._auth = auth
        self.callback = callback

    def unsubscribe(self) -> None:
        self._auth.listeners.remove(self)


class FakeAdmin:
    def __init__(self, auth: "FakeAuth") -> None:
        self._auth = auth

    def create_user(self, attributes: Dict[str, Any]) -> FakeAuthResponse:
        user = self._auth.add_account(
            attributes["email"],
            attributes["password"],
            metadata=attributes.get("user_metadata", {}),
            confirmed=bool(attributes.get("email_confirm")),
        )
        return FakeAuthResponse(user=user)


class FakeAuth:
    """Email/password accounts, issued tokens and the current session."""

    def __init__(self) -> None:
        self.accounts: Dict[str, tuple[str, FakeAuthUser]] = {}
        self.tokens: Dict[str, FakeAuthUser] = {}
        self.session: Optional[FakeSession] = None
        self.listeners: List[FakeSubscription] = []
        self.confirm_email = True
        self.sign_out_calls = 0
        self.sign_up_calls: List[Dict[str, Any]] = []
        self.admin = FakeAdmin(self)

    def add_account(
        self,
        email: str,
        password: str,
        user_id: Optional[UUID] = None,
        metadata: Optional[Dict[str, Any]] = None,
        confirmed: bool = True,
    ) -> FakeAuthUser:
        if email in self.accounts:
            raise FakeAuthError("A user with this email address has already been registered")
        user = FakeAuthUser(
            id=str(user_id or uuid4()),
            email=email,
            user_metadata=dict(metadata or {}),
            email_confirmed_at="2025-01-01T00:00:00Z" if confirmed else None,
        )
        self.accounts[email] = (password, user)
        return user

    def issue_token(self, user: FakeAuthUser) -> str:
        token = f"token-{user.id}-{len(self.tokens)}"
        self.tokens[token] = user
        return token

    def _emit(self, event: str, session: Optional[FakeSession]) -> None:
        for listener in list(self.listeners):
            listener.callback(event, session)

    def sign_in_with_password(self, credentials: Dict[str, str]) -> FakeAuthResponse:
        account = self.accounts.get(credentials["email"])
        if account is None or account[0] != credentials["password"]:
            raise FakeAuthError("Invalid login credentials")
        user = account[1]
        if user.email_confirmed_at is None:
            raise FakeAuthError("Email not confirmed")
        self.session = FakeSession(user=user, access_token=self.issue_token(user))
        self._emit("SIGNED_IN", self.session)
        return FakeAuthResponse(user=user, session=self.session)

    def get_session(self) -> Optional[FakeSession]:
        return self.session

    def get_user(self, jwt: Optional[str] = None) -> Optional[FakeAuthResponse]:
        user = self.tokens.get(jwt or "")
        if user is None:
            raise FakeAuthError("invalid JWT: unable to parse or verify signature")
        return FakeAuthResponse(user=user)

    def sign_up(self, credentials: Dict[str, Any]) -> FakeAuthResponse:
        self.sign_up_calls.append(credentials)
        options = credentials.get("options", {})
        user = self.add_account(
            credentials["email"],
            credentials["password"],
            metadata=options.get("data", {}),
            confirmed=not self.confirm_email,
        )
        if self.confirm_email:
            return FakeAuthResponse(user=user, session=None)
        self.session = FakeSession(user=user, access_token=self.issue_token(user))
        return FakeAuthResponse(user=user, session=self.session)

    def sign_out(self) -> None:
        self.sign_out_calls += 1
        self.session = None
        self._emit("SIGNED_OUT", None)

    def on_auth_state_change(self, callback: Callable[[str, Any], None]) -> FakeSubscription:
        subscription = FakeSubscription(self, callback)
        self.listeners.append(subscription)
        return subscription


# ----------------------------------------------------------------------------
# Client
# ----------------------------------------------------------------------------

class FakeSupabase:
    """
    In-memory Supabase client.

    `failures[(table, op)] = message` makes the next matching calls raise
    APIError, e.g. `failures[("leads", "select")] = "boom"`. An exception
    instance is raised as-is, e.g. an `httpx.ConnectError` for a dropped
    connection.
    """

    def __init__(self) -> None:
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.failures: Dict[tuple[str, str], Any] = {}
        self.calls: List[tuple[str, str]] = []
        self.auth = FakeAuth()

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return self.tables.setdefault(table, [])

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rpc(self, name: str, params: Dict[str, Any]) -> FakeRpc:
        return FakeRpc(self, name, params)

    def add_user(
        self,
        user_id: UUID,
        username: str,
        role: UserRole,
        full_name: str,
        active: bool = True,
        password: Optional[str] = "secret-pass",
    ) -> User:
        email = f"{username}@example.com"
        self.rows("users").append(
            {
                "id": str(user_id),
                "username": username,
                "password": "",
                "role": role.value,
                "full_name": full_name,
                "email": email,
                "active": active,
                "created_at": "2025-01-01T00:00:00+00:00",
            }
        )
        if password is not None:
            self.auth.add_account(email, password, user_id=user_id)
        return User(
            user_id=user_id,
            username=username,
            role=role,
            full_name=full_name,
            email=email,
            active=active,
            created_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
        )

    def token_for(self, user: User) -> str:
        _, auth_user = self.auth.accounts[user.email]
        return self.auth.issue_token(auth_user)


# ----------------------------------------------------------------------------
# Fixtures
# ----------------------------------------------------------------------------

@pytest.fixture
def fake_client() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def manager(fake_client: FakeSupabase) -> User:
    return fake_client.add_user(MANAGER_ID, "nomsa", UserRole.MANAGER, "Nomsa Dlamini")


@pytest.fixture
def agent(fake_client: FakeSupabase) -> User:
    return fake_client.add_user(AGENT_ID, "thabo", UserRole.AGENT, "Thabo Mkhize")


@pytest.fixture
def other_agent(fake_client: FakeSupabase) -> User:
    return fake_client.add_user(OTHER_AGENT_ID, "lerato", UserRole.AGENT, "Lerato Molefe")


@pytest.fixture
def inactive_agent(fake_client: FakeSupabase) -> User:
    return fake_client.add_user(INACTIVE_AGENT_ID, "sipho", UserRole.AGENT, "Sipho Ndlovu", active=False)


@pytest.fixture
def manager_principal(manager: User) -> Principal:
    return Principal(user=manager)


@pytest.fixture
def agent_principal(agent: User) -> Principal:
    return Principal(user=agent)


@pytest.fixture
def repo(fake_client: FakeSupabase) -> LeadRepository:
    return LeadRepository(fake_client, clock=lambda: NOW)


@pytest.fixture
def make_draft() -> Callable[..., LeadDraft]:
    def factory(**overrides: Any) -> LeadDraft:
        values: Dict[str, Any] = {
            "full_name": "Zanele Khumalo",
            "id_number": VALID_ID_NUMBER,
            "cell_number": "0824567890",
            "residential_address": "12 Long Street, Cape Town",
            "source": LeadSource.WALK_IN,
            "services_interested": ("debt-review",),
            "captured_by": AGENT_ID,
        }
        values.update(overrides)
        return LeadDraft(**values)

    return factory


@pytest.fixture
def make_lead() -> Callable[..., Lead]:
    counter = {"n": 0}

    def factory(**overrides: Any) -> Lead:
        counter["n"] += 1
        values: Dict[str, Any] = {
            "lead_id": uuid4(),
            "lead_number": f"LEAD-2025-{counter['n']:04d}",
            "full_name": "Zanele Khumalo",
            "id_number": VALID_ID_NUMBER,
            "cell_number": "0824567890",
            "residential_address": "12 Long Street, Cape Town",
            "source": LeadSource.WALK_IN,
            "services_interested": ("debt-review",),
            "status": LeadStatus.NEW,
            "priority": LeadPriority.MEDIUM,
            "captured_by": AGENT_ID,
            "assigned_to": AGENT_ID,
            "created_at": NOW,
            "updated_at": NOW,
        }
        values.update(overrides)
        return Lead(**values)

    return factory


@pytest.fixture
def seed_lead(fake_client: FakeSupabase, make_lead: Callable[..., Lead]) -> Callable[..., Lead]:
    """Store a lead row in the fake `leads` table and return it as read back."""

    def factory(**overrides: Any) -> Lead:
        lead = make_lead(**overrides)
        row = fields_to_row({name: getattr(lead, name) for name in Lead.__dataclass_fields__})
        fake_client.rows("leads").append(row)
        return row_to_lead(row)

    return factory
