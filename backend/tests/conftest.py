"""
Shared fixtures: an in-memory stand-in for the Supabase query builder, a
scripted completion client, and a TestClient wired to both through FastAPI
dependency overrides.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient
from postgrest.exceptions import APIError

from sge.core.errors import AuthenticationError, UpstreamServiceError
from sge.core.security import AuthenticatedIdentity, get_token_verifier
from sge.core.supabase import get_user_client_factory
from sge.main import app
from sge.services.db_client import SupabaseDBClient
from sge.services.llm import get_completion_client
from sge.services.onboarding import (
    UserOnboardingService,
    get_onboarding_service,
    get_onboarding_service_factory,
)


# ============================================================================
# Fake Supabase
# ============================================================================

UNIQUE_COLUMNS = {
    "organizations": ["id", "name_key"],
    "profiles": ["id"],
    "conversations": ["id"],
    "messages": ["id"],
}

_EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


def pg_name_key(name: str) -> str:
    """lower(btrim(name)) the way Postgres computes it: per character, with no
    context-dependent casing such as the Greek final sigma."""
    return "".join(ch.lower() for ch in name.strip())


class FakeSession:
    """Stands in for the httpx session of a per-request PostgREST client."""

    def __init__(self) -> None:
        self.closed = 0

    def close(self) -> None:
        self.closed += 1


class FakeResponse:
    def __init__(self, data: List[Dict[str, Any]]):
        self.data = data


class FakeQuery:
    def __init__(self, db: "FakeSupabase", table: str, op: str, payload: Any = None, columns: str = "*"):
        self._db = db
        self._table = table
        self._op = op
        self._payload = payload
        self._columns = columns
        self._filters: List[Tuple[str, Any]] = []
        self._order: Optional[Tuple[str, bool]] = None
        self._limit: Optional[int] = None

    def eq(self, column: str, value: Any) -> "FakeQuery":
        self._filters.append((column, value))
        return self

    def order(self, column: str, *, desc: bool = False) -> "FakeQuery":
        self._order = (column, desc)
        return self

    def limit(self, size: int) -> "FakeQuery":
        self._limit = size
        return self

    def execute(self) -> FakeResponse:
        self._db.calls.append((self._table, self._op))
        failure = self._db.failures.pop((self._table, self._op), None)
        if failure is not None:
            raise failure
        if self._op == "insert":
            return FakeResponse([self._db.insert_row(self._table, self._payload)])
        if self._op == "rpc":
            return FakeResponse(self._db.call_function(self._table, self._payload))
        return FakeResponse(self._select())

    def _select(self) -> List[Dict[str, Any]]:
        rows = [
            row for row in self._db.tables[self._table]
            if all(row.get(column) == value for column, value in self._filters)
        ]
        if self._order:
            column, desc = self._order
            rows = sorted(rows, key=lambda row: row.get(column) or "", reverse=desc)
        if self._limit is not None:
            rows = rows[: self._limit]
        if self._columns.strip() != "*":
            wanted = [c.strip() for c in self._columns.split(",")]
            rows = [{c: row.get(c) for c in wanted} for row in rows]
        return [dict(row) for row in rows]


class FakeTable:
    def __init__(self, db: "FakeSupabase", name: str):
        self._db = db
        self._name = name

    def select(self, columns: str = "*") -> FakeQuery:
        return FakeQuery(self._db, self._name, "select", columns=columns)

    def insert(self, payload: Dict[str, Any]) -> FakeQuery:
        return FakeQuery(self._db, self._name, "insert", payload=payload)


class FakeSupabase:
    """Implements the slice of the Supabase and PostgREST clients that SupabaseDBClient uses."""

    def __init__(self) -> None:
        self.tables: Dict[str, List[Dict[str, Any]]] = {name: [] for name in UNIQUE_COLUMNS}
        self.calls: List[Tuple[str, str]] = []
        self.failures: Dict[Tuple[str, str], Exception] = {}
        self.session = FakeSession()
        self._clock = 0

    def table(self, name: str) -> FakeTable:
        return FakeTable(self, name)

    def rpc(self, fn: str, params: Dict[str, Any]) -> FakeQuery:
        return FakeQuery(self, fn, "rpc", payload=params)

    def call_function(self, fn: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        if fn != "find_or_create_organization":
            raise APIError({"message": f"function {fn} does not exist", "code": "42883", "details": None, "hint": None})
        key = pg_name_key(params["org_name"])
        for row in self.tables["organizations"]:
            if row["name_key"] == key:
                return [dict(row)]
        self.calls.append(("organizations", "insert"))
        return [self.insert_row("organizations", {"name": params["org_name"].strip()})]

    def insert_row(self, table: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        row = dict(payload)
        row.setdefault("id", str(uuid.uuid4()))
        self._clock += 1
        row.setdefault("created_at", (_EPOCH + timedelta(seconds=self._clock)).isoformat())
        if table == "organizations":
            row["name_key"] = pg_name_key(row["name"])
        for column in UNIQUE_COLUMNS[table]:
            if any(existing.get(column) == row.get(column) for existing in self.tables[table]):
                raise APIError({
                    "message": f'duplicate key value violates unique constraint "{table}_{column}_key"',
                    "code": "23505",
                    "details": f"Key ({column})=({row.get(column)}) already exists.",
                    "hint": None,
                })
        self.tables[table].append(row)
        return dict(row)

    def fail(self, table: str, op: str, message: str = "boom", code: str = "XX000") -> None:
        self.failures[(table, op)] = APIError({"message": message, "code": code, "details": message, "hint": None})

    def inserts(self, table: str) -> int:
        return sum(1 for call in self.calls if call == (table, "insert"))


# ============================================================================
# Fake collaborators
# ============================================================================

class FakeVerifier:
    def __init__(self, identities: Dict[str, AuthenticatedIdentity]):
        self._identities = identities

    def verify(self, token: str) -> AuthenticatedIdentity:
        try:
            return self._identities[token]
        except KeyError:
            raise AuthenticationError("Invalid or expired token")


class FakeCompletion:
    def __init__(self) -> None:
        self.calls: List[Tuple[str, list]] = []
        self.fail = False

    def generate_reply(self, content: str, history=()) -> str:
        self.calls.append((content, list(history)))
        if self.fail:
            raise UpstreamServiceError("OpenAI API call failed: unavailable")
        return f"reply to: {content}"


ALICE = AuthenticatedIdentity(id="11111111-1111-1111-1111-111111111111", email="alice@example.com")
BOB = AuthenticatedIdentity(id="22222222-2222-2222-2222-222222222222", email="bob@example.com")

TOKENS = {"token-alice": ALICE, "token-bob": BOB}


def auth_header(token: str = "token-alice") -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def fake_db() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def completion() -> FakeCompletion:
    return FakeCompletion()


@pytest.fixture
def onboarding_service(fake_db: FakeSupabase) -> UserOnboardingService:
    return UserOnboardingService(SupabaseDBClient(fake_db))


@pytest.fixture
def client(fake_db: FakeSupabase, completion: FakeCompletion, onboarding_service: UserOnboardingService):
    app.dependency_overrides[get_token_verifier] = lambda: FakeVerifier(TOKENS)
    app.dependency_overrides[get_user_client_factory] = lambda: (lambda token: fake_db)
    app.dependency_overrides[get_onboarding_service] = lambda: onboarding_service
    app.dependency_overrides[get_onboarding_service_factory] = lambda: (lambda: onboarding_service)
    app.dependency_overrides[get_completion_client] = lambda: completion
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def onboarded_alice(onboarding_service: UserOnboardingService):
    return onboarding_service.onboard(ALICE.id, {"organization_name": "Acme"})
