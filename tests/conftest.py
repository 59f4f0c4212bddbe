"""Pytest fixtures for backend tests."""

from __future__ import annotations

import itertools
import os
import threading
import uuid
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from types import SimpleNamespace
from typing import Any

import pytest
from fastapi.testclient import TestClient
from postgrest import APIError


def _set_default_env() -> None:
    os.environ.setdefault("SUPABASE_URL", "https://example.supabase.co")
    os.environ.setdefault("SUPABASE_ANON_KEY", "anon-key")
    os.environ.setdefault("SUPABASE_SERVICE_KEY", "service-key")


# Services import app.config, which reads settings at import time.
_set_default_env()

ELECTION_START = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)
ELECTION_END = ELECTION_START + timedelta(hours=2)

# Key columns typed ``uuid`` in supabase/schema.sql.
UUID_TABLES = {"elections", "candidates", "votes"}
UUID_COLUMNS = {"id", "election_id", "candidate_id"}


def _api_error(message: str, code: str) -> APIError:
    return APIError({"message": message, "code": code, "hint": None, "details": None})


def _norm(value: Any) -> Any:
    if isinstance(value, bool) or value is None:
        return value
    return str(value)


def _as_time(value: Any) -> datetime:
    from app.utils.time import parse_timestamp

    return parse_timestamp(value)


def _check_uuid(value: Any) -> None:
    try:
        uuid.UUID(str(value))
    except ValueError:
        raise _api_error(f'invalid input syntax for type uuid: "{value}"', "22P02") from None


def _ballot_of(candidate: dict[str, Any], vote: dict[str, Any]) -> bool:
    return all(
        _norm(candidate.get(key)) == _norm(vote.get(column))
        for key, column in (("id", "candidate_id"), ("election_id", "election_id"), ("position", "position"))
    )


def _profile_of(candidate: dict[str, Any], profile: dict[str, Any]) -> bool:
    return candidate.get("user_id") is not None and _norm(profile.get("user_id")) == _norm(
        candidate["user_id"]
    )


# (parent, child) -> (returns many rows, join predicate)
EMBEDS: dict[tuple[str, str], tuple[bool, Callable[[dict[str, Any], dict[str, Any]], bool]]] = {
    ("candidates", "votes"): (True, _ballot_of),
    ("candidates", "profiles"): (False, _profile_of),
}


def _split_columns(columns: str) -> list[str]:
    parts: list[str] = []
    depth = 0
    current = ""
    for char in columns:
        if char == "," and depth == 0:
            parts.append(current.strip())
            current = ""
            continue
        depth += (char == "(") - (char == ")")
        current += char
    if current.strip():
        parts.append(current.strip())
    return parts


class FakeDatabase:
    """In-memory tables with the constraints declared in supabase/schema.sql."""

    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {
            "elections": [],
            "candidates": [],
            "votes": [],
            "profiles": [],
            "user_roles": [],
        }
        self.lock = threading.Lock()
        self.fail_next: Exception | None = None
        self.before_insert: dict[str, Callable[[], None]] = {}
        self.before_select: dict[str, Callable[[], None]] = {}
        self.queries: list[tuple[str, str]] = []
        self._ticks = itertools.count()

    def timestamp(self) -> str:
        return (ELECTION_START - timedelta(days=30) + timedelta(seconds=next(self._ticks))).isoformat()

    def rows(self, table: str, **filters: Any) -> list[dict[str, Any]]:
        return [
            dict(row)
            for row in self.tables[table]
            if all(_norm(row.get(key)) == _norm(value) for key, value in filters.items())
        ]

    def _check_insert(self, table: str, new_rows: list[dict[str, Any]]) -> None:
        if table == "elections":
            for row in new_rows:
                if _as_time(row["end_time"]) <= _as_time(row["start_time"]):
                    raise _api_error("violates check constraint valid_election_window", "23514")
        if table == "votes":
            seen = {
                (row["voter_id"], row["election_id"], row["position"])
                for row in self.tables["votes"]
            }
            for row in new_rows:
                key = (row["voter_id"], row["election_id"], row["position"])
                if key in seen:
                    raise _api_error(
                        'duplicate key value violates unique constraint "votes_one_per_position"',
                        "23505",
                    )
                seen.add(key)
                if not self.rows(
                    "candidates",
                    id=row["candidate_id"],
                    election_id=row["election_id"],
                    position=row["position"],
                ):
                    raise _api_error("violates foreign key constraint votes_candidate_fk", "23503")

    def insert(self, table: str, payload: dict[str, Any] | list[dict[str, Any]]) -> list[dict[str, Any]]:
        hook = self.before_insert.get(table)
        if hook:
            hook()
        payloads = payload if isinstance(payload, list) else [payload]
        with self.lock:
            new_rows = []
            for item in payloads:
                row = dict(item)
                row.setdefault("id", str(uuid.uuid4()))
                row.setdefault("created_at", self.timestamp())
                new_rows.append(row)
            self._check_insert(table, new_rows)
            self.tables[table].extend(new_rows)
            return [dict(row) for row in new_rows]

    def update(self, table: str, matches: list[dict[str, Any]], payload: dict[str, Any]) -> list[dict[str, Any]]:
        with self.lock:
            if table == "votes" and matches:
                raise _api_error("ballots are immutable", "P0001")
            if table == "candidates" and {"position", "election_id"} & payload.keys():
                for row in matches:
                    if self.rows("votes", candidate_id=row["id"]):
                        raise _api_error(
                            "update violates foreign key constraint votes_candidate_fk", "23503"
                        )
            updated = []
            for row in matches:
                row.update(payload)
                updated.append(dict(row))
            return updated

    def _remove(self, table: str, matches: list[dict[str, Any]]) -> list[dict[str, Any]]:
        ids = {row["id"] for row in matches}
        if table == "candidates" and any(
            row["candidate_id"] in ids for row in self.tables["votes"]
        ):
            raise _api_error("delete violates foreign key constraint votes_candidate_fk", "23503")
        if table == "elections" and any(
            row["election_id"] in ids
            for name in ("votes", "candidates")
            for row in self.tables[name]
        ):
            raise _api_error("delete violates foreign key constraint", "23503")
        self.tables[table] = [row for row in self.tables[table] if row["id"] not in ids]
        return [dict(row) for row in matches]

    def delete(self, table: str, matches: list[dict[str, Any]]) -> list[dict[str, Any]]:
        with self.lock:
            return self._remove(table, matches)

    def _delete_candidate_cascade(self, p_candidate_id: str) -> list[dict[str, Any]]:
        ballots = self._remove(
            "votes",
            [row for row in self.tables["votes"] if _norm(row["candidate_id"]) == _norm(p_candidate_id)],
        )
        self._remove(
            "candidates",
            [row for row in self.tables["candidates"] if _norm(row["id"]) == _norm(p_candidate_id)],
        )
        return [{"deleted_ballots": len(ballots)}]

    def _delete_election(self, p_election_id: str, p_cascade: bool = False) -> list[dict[str, Any]]:
        def owned(table: str) -> list[dict[str, Any]]:
            return [row for row in self.tables[table] if _norm(row["election_id"]) == _norm(p_election_id)]

        ballots = self._remove("votes", owned("votes")) if p_cascade else []
        candidates = self._remove("candidates", owned("candidates"))
        self._remove(
            "elections",
            [row for row in self.tables["elections"] if _norm(row["id"]) == _norm(p_election_id)],
        )
        return [{"deleted_candidates": len(candidates), "deleted_ballots": len(ballots)}]

    def call(self, name: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        """Run a database function as one transaction: all effects or none."""
        functions = {
            "delete_candidate_cascade": self._delete_candidate_cascade,
            "delete_election": self._delete_election,
        }
        with self.lock:
            snapshot = {table: list(rows) for table, rows in self.tables.items()}
            try:
                return functions[name](**params)
            except APIError:
                self.tables = snapshot
                raise


class FakeQuery:
    """Subset of the postgrest request builder used by the services."""

    def __init__(self, db: FakeDatabase, table: str) -> None:
        self.db = db
        self.table = table
        self.action = "select"
        self.columns = "*"
        self.payload: Any = None
        self.filters: list[tuple[str, str, Any]] = []
        self.order_key: tuple[str, bool] | None = None
        self.row_limit: int | None = None
        self.want_count = False
        self.head = False

    def select(self, columns: str = "*", count: str | None = None, head: bool | None = None):
        self.columns = columns
        self.want_count = count == "exact"
        self.head = bool(head)
        return self

    def insert(self, payload):
        self.action, self.payload = "insert", payload
        return self

    def update(self, payload):
        self.action, self.payload = "update", payload
        return self

    def delete(self):
        self.action = "delete"
        return self

    def eq(self, column, value):
        self.filters.append(("eq", column, value))
        return self

    def in_(self, column, values):
        self.filters.append(("in", column, list(values)))
        return self

    def lte(self, column, value):
        self.filters.append(("lte", column, value))
        return self

    def gte(self, column, value):
        self.filters.append(("gte", column, value))
        return self

    def order(self, column, desc=False):
        self.order_key = (column, desc)
        return self

    def limit(self, size):
        self.row_limit = size
        return self

    def _matches(self, row: dict[str, Any]) -> bool:
        for op, column, value in self.filters:
            current = row.get(column)
            if op == "eq" and _norm(current) != _norm(value):
                return False
            if op == "in" and _norm(current) not in {_norm(item) for item in value}:
                return False
            if op == "lte" and not _as_time(current) <= _as_time(value):
                return False
            if op == "gte" and not _as_time(current) >= _as_time(value):
                return False
        return True

    def _project(self, row: dict[str, Any]) -> dict[str, Any]:
        if self.columns.strip() == "*":
            return dict(row)
        projected: dict[str, Any] = {}
        for item in _split_columns(self.columns):
            if "(" not in item:
                projected[item] = row.get(item)
                continue
            # Embedded resource, e.g. ``votes!votes_candidate_fk(position)``.
            name, inner = item.split("(", 1)
            related = name.split("!", 1)[0].strip()
            many, joins = EMBEDS[(self.table, related)]
            child_query = FakeQuery(self.db, related).select(inner[:-1])
            children = [
                child_query._project(child)
                for child in self.db.tables[related]
                if joins(row, child)
            ]
            projected[related] = children if many else (children[0] if children else None)
        return projected

    def _check_types(self) -> None:
        if self.table not in UUID_TABLES:
            return
        for op, column, value in self.filters:
            if column in UUID_COLUMNS:
                for item in value if op == "in" else [value]:
                    _check_uuid(item)

    def execute(self):
        self.db.queries.append((self.action, self.table))
        if self.db.fail_next is not None:
            failure, self.db.fail_next = self.db.fail_next, None
            raise failure
        self._check_types()

        if self.action == "insert":
            return SimpleNamespace(data=self.db.insert(self.table, self.payload), count=None)

        hook = self.db.before_select.get(self.table) if self.action == "select" else None
        if hook:
            hook()
        with self.db.lock:
            matches = [row for row in self.db.tables[self.table] if self._matches(row)]
            if self.action == "select":
                # Embedded rows are read under the same lock as the parent rows.
                if self.order_key:
                    column, desc = self.order_key
                    matches.sort(key=lambda row: str(row.get(column)), reverse=desc)
                total = len(matches)
                if self.row_limit is not None:
                    matches = matches[: self.row_limit]
                data = None if self.head else [self._project(row) for row in matches]
                return SimpleNamespace(data=data, count=total if self.want_count else None)
        if self.action == "update":
            return SimpleNamespace(data=self.db.update(self.table, matches, self.payload), count=None)
        return SimpleNamespace(data=self.db.delete(self.table, matches), count=None)


class FakeRpc:
    """Pending call of a database function."""

    def __init__(self, db: FakeDatabase, name: str, params: dict[str, Any]) -> None:
        self.db = db
        self.name = name
        self.params = params

    def execute(self):
        self.db.queries.append(("rpc", self.name))
        if self.db.fail_next is not None:
            failure, self.db.fail_next = self.db.fail_next, None
            raise failure
        return SimpleNamespace(data=self.db.call(self.name, dict(self.params)), count=None)


class FakeSupabase:
    """Stand-in for ``supabase.Client`` backed by ``FakeDatabase``."""

    def __init__(self) -> None:
        self.db = FakeDatabase()

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self.db, name)

    def rpc(self, name: str, params: dict[str, Any]) -> FakeRpc:
        return FakeRpc(self.db, name, params)


class FrozenClock:
    """Injectable clock that only moves when told to."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now = self.now + timedelta(**delta)


@pytest.fixture(autouse=True)
def _clear_caches() -> None:
    from app.services.common import clear_profile_cache

    clear_profile_cache()


@pytest.fixture
def supabase() -> FakeSupabase:
    """Empty in-memory Supabase stand-in."""
    return FakeSupabase()


@pytest.fixture
def clock() -> FrozenClock:
    """Clock frozen one hour into the default election window."""
    return FrozenClock(ELECTION_START + timedelta(hours=1))


@pytest.fixture
def make_election(supabase: FakeSupabase) -> Callable[..., dict[str, Any]]:
    """Insert an election row, active and open 09:00-11:00 UTC by default."""

    def factory(**overrides: Any) -> dict[str, Any]:
        row = {
            "title": "Student Council 2026",
            "description": "Annual council election",
            "start_time": ELECTION_START.isoformat(),
            "end_time": ELECTION_END.isoformat(),
            "is_active": True,
        }
        row.update(overrides)
        return supabase.db.insert("elections", row)[0]

    return factory


@pytest.fixture
def make_candidate(supabase: FakeSupabase) -> Callable[..., dict[str, Any]]:
    """Insert a candidate (and a matching profile) for an election."""

    def factory(election_id: str, position: str, name: str = "", **overrides: Any) -> dict[str, Any]:
        user_id = str(uuid.uuid4())
        if name:
            supabase.db.insert(
                "profiles",
                {
                    "id": user_id,
                    "user_id": user_id,
                    "full_name": name,
                    "student_id": f"S-{name[:3].upper()}",
                    "department": "Computer Science",
                },
            )
        row = {
            "election_id": election_id,
            "user_id": user_id,
            "position": position,
            "party_name": "Independent",
            "manifesto": "",
            "is_approved": True,
        }
        row.update(overrides)
        return supabase.db.insert("candidates", row)[0]

    return factory


@pytest.fixture(scope="session")
def client() -> TestClient:
    """Create a FastAPI test client."""
    from app.main import app

    return TestClient(app)
