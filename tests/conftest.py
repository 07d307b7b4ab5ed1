"""Shared test fixtures."""

import copy

import httpx
import pytest
from fastapi.testclient import TestClient
from postgrest.exceptions import APIError
from sqlmodel import SQLModel, create_engine
from sqlmodel.pool import StaticPool

from tripsync.core.local_store import FallbackStore, LocalStore
from tripsync.core.trip_store import TripStore, get_trip_store
from tripsync.main import app
from tripsync.models.kv import KVEntry  # noqa: F401


class FakeResponse:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    """Chainable stand-in for a supabase-py table request."""

    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table = table
        self.op = None
        self.columns: list[str] | None = None
        self.payload = None
        self.on_conflict = None
        self.filters: list = []
        self.orders: list[str] = []
        self.limit_count: int | None = None

    def select(self, columns: str = "*"):
        self.op = "select"
        self.columns = None if columns == "*" else [c.strip() for c in columns.split(",")]
        return self

    def insert(self, rows):
        self.op = "insert"
        self.payload = rows
        return self

    def upsert(self, row, on_conflict: str = "id"):
        self.op = "upsert"
        self.payload = row
        self.on_conflict = on_conflict
        return self

    def update(self, values: dict):
        self.op = "update"
        self.payload = values
        return self

    def delete(self):
        self.op = "delete"
        return self

    def eq(self, column: str, value):
        self.filters.append(lambda row: str(row.get(column)) == str(value))
        return self

    def in_(self, column: str, values):
        allowed = {str(v) for v in values}
        self.filters.append(lambda row: str(row.get(column)) in allowed)
        return self

    def order(self, column: str, desc: bool = False):
        self.orders.append(column)
        return self

    def limit(self, count: int):
        self.limit_count = count
        return self

    def _matches(self, row: dict) -> bool:
        return all(f(row) for f in self.filters)

    def _check_columns(self, columns) -> None:
        missing = self.db.missing_columns.get(self.table, set()) & set(columns)
        if missing:
            raise APIError({
                "code": "42703",
                "message": f"column {self.table}.{sorted(missing)[0]} does not exist",
                "hint": None,
                "details": None,
            })

    def execute(self):
        self.db.calls.append((self.table, self.op))
        if self.table in self.db.offline_tables:
            raise httpx.ConnectError("connection refused")
        if self.table in self.db.failing_tables:
            raise APIError({"code": "500", "message": "internal error", "hint": None, "details": None})

        rows = self.db.tables.setdefault(self.table, [])

        if self.op == "select":
            self._check_columns(self.columns or [])
            result = [r for r in rows if self._matches(r)]
            for column in reversed(self.orders):
                result.sort(key=lambda r: (r.get(column) is None, r.get(column)))
            if self.limit_count is not None:
                result = result[: self.limit_count]
            if self.columns:
                result = [{c: r.get(c) for c in self.columns} for r in result]
            return FakeResponse(copy.deepcopy(result))

        if self.op in ("insert", "upsert"):
            new_rows = self.payload if isinstance(self.payload, list) else [self.payload]
            inserted = []
            for new in new_rows:
                self._check_columns(new.keys())
                new = copy.deepcopy(new)
                existing = None
                if self.op == "upsert":
                    existing = next(
                        (r for r in rows if r.get(self.on_conflict) == new.get(self.on_conflict)), None
                    )
                if existing is not None:
                    existing.update(new)
                    inserted.append(copy.deepcopy(existing))
                    continue
                if "id" not in new:
                    new["id"] = self.db.next_id()
                rows.append(new)
                inserted.append(copy.deepcopy(new))
            return FakeResponse(inserted)

        if self.op == "update":
            self._check_columns(self.payload.keys())
            updated = []
            for row in rows:
                if self._matches(row):
                    row.update(copy.deepcopy(self.payload))
                    updated.append(copy.deepcopy(row))
            return FakeResponse(updated)

        if self.op == "delete":
            removed = [r for r in rows if self._matches(r)]
            self.db.tables[self.table] = [r for r in rows if not self._matches(r)]
            return FakeResponse(removed)

        raise AssertionError(f"Unsupported operation {self.op}")


class FakeSupabase:
    """In-memory tables behind the supabase-py query builder interface."""

    def __init__(self):
        self.tables: dict[str, list[dict]] = {}
        self.missing_columns: dict[str, set[str]] = {}
        self.offline_tables: set[str] = set()
        self.failing_tables: set[str] = set()
        self.calls: list[tuple[str, str]] = []
        self._next_id = 100

    def next_id(self) -> int:
        self._next_id += 1
        return self._next_id

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def go_offline(self) -> None:
        self.offline_tables = {
            "travel_data", "checklist", "expenses", "itinerary_days",
            "itinerary_activities", "trip_members",
        }


@pytest.fixture(name="engine")
def engine_fixture():
    """Create an in-memory SQLite database for testing."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="fallback")
def fallback_fixture(tmp_path) -> FallbackStore:
    return FallbackStore(tmp_path / "fallback.json", quota_bytes=50_000)


@pytest.fixture(name="local_store")
def local_store_fixture(engine, fallback) -> LocalStore:
    return LocalStore(engine, fallback)


@pytest.fixture(name="fake_supabase")
def fake_supabase_fixture() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture(name="store")
def store_fixture(local_store) -> TripStore:
    """A loaded trip store with no remote configured."""
    store = TripStore(local_store, default_people=["Alice", "Bob", "Cara"])
    store.load()
    return store


@pytest.fixture(name="client")
def client_fixture(store: TripStore):
    """Create a test client backed by the test trip store."""

    def get_trip_store_override():
        return store

    app.dependency_overrides[get_trip_store] = get_trip_store_override
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()
