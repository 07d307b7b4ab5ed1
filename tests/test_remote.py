"""Tests for the Snapshot and Entity remote adapters."""

import httpx
import pytest
from postgrest.exceptions import APIError

from tripsync.core.config import DataMode, Settings
from tripsync.core.errors import SchemaError, TransportError
from tripsync.core.trip_store import build_remote_adapter
from tripsync.models.expense import Expense
from tripsync.models.itinerary import Activity
from tripsync.models.snapshot import Snapshot
from tripsync.remote.client import execute
from tripsync.remote.entities import EntityAdapter
from tripsync.remote.snapshot import SnapshotAdapter


class RaisingQuery:
    def __init__(self, error):
        self.error = error

    def execute(self):
        raise self.error


class TestExecute:
    def test_schema_codes_become_schema_error(self):
        for code in ("42703", "42P01", "PGRST204", "PGRST205"):
            error = APIError({"code": code, "message": "missing", "hint": None, "details": None})
            with pytest.raises(SchemaError):
                execute(RaisingQuery(error), "load expenses")

    def test_other_api_errors_become_transport_error(self):
        error = APIError({"code": "500", "message": "boom", "hint": None, "details": None})
        with pytest.raises(TransportError, match="load expenses"):
            execute(RaisingQuery(error), "load expenses")

    def test_network_errors_become_transport_error(self):
        with pytest.raises(TransportError):
            execute(RaisingQuery(httpx.ConnectTimeout("timed out")), "push snapshot")


class TestBuildRemoteAdapter:
    def test_disabled_without_credentials(self):
        assert build_remote_adapter(Settings(supabase_url="", supabase_anon_key="")) is None

    def test_mode_selection(self, fake_supabase):
        snapshot = build_remote_adapter(Settings(data_mode=DataMode.SNAPSHOT), client=fake_supabase)
        entities = build_remote_adapter(Settings(data_mode=DataMode.ENTITIES, trip_id=3), client=fake_supabase)
        assert isinstance(snapshot, SnapshotAdapter)
        assert isinstance(entities, EntityAdapter)
        assert entities.trip_id == 3


class TestSnapshotAdapter:
    def test_push_then_load(self, fake_supabase):
        adapter = SnapshotAdapter(fake_supabase)
        adapter.push(Snapshot(notes="Bring sunscreen", expenses=[Expense(item="Tea", amount=40)]))
        adapter.push(Snapshot(notes="Bring hats", expenses=[]))

        assert len(fake_supabase.tables["travel_data"]) == 1
        loaded = adapter.load()
        assert loaded.notes == "Bring hats"
        assert loaded.expenses == []
        assert loaded.checklist is None

    def test_load_missing_row(self, fake_supabase):
        assert SnapshotAdapter(fake_supabase).load() == Snapshot()

    def test_load_normalizes_payload(self, fake_supabase):
        fake_supabase.tables["travel_data"] = [
            {"id": 1, "payload": {"expenses": [{"item": "Tea", "amount": "abc", "currency": "EUR"}]}}
        ]
        expense = SnapshotAdapter(fake_supabase).load().expenses[0]
        assert expense.amount == 0
        assert expense.currency == "THB"

    def test_offline(self, fake_supabase):
        fake_supabase.go_offline()
        with pytest.raises(TransportError):
            SnapshotAdapter(fake_supabase).load()

    def test_health(self, fake_supabase):
        assert SnapshotAdapter(fake_supabase).health()["payload_exists"] is False
        fake_supabase.go_offline()
        assert SnapshotAdapter(fake_supabase).health()["ok"] is False


@pytest.fixture(name="adapter")
def adapter_fixture(fake_supabase) -> EntityAdapter:
    return EntityAdapter(fake_supabase, trip_id=1)


class TestEntityAdapter:
    def test_checklist_crud(self, adapter, fake_supabase):
        item = adapter.add_checklist_item("Passport")
        assert isinstance(item.id, int)

        adapter.set_checklist_checked(item.id, True)
        assert adapter.load().checklist[0].checked is True

        adapter.delete_checklist_item(item.id)
        assert adapter.load().checklist == []

    def test_scoped_to_trip(self, adapter, fake_supabase):
        fake_supabase.tables["checklist"] = [
            {"id": 1, "trip_id": 2, "text": "Other trip", "checked": False, "sort_order": 1}
        ]
        assert adapter.load().checklist == []
        adapter.delete_checklist_item(1)
        assert len(fake_supabase.tables["checklist"]) == 1

    def test_expense_round_trip(self, adapter, fake_supabase):
        adapter.load()
        expense_id = adapter.add_expense(Expense(
            item="Dinner", amount=300, date="2024-03-01", paid_by="Alice",
            participants=["Alice", "Bob"], settled_by=["Bob"],
        ))
        adapter.update_expense(expense_id, {"amount": 450})

        loaded = adapter.load().expenses[0]
        assert loaded.id == expense_id
        assert loaded.amount == 450
        assert loaded.paid_by == "Alice"
        assert loaded.settled_by == ["Bob"]

    def test_missing_settled_column_detected(self, adapter, fake_supabase):
        """Test load falls back when expenses.settled_by does not exist."""
        fake_supabase.missing_columns["expenses"] = {"settled_by"}
        fake_supabase.tables["expenses"] = [
            {"id": 7, "trip_id": 1, "item": "Dinner", "amount": 300, "currency": "THB", "date": "2024-03-01"}
        ]

        loaded = adapter.load()

        assert adapter.has_settled_column is False
        assert loaded.expenses[0].id == 7
        assert loaded.expenses[0].settled_by is None
        with pytest.raises(SchemaError):
            adapter.update_expense(7, {"settled_by": ["Bob"]})

    def test_add_expense_without_settled_column(self, adapter, fake_supabase):
        fake_supabase.missing_columns["expenses"] = {"settled_by"}
        adapter.load()
        expense_id = adapter.add_expense(Expense(item="Tea", settled_by=["Bob"]))
        assert "settled_by" not in fake_supabase.tables["expenses"][0]
        assert isinstance(expense_id, int)

    def test_itinerary(self, adapter, fake_supabase):
        day_id = adapter.add_day("Day 1")
        activity_id = adapter.add_activity(day_id, Activity(title="Temple", cost=100, arrive_time="09:00"))
        adapter.update_activity(day_id, activity_id, {"title": "Grand Palace"})

        days = adapter.load().itinerary
        assert days[0].title == "Day 1"
        assert days[0].activities[0].title == "Grand Palace"
        assert days[0].activities[0].arrive_time == "09:00"

        adapter.delete_day(day_id)
        assert adapter.load().itinerary == []
        assert fake_supabase.tables["itinerary_activities"] == []

    def test_activity_on_foreign_day_rejected(self, adapter, fake_supabase):
        fake_supabase.tables["itinerary_days"] = [{"id": 50, "trip_id": 9, "title": "Not ours"}]
        with pytest.raises(SchemaError):
            adapter.add_activity(50, Activity(title="Sneaky"))
        adapter.delete_day(50)
        assert len(fake_supabase.tables["itinerary_days"]) == 1

    def test_members(self, adapter):
        adapter.replace_members(["Alice", "Bob"])
        adapter.replace_members(["Cara", "Alice"])
        assert adapter.load().people == ["Cara", "Alice"]

    def test_notes_not_modeled(self, adapter):
        assert adapter.load().notes is None

    def test_push_is_noop(self, adapter, fake_supabase):
        adapter.push(Snapshot(notes="x"))
        assert fake_supabase.calls == []

    def test_health(self, adapter, fake_supabase):
        assert adapter.health()["ok"] is True
        fake_supabase.failing_tables.add("expenses")
        result = adapter.health()
        assert result["ok"] is False
        assert result["expenses"]["reachable"] is False
