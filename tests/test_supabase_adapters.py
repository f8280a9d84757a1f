"""Tests for Supabase adapter implementations."""

from dataclasses import dataclass, field

import pytest

from food_ledger.adapters.supabase_ledger_repository import SupabaseLedgerRepository
from food_ledger.adapters.supabase_library_repository import (
    SupabaseSavedFoodRepository,
)
from food_ledger.adapters.supabase_widget_store import SupabaseWidgetStore
from food_ledger.domain.library import SavedFood, saved_food_to_dict
from food_ledger.domain.records import record_to_dict
from food_ledger.errors import ParseError
from tests.conftest import make_record


@dataclass
class FakeResponse:
    data: list[dict[str, object]] | None


@dataclass
class FakeTable:
    name: str
    response_queue: dict[str, list[list[dict[str, object]]]] = field(
        default_factory=lambda: {"select": [], "upsert": []}
    )
    last_payload: object | None = None
    last_on_conflict: str | None = None
    last_filters: list[tuple[str, object]] = field(default_factory=list)
    last_order: tuple[str, bool] | None = None
    deleted: bool = False

    def queue(self, action: str, data: list[dict[str, object]]) -> None:
        self.response_queue[action].append(data)

    def select(self, *_args) -> "FakeTable":
        self._action = "select"
        return self

    def upsert(self, payload, on_conflict: str = "") -> "FakeTable":  # type: ignore[no-untyped-def]
        self._action = "upsert"
        self.last_payload = payload
        self.last_on_conflict = on_conflict
        return self

    def delete(self) -> "FakeTable":
        self._action = "delete"
        self.deleted = True
        return self

    def order(self, column: str, desc: bool = False) -> "FakeTable":
        self.last_order = (column, desc)
        return self

    def eq(self, column: str, value) -> "FakeTable":  # type: ignore[no-untyped-def]
        self.last_filters.append((column, value))
        return self

    def in_(self, column: str, value) -> "FakeTable":  # type: ignore[no-untyped-def]
        self.last_filters.append((column, value))
        return self

    def limit(self, _count: int) -> "FakeTable":
        return self

    def execute(self) -> FakeResponse:
        action = getattr(self, "_action", "select")
        queue = self.response_queue.get(action, [])
        data = queue.pop(0) if queue else []
        return FakeResponse(data=data)


@dataclass
class FakeSupabaseClient:
    tables: dict[str, FakeTable] = field(default_factory=dict)

    def table(self, name: str) -> FakeTable:
        if name not in self.tables:
            self.tables[name] = FakeTable(name=name)
        return self.tables[name]


def test_supabase_ledger_repository_roundtrip() -> None:
    client = FakeSupabaseClient()
    table = client.table("ledger_snapshots")
    record = make_record("Curry", calories=540)
    repository = SupabaseLedgerRepository(client, "owner-1")  # type: ignore[arg-type]

    repository.save_all([record])

    assert isinstance(table.last_payload, dict)
    assert table.last_payload["owner"] == "owner-1"
    assert table.last_payload["records"] == [record_to_dict(record)]
    assert table.last_on_conflict == "owner"

    table.queue("select", [{"records": [record_to_dict(record), {"name": "broken"}]}])
    loaded = repository.load()

    assert loaded == [record]
    assert ("owner", "owner-1") in table.last_filters


def test_supabase_ledger_repository_missing_row() -> None:
    client = FakeSupabaseClient()
    repository = SupabaseLedgerRepository(client, "owner-1")  # type: ignore[arg-type]

    assert repository.load() == []


def test_supabase_ledger_repository_rejects_non_list() -> None:
    client = FakeSupabaseClient()
    client.table("ledger_snapshots").queue("select", [{"records": {"oops": 1}}])
    repository = SupabaseLedgerRepository(client, "owner-1")  # type: ignore[arg-type]

    with pytest.raises(ParseError):
        repository.load()


def test_supabase_widget_store() -> None:
    client = FakeSupabaseClient()
    table = client.table("widget_state")
    store = SupabaseWidgetStore(client, "owner-1")  # type: ignore[arg-type]

    store.write({"widget_todayCalories": 640.0, "widget_foodCount": 2})

    assert isinstance(table.last_payload, list)
    assert {row["key"] for row in table.last_payload} == {
        "widget_todayCalories",
        "widget_foodCount",
    }
    assert table.last_on_conflict == "owner,key"

    table.queue(
        "select",
        [
            {"key": "widget_todayCalories", "value": 640.0},
            {"key": "widget_foodCount", "value": 2},
        ],
    )
    stored = store.read(("widget_todayCalories", "widget_foodCount"))

    assert stored == {"widget_todayCalories": 640.0, "widget_foodCount": 2}
    assert (
        "key",
        ["widget_todayCalories", "widget_foodCount"],
    ) in table.last_filters


def test_supabase_saved_food_repository() -> None:
    client = FakeSupabaseClient()
    table = client.table("saved_foods")
    repository = SupabaseSavedFoodRepository(client, "owner-1")  # type: ignore[arg-type]
    food = SavedFood(name="Tofu Stir Fry", calories=430, ingredients=["tofu"])

    repository.upsert_food(food)

    assert isinstance(table.last_payload, dict)
    assert table.last_payload["id"] == str(food.id)
    assert table.last_payload["owner"] == "owner-1"
    assert table.last_payload["ingredients"] == ["tofu"]
    assert table.last_on_conflict == "id"

    table.queue(
        "select",
        [{**saved_food_to_dict(food), "owner": "owner-1"}, {"name": "no id"}],
    )
    loaded = repository.list_foods()

    assert loaded == [food]
    assert ("owner", "owner-1") in table.last_filters
    assert table.last_order == ("created_at", False)

    repository.delete_food(food.id)

    assert table.deleted is True
    assert ("id", str(food.id)) in table.last_filters
