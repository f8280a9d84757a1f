"""Shared test fixtures."""

import asyncio
import json
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from pathlib import Path
from uuid import UUID

import pytest

from food_ledger.config import Settings
from food_ledger.containers import AppContainer
from food_ledger.domain.library import SavedFood
from food_ledger.domain.records import NutritionRecord
from food_ledger.errors import ParseError
from food_ledger.services.capture import CapturePipeline
from food_ledger.services.clock import Clock
from food_ledger.services.inference import InferenceClient, InferenceService
from food_ledger.services.ledger import DailyLedger, ImageStore, LedgerRepository
from food_ledger.services.library import LibraryService, SavedFoodRepository
from food_ledger.services.narrative import NarrativeClient, NarrativeService
from food_ledger.services.widget import WidgetPublisher, WidgetStore

# Saturday evening, inside the dinner band.
FIXED_NOW = datetime(2026, 10, 17, 19, 30, tzinfo=UTC)


@dataclass
class FixedClock(Clock):
    """Clock that only moves when told to."""

    current: datetime = FIXED_NOW

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> None:
        self.current = self.current + timedelta(**kwargs)


@dataclass
class InMemoryLedgerRepository(LedgerRepository):
    """In-memory ledger repository for tests."""

    records: list[NutritionRecord] = field(default_factory=list)
    saves: int = 0
    corrupt: bool = False

    def load(self) -> list[NutritionRecord]:
        if self.corrupt:
            raise ParseError("corrupt ledger")
        return list(self.records)

    def save_all(self, records: list[NutritionRecord]) -> None:
        self.records = list(records)
        self.saves += 1


@dataclass
class InMemoryImageStore(ImageStore):
    """In-memory image store for tests."""

    images: dict[UUID, bytes] = field(default_factory=dict)

    def save(self, record_id: UUID, data: bytes) -> None:
        self.images[record_id] = data

    def load(self, record_id: UUID) -> bytes | None:
        return self.images.get(record_id)

    def delete(self, record_id: UUID) -> None:
        self.images.pop(record_id, None)

    def retain_only(self, record_ids: set[UUID]) -> int:
        orphans = [record_id for record_id in self.images if record_id not in record_ids]
        for record_id in orphans:
            del self.images[record_id]
        return len(orphans)


@dataclass
class InMemorySavedFoodRepository(SavedFoodRepository):
    """In-memory saved-food repository for tests."""

    foods: list[SavedFood] = field(default_factory=list)

    def list_foods(self) -> list[SavedFood]:
        return list(self.foods)

    def upsert_food(self, food: SavedFood) -> None:
        for index, existing in enumerate(self.foods):
            if existing.id == food.id:
                self.foods[index] = food
                return
        self.foods.append(food)

    def delete_food(self, food_id: UUID) -> None:
        self.foods = [food for food in self.foods if food.id != food_id]


@dataclass
class InMemoryWidgetStore(WidgetStore):
    """In-memory widget store that can lose writes to exercise verification."""

    values: dict[str, object] = field(default_factory=dict)
    writes: list[dict[str, object]] = field(default_factory=list)
    dropped_writes: int = 0

    def write(self, values: dict[str, object]) -> None:
        self.writes.append(dict(values))
        if self.dropped_writes > 0:
            self.dropped_writes -= 1
            return
        self.values.update(values)

    def read(self, keys: tuple[str, ...]) -> dict[str, object]:
        return {key: self.values[key] for key in keys if key in self.values}


@dataclass
class FakeModelClient(InferenceClient, NarrativeClient):
    """Fake inference/narrative client returning queued responses."""

    responses: list[str] = field(default_factory=list)
    error: Exception | None = None
    delay_seconds: float = 0.0
    prompts: list[str] = field(default_factory=list)
    image_urls: list[str | None] = field(default_factory=list)

    async def complete(self, prompt: str, image_data_url: str | None = None) -> str:
        self.prompts.append(prompt)
        self.image_urls.append(image_data_url)
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        if self.error is not None:
            raise self.error
        if not self.responses:
            return ""
        return self.responses.pop(0)


def foods_response(*items: dict[str, object], **extra: object) -> str:
    """Render an inference payload the way the model returns it."""
    return json.dumps({"foods": list(items), **extra})


def make_record(
    name: str = "Oatmeal",
    timestamp: datetime = FIXED_NOW,
    meal_type: str | None = None,
    **values: object,
) -> NutritionRecord:
    """Create a record with sensible defaults."""
    return NutritionRecord(
        name=name,
        timestamp=timestamp,
        meal_type=meal_type,  # type: ignore[arg-type]
        **values,  # type: ignore[arg-type]
    )


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        openai_api_key="openai-key",
        data_dir=tmp_path,
        widget_debounce_seconds=0.0,
        timezone="UTC",
    )


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def ledger_repository() -> InMemoryLedgerRepository:
    return InMemoryLedgerRepository()


@pytest.fixture
def image_store() -> InMemoryImageStore:
    return InMemoryImageStore()


@pytest.fixture
def widget_store() -> InMemoryWidgetStore:
    return InMemoryWidgetStore()


@pytest.fixture
def model_client() -> FakeModelClient:
    return FakeModelClient()


@pytest.fixture
def ledger(
    ledger_repository: InMemoryLedgerRepository,
    clock: FixedClock,
    image_store: InMemoryImageStore,
    widget_store: InMemoryWidgetStore,
) -> DailyLedger:
    return DailyLedger(
        repository=ledger_repository,
        clock=clock,
        image_store=image_store,
        publisher=WidgetPublisher(store=widget_store, debounce_seconds=0.0),
    )


@pytest.fixture
def pipeline(
    ledger: DailyLedger,
    model_client: FakeModelClient,
    clock: FixedClock,
    image_store: InMemoryImageStore,
) -> CapturePipeline:
    return CapturePipeline(
        ledger=ledger,
        inference=InferenceService(client=model_client),
        clock=clock,
        image_store=image_store,
        timeout_seconds=1.0,
    )


@pytest.fixture
def saved_food_repository() -> InMemorySavedFoodRepository:
    return InMemorySavedFoodRepository()


@pytest.fixture
def saved_image_store() -> InMemoryImageStore:
    return InMemoryImageStore()


@pytest.fixture
def library(
    saved_food_repository: InMemorySavedFoodRepository,
    ledger: DailyLedger,
    clock: FixedClock,
    saved_image_store: InMemoryImageStore,
    image_store: InMemoryImageStore,
) -> LibraryService:
    return LibraryService(
        repository=saved_food_repository,
        ledger=ledger,
        clock=clock,
        image_store=saved_image_store,
        record_images=image_store,
    )


@pytest.fixture
def container(
    settings: Settings,
    clock: FixedClock,
    ledger: DailyLedger,
    pipeline: CapturePipeline,
    model_client: FakeModelClient,
    library: LibraryService,
) -> AppContainer:
    async def close_resources() -> None:
        return None

    assert ledger.publisher is not None
    return AppContainer(
        settings=settings,
        clock=clock,
        ledger=ledger,
        widget_publisher=ledger.publisher,
        inference_service=pipeline.inference,
        capture_pipeline=pipeline,
        narrative_service=NarrativeService(client=model_client),
        library_service=library,
        close_resources=close_resources,
    )
