"""Tests for the capture pipeline."""

import asyncio
import json
import threading
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import pytest

from food_ledger.domain.capture import CaptureOutcome, CaptureState
from food_ledger.domain.records import PLACEHOLDER_NAME, MealType
from food_ledger.errors import (
    InferenceEmptyResult,
    InferenceTimeout,
    InferenceTransportError,
    RetentionNoop,
)
from food_ledger.services.capture import CapturePipeline
from food_ledger.services.inference import InferenceService
from food_ledger.services.ledger import DailyLedger
from tests.conftest import (
    FIXED_NOW,
    FakeModelClient,
    FixedClock,
    InMemoryImageStore,
    InMemoryLedgerRepository,
    foods_response,
    make_record,
)

JPEG = b"\xff\xd8\xff\xe0fake-jpeg"


@dataclass
class ClockAdvancingClient(FakeModelClient):
    """Moves the clock forward while the model is "thinking"."""

    clock: FixedClock | None = None
    advance_minutes: float = 0.0

    async def complete(self, prompt: str, image_data_url: str | None = None) -> str:
        if self.clock is not None:
            self.clock.advance(minutes=self.advance_minutes)
        return await super().complete(prompt, image_data_url)


@dataclass
class SlowImageStore(InMemoryImageStore):
    """Image store whose writes take a while, like a slow disk."""

    save_seconds: float = 0.05
    lock: threading.Lock = field(default_factory=threading.Lock)

    def save(self, record_id, data):  # type: ignore[no-untyped-def]
        time.sleep(self.save_seconds)
        with self.lock:
            super().save(record_id, data)

    def retain_only(self, record_ids):  # type: ignore[no-untyped-def]
        with self.lock:
            return super().retain_only(record_ids)


class RejectingLedger(DailyLedger):
    """Ledger that never accepts a batch."""

    def replace(self, remove_id, records):  # type: ignore[no-untyped-def]
        return []


def test_capture_commits_every_usable_item(
    pipeline: CapturePipeline,
    ledger: DailyLedger,
    model_client: FakeModelClient,
    image_store: InMemoryImageStore,
) -> None:
    model_client.responses = [
        foods_response(
            {"name": "Grilled Salmon", "calories": 420, "protein": 40, "confidence": 0.9},
            {"name": "Quinoa", "calories": 220, "carbs": 39, "confidence": 0.8},
            {"name": "Roasted Beets", "calories": 160, "confidence": 0.6},
            {"name": "Unknown sauce", "calories": 40, "confidence": 0.3},
        )
    ]

    result = asyncio.run(pipeline.capture(JPEG))

    assert result.outcome is CaptureOutcome.COMMITTED
    assert [record.name for record in result.records] == [
        "Grilled Salmon",
        "Quinoa",
        "Roasted Beets",
    ]
    assert {record.timestamp for record in result.records} == {FIXED_NOW}
    assert {record.meal_type for record in result.records} == {MealType.DINNER}
    assert len(ledger.today()) == 3
    assert all(record.name != PLACEHOLDER_NAME for record in ledger.today())
    assert set(image_store.images) == {record.id for record in result.records}
    assert pipeline.state is CaptureState.IDLE
    assert model_client.image_urls[0].startswith("data:image/jpeg;base64,")


def test_capture_without_usable_items_leaves_ledger_unchanged(
    pipeline: CapturePipeline,
    ledger: DailyLedger,
    model_client: FakeModelClient,
    ledger_repository: InMemoryLedgerRepository,
) -> None:
    existing = make_record("Apple", calories=95)
    ledger.append(existing)
    model_client.responses = [
        foods_response(description="A desk with a keyboard", suggestions=["Retake"])
    ]

    result = asyncio.run(pipeline.capture(JPEG))

    assert result.outcome is CaptureOutcome.NOT_DETECTED
    assert isinstance(result.error, InferenceEmptyResult)
    assert result.error.description == "A desk with a keyboard"
    assert ledger.today() == [existing]
    assert ledger_repository.records == [existing]
    assert result.message == "Food not detected."


def test_unparseable_output_is_not_detected(
    pipeline: CapturePipeline, ledger: DailyLedger, model_client: FakeModelClient
) -> None:
    model_client.responses = ["I see a lovely plate of food"]

    result = asyncio.run(pipeline.capture(JPEG))

    assert result.outcome is CaptureOutcome.NOT_DETECTED
    assert ledger.today() == []


def test_capture_timeout_fails_and_removes_placeholder(
    pipeline: CapturePipeline, ledger: DailyLedger, model_client: FakeModelClient
) -> None:
    pipeline.timeout_seconds = 0.05
    model_client.delay_seconds = 1.0
    model_client.responses = [foods_response({"name": "Toast", "calories": 200})]

    result = asyncio.run(pipeline.capture(JPEG))

    assert result.outcome is CaptureOutcome.FAILED
    assert isinstance(result.error, InferenceTimeout)
    assert "timed out" in result.message
    assert ledger.today() == []
    assert pipeline.state is CaptureState.IDLE


def test_transport_error_fails_capture(
    pipeline: CapturePipeline, ledger: DailyLedger, model_client: FakeModelClient
) -> None:
    model_client.error = InferenceTransportError("connection reset")

    result = asyncio.run(pipeline.capture(JPEG))

    assert result.outcome is CaptureOutcome.FAILED
    assert isinstance(result.error, InferenceTransportError)
    assert ledger.today() == []


@pytest.mark.parametrize(
    ("name", "raw_calories", "expected"),
    [
        ("Chicken Fried Rice", 90, 270.0),
        ("Pasta with broccoli", 76, 304.0),
        ("Cheeseburger", 650, 650.0),
    ],
)
def test_single_item_correction(
    pipeline: CapturePipeline,
    model_client: FakeModelClient,
    name: str,
    raw_calories: float,
    expected: float,
) -> None:
    model_client.responses = [
        foods_response({"name": name, "calories": raw_calories, "confidence": 0.8})
    ]

    result = asyncio.run(pipeline.capture(JPEG))

    assert result.records[0].calories == pytest.approx(expected)


def test_inline_result_shows_raw_and_corrected_values(
    pipeline: CapturePipeline, model_client: FakeModelClient
) -> None:
    model_client.responses = [
        foods_response(
            {
                "name": "Chicken Fried Rice",
                "calories": 90,
                "protein": 4,
                "carbs": 12,
                "fat": 3,
                "confidence": 0.85,
                "portion_size": "large",
            },
            {"name": "Egg Roll", "calories": 200, "confidence": 0.5},
        )
    ]

    result = asyncio.run(pipeline.capture(JPEG))

    inline = result.inline
    assert inline is not None
    assert inline.name == "Chicken Fried Rice"
    assert inline.confidence_percentage == 85
    assert inline.raw_calories == 90
    assert inline.portion_multiplier == 1.5
    assert inline.underestimation_multiplier == 3.0
    assert inline.multiplier == 4.5
    assert inline.calories == pytest.approx(405.0)
    assert inline.protein == pytest.approx(18.0)
    assert result.message == "Logged 2 food items."


def test_explicit_meal_type_is_used(
    pipeline: CapturePipeline, model_client: FakeModelClient
) -> None:
    model_client.responses = [foods_response({"name": "Granola bar", "calories": 190})]

    result = asyncio.run(pipeline.capture(JPEG, meal_type="snack"))

    assert result.records[0].meal_type is MealType.SNACK


def test_begin_rejects_while_capture_outstanding(
    pipeline: CapturePipeline, ledger: DailyLedger, model_client: FakeModelClient
) -> None:
    placeholder = pipeline.begin()

    assert placeholder is not None
    assert pipeline.state is CaptureState.PENDING
    assert pipeline.placeholder_id == placeholder.id
    assert ledger.today() == [placeholder]
    assert pipeline.begin() is None

    model_client.responses = [foods_response({"name": "Tacos", "calories": 520})]
    result = asyncio.run(pipeline.capture(JPEG))

    assert result.outcome is CaptureOutcome.COMMITTED
    assert result.placeholder_id == placeholder.id
    assert ledger.get(placeholder.id) is None


def test_second_capture_is_rejected_while_analyzing(
    pipeline: CapturePipeline, ledger: DailyLedger, model_client: FakeModelClient
) -> None:
    model_client.delay_seconds = 0.05
    model_client.responses = [foods_response({"name": "Ramen", "calories": 550})]

    async def scenario() -> tuple[CaptureOutcome, CaptureOutcome]:
        first = asyncio.create_task(pipeline.capture(JPEG))
        await asyncio.sleep(0)
        second = await pipeline.capture(JPEG)
        return (await first).outcome, second.outcome

    first_outcome, second_outcome = asyncio.run(scenario())

    assert first_outcome is CaptureOutcome.COMMITTED
    assert second_outcome is CaptureOutcome.REJECTED
    assert [record.name for record in ledger.today()] == ["Ramen"]


def test_cancelled_caller_does_not_interrupt_commit(
    pipeline: CapturePipeline, ledger: DailyLedger, model_client: FakeModelClient
) -> None:
    model_client.delay_seconds = 0.05
    model_client.responses = [foods_response({"name": "Pho", "calories": 450})]

    async def scenario() -> None:
        caller = asyncio.create_task(pipeline.capture(JPEG))
        await asyncio.sleep(0.01)
        caller.cancel()
        await asyncio.sleep(0.2)

    asyncio.run(scenario())

    assert [record.name for record in ledger.today()] == ["Pho"]
    assert pipeline.state is CaptureState.IDLE


def test_capture_crossing_midnight_is_restamped(
    ledger_repository: InMemoryLedgerRepository, image_store: InMemoryImageStore
) -> None:
    clock = FixedClock(datetime(2026, 10, 17, 23, 59, 30, tzinfo=UTC))
    ledger = DailyLedger(
        repository=ledger_repository, clock=clock, image_store=image_store
    )
    client = ClockAdvancingClient(
        responses=[foods_response({"name": "Cheesecake", "calories": 450})],
        clock=clock,
        advance_minutes=2,
    )
    pipeline = CapturePipeline(
        ledger=ledger,
        inference=InferenceService(client=client),
        clock=clock,
        image_store=image_store,
    )

    result = asyncio.run(pipeline.capture(JPEG))

    assert result.outcome is CaptureOutcome.COMMITTED
    record = result.records[0]
    assert record.timestamp == datetime(2026, 10, 18, 0, 1, 30, tzinfo=UTC)
    assert record.meal_type is MealType.SNACK
    assert ledger.today() == [record]
    assert set(image_store.images) == {record.id}


def test_restamp_keeps_explicit_meal_type(
    ledger_repository: InMemoryLedgerRepository,
) -> None:
    clock = FixedClock(datetime(2026, 10, 17, 23, 59, 30, tzinfo=UTC))
    ledger = DailyLedger(repository=ledger_repository, clock=clock)
    client = ClockAdvancingClient(
        responses=[foods_response({"name": "Lasagna", "calories": 600})],
        clock=clock,
        advance_minutes=2,
    )
    pipeline = CapturePipeline(
        ledger=ledger, inference=InferenceService(client=client), clock=clock
    )

    result = asyncio.run(pipeline.capture(JPEG, meal_type=MealType.DINNER))

    assert result.records[0].meal_type is MealType.DINNER


def test_log_manual_clamps_and_derives_meal_type(
    pipeline: CapturePipeline, ledger: DailyLedger
) -> None:
    record = pipeline.log_manual("Protein shake", calories=-20, protein=30)

    assert record is not None
    assert record.calories == 0.0
    assert record.protein == 30.0
    assert record.meal_type is MealType.DINNER
    assert ledger.today() == [record]


def test_log_manual_for_past_day_is_dropped(pipeline: CapturePipeline) -> None:
    record = pipeline.log_manual(
        "Yesterday's pizza", calories=800, timestamp=FIXED_NOW - timedelta(days=1)
    )

    assert record is None


def test_log_by_name_uses_estimate(
    pipeline: CapturePipeline, ledger: DailyLedger, model_client: FakeModelClient
) -> None:
    model_client.responses = [
        json.dumps({"name": "Bagel", "calories": 280, "carbs": 55, "protein": 10})
    ]

    record = asyncio.run(pipeline.log_by_name("bagel", meal_type="breakfast"))

    assert record is not None
    assert record.name == "Bagel"
    assert record.calories == 280
    assert record.meal_type is MealType.BREAKFAST
    assert ledger.today() == [record]
    assert model_client.image_urls == [None]


def test_log_by_name_times_out(
    pipeline: CapturePipeline, model_client: FakeModelClient
) -> None:
    pipeline.timeout_seconds = 0.05
    model_client.delay_seconds = 1.0

    with pytest.raises(InferenceTimeout):
        asyncio.run(pipeline.log_by_name("bagel"))


def test_rejected_restamp_reports_retention_noop(
    ledger_repository: InMemoryLedgerRepository,
) -> None:
    clock = FixedClock(datetime(2026, 10, 17, 23, 59, 30, tzinfo=UTC))
    stubborn = RejectingLedger(repository=ledger_repository, clock=clock)
    client = FakeModelClient(
        responses=[foods_response({"name": "Pie", "calories": 300})]
    )
    pipeline = CapturePipeline(
        ledger=stubborn, inference=InferenceService(client=client), clock=clock
    )

    result = asyncio.run(pipeline.capture(JPEG))

    assert result.outcome is CaptureOutcome.FAILED
    assert isinstance(result.error, RetentionNoop)
    assert stubborn.today() == []


def test_rollover_watcher_keeps_images_of_capture_in_flight(
    ledger_repository: InMemoryLedgerRepository,
    clock: FixedClock,
    model_client: FakeModelClient,
) -> None:
    slow_store = SlowImageStore()
    ledger = DailyLedger(
        repository=ledger_repository, clock=clock, image_store=slow_store
    )
    pipeline = CapturePipeline(
        ledger=ledger,
        inference=InferenceService(client=model_client),
        clock=clock,
        image_store=slow_store,
    )
    model_client.responses = [
        foods_response(
            {"name": "Rice", "calories": 200},
            {"name": "Dal", "calories": 180},
            {"name": "Raita", "calories": 90},
        )
    ]

    async def scenario():  # type: ignore[no-untyped-def]
        watcher = asyncio.create_task(ledger.watch_day_rollover(0.01))
        try:
            return await pipeline.capture(JPEG)
        finally:
            watcher.cancel()
            with pytest.raises(asyncio.CancelledError):
                await watcher

    result = asyncio.run(scenario())

    assert result.outcome is CaptureOutcome.COMMITTED
    assert len(result.records) == 3
    assert set(slow_store.images) == {record.id for record in result.records}

    ledger.check_day_rollover()

    assert set(slow_store.images) == {record.id for record in result.records}


def test_rejected_capture_discards_its_images(
    ledger_repository: InMemoryLedgerRepository, image_store: InMemoryImageStore
) -> None:
    clock = FixedClock(datetime(2026, 10, 17, 23, 59, 30, tzinfo=UTC))
    stubborn = RejectingLedger(
        repository=ledger_repository, clock=clock, image_store=image_store
    )
    client = FakeModelClient(
        responses=[foods_response({"name": "Pie", "calories": 300})]
    )
    pipeline = CapturePipeline(
        ledger=stubborn,
        inference=InferenceService(client=client),
        clock=clock,
        image_store=image_store,
    )

    result = asyncio.run(pipeline.capture(JPEG))

    assert result.outcome is CaptureOutcome.FAILED
    assert image_store.images == {}
    assert stubborn._reserved_images == set()
