"""Commit pipeline turning a food photo into ledger records."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from food_ledger.domain.analysis import DetectedFood
from food_ledger.domain.capture import (
    CaptureOutcome,
    CaptureResult,
    CaptureState,
    InlineResult,
)
from food_ledger.domain.records import (
    NUTRIENT_FIELDS,
    MealType,
    NutritionRecord,
    meal_type_for_time,
    placeholder_record,
)
from food_ledger.errors import (
    FoodLedgerError,
    InferenceEmptyResult,
    InferenceTimeout,
    InferenceTransportError,
    RetentionNoop,
)
from food_ledger.services.clock import Clock
from food_ledger.services.correction import Correction, apply_correction, correct
from food_ledger.services.inference import InferenceService
from food_ledger.services.ledger import DailyLedger, ImageStore

_logger = logging.getLogger(__name__)

DEFAULT_INFERENCE_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True)
class _BuiltItem:
    item: DetectedFood
    record: NutritionRecord
    correction: Correction


@dataclass
class CapturePipeline:
    """Owns the placeholder state of one capture at a time.

    ``IDLE -> PENDING -> ANALYZING -> COMMITTING | FAILED -> IDLE``. New
    captures are rejected unless the pipeline is idle.
    """

    ledger: DailyLedger
    inference: InferenceService
    clock: Clock
    image_store: ImageStore | None = None
    timeout_seconds: float = DEFAULT_INFERENCE_TIMEOUT_SECONDS
    _state: CaptureState = field(default=CaptureState.IDLE, init=False)
    _placeholder: NutritionRecord | None = field(default=None, init=False)
    _explicit_meal_type: bool = field(default=False, init=False)
    _task: asyncio.Task[CaptureResult] | None = field(default=None, init=False)
    _reserved: set[UUID] = field(default_factory=set, init=False)

    @property
    def state(self) -> CaptureState:
        """Current pipeline state."""
        return self._state

    @property
    def placeholder_id(self) -> UUID | None:
        """Id of the outstanding placeholder, if any."""
        return self._placeholder.id if self._placeholder else None

    def begin(self, meal_type: MealType | str | None = None) -> NutritionRecord | None:
        """Insert the placeholder for a new capture.

        Returns ``None`` without side effects when a capture is outstanding.
        """
        if self._state is not CaptureState.IDLE:
            _logger.info("Capture rejected: pipeline is %s", self._state.value)
            return None
        now = self.clock.now()
        explicit = MealType.parse(meal_type)
        placeholder = placeholder_record(now, explicit or meal_type_for_time(now))
        if not self.ledger.append(placeholder, transient=True):
            return None
        self._placeholder = placeholder
        self._explicit_meal_type = explicit is not None
        self._state = CaptureState.PENDING
        return placeholder

    async def capture(
        self, image_bytes: bytes, meal_type: MealType | str | None = None
    ) -> CaptureResult:
        """Analyze an image and commit every usable item it contains.

        A placeholder inserted by ``begin`` is reused. The run is shielded
        from caller cancellation so the ledger is always left consistent.
        """
        if self._state is CaptureState.IDLE:
            if self.begin(meal_type) is None:
                return CaptureResult(outcome=CaptureOutcome.REJECTED)
        elif self._state is not CaptureState.PENDING or self._task is not None:
            return CaptureResult(outcome=CaptureOutcome.REJECTED)

        placeholder = self._placeholder
        if placeholder is None:
            return CaptureResult(outcome=CaptureOutcome.REJECTED)
        self._task = asyncio.ensure_future(self._run(image_bytes, placeholder))
        return await asyncio.shield(self._task)

    def log_manual(  # noqa: PLR0913
        self,
        name: str,
        calories: float = 0.0,
        protein: float = 0.0,
        carbs: float = 0.0,
        fat: float = 0.0,
        fiber: float = 0.0,
        sugar: float = 0.0,
        sodium: float = 0.0,
        meal_type: MealType | str | None = None,
        timestamp: datetime | None = None,
        ingredients: list[str] | None = None,
        location: str | None = None,
        portion_size: str | None = None,
    ) -> NutritionRecord | None:
        """Save an explicitly entered record. Values are clamped, never rejected."""
        moment = timestamp or self.clock.now()
        record = NutritionRecord(
            name=name,
            timestamp=moment,
            meal_type=MealType.parse(meal_type) or meal_type_for_time(moment),
            calories=calories,
            protein=protein,
            carbs=carbs,
            fat=fat,
            fiber=fiber,
            sugar=sugar,
            sodium=sodium,
            ingredients=tuple(ingredients) if ingredients else None,
            location=location,
            portion_size=portion_size,
        )
        if not self.ledger.append(record):
            return None
        return record

    async def log_by_name(
        self, name: str, meal_type: MealType | str | None = None
    ) -> NutritionRecord | None:
        """Estimate macros for a typed food name and log it.

        Raises ``InferenceTimeout`` or ``InferenceTransportError`` when the
        estimate cannot be obtained.
        """
        try:
            estimate = await asyncio.wait_for(
                self.inference.estimate_from_name(name),
                timeout=self.timeout_seconds,
            )
        except TimeoutError as exc:
            raise InferenceTimeout(self.timeout_seconds) from exc
        now = self.clock.now()
        record = NutritionRecord(
            name=estimate.name,
            timestamp=now,
            meal_type=MealType.parse(meal_type) or meal_type_for_time(now),
            **{nutrient: getattr(estimate, nutrient) for nutrient in NUTRIENT_FIELDS},
        )
        if not self.ledger.append(record):
            return None
        return record

    async def _run(
        self, image_bytes: bytes, placeholder: NutritionRecord
    ) -> CaptureResult:
        try:
            self._state = CaptureState.ANALYZING
            try:
                analysis = await asyncio.wait_for(
                    self.inference.analyze_image(image_bytes),
                    timeout=self.timeout_seconds,
                )
            except TimeoutError:
                return self._fail(placeholder, InferenceTimeout(self.timeout_seconds))
            except (InferenceTimeout, InferenceTransportError) as exc:
                return self._fail(placeholder, exc)

            usable = analysis.usable_items()
            if not usable:
                self.ledger.remove(placeholder.id)
                _logger.info("No food detected: %s", analysis.description)
                return CaptureResult(
                    outcome=CaptureOutcome.NOT_DETECTED,
                    error=InferenceEmptyResult(
                        analysis.description, analysis.suggestions
                    ),
                    placeholder_id=placeholder.id,
                )

            self._state = CaptureState.COMMITTING
            built = await self._build_batch(
                usable, placeholder.timestamp, placeholder.meal_type, image_bytes
            )
            accepted = self.ledger.replace(
                placeholder.id, [entry.record for entry in built]
            )
            if not accepted:
                built = await self._restamp(built, usable, image_bytes)
                accepted = self.ledger.replace(
                    placeholder.id, [entry.record for entry in built]
                )
            if not accepted:
                await self._discard_images(built)
                return self._fail(
                    placeholder,
                    RetentionNoop("Capture could not be logged for the current day"),
                )

            _logger.info(
                "Committed %s records for capture %s", len(accepted), placeholder.id
            )
            return CaptureResult(
                outcome=CaptureOutcome.COMMITTED,
                records=accepted,
                inline=_inline_result(built[0]),
                placeholder_id=placeholder.id,
            )
        finally:
            if self._reserved:
                self.ledger.release_images(self._reserved)
                self._reserved = set()
            if self.ledger.is_transient(placeholder.id):
                self.ledger.remove(placeholder.id)
            self._placeholder = None
            self._explicit_meal_type = False
            self._task = None
            self._state = CaptureState.IDLE

    async def _build_batch(
        self,
        items: list[DetectedFood],
        timestamp: datetime,
        meal_type: MealType,
        image_bytes: bytes,
    ) -> list[_BuiltItem]:
        count = len(items)
        return list(
            await asyncio.gather(
                *(
                    self._build_item(item, timestamp, meal_type, count, image_bytes)
                    for item in items
                )
            )
        )

    async def _build_item(  # noqa: PLR0913
        self,
        item: DetectedFood,
        timestamp: datetime,
        meal_type: MealType,
        count: int,
        image_bytes: bytes,
    ) -> _BuiltItem:
        correction = correct(
            item.name, item.calories, meal_type, count, item.portion_size
        )
        values = apply_correction(
            {nutrient: getattr(item, nutrient) for nutrient in NUTRIENT_FIELDS},
            correction.multiplier,
        )
        record = NutritionRecord(
            name=item.name,
            timestamp=timestamp,
            meal_type=meal_type,
            ingredients=tuple(item.ingredients) or None,
            portion_size=item.portion_size,
            macro_character=item.macro_character,
            **values,
        )
        if self.image_store is not None:
            self._reserved.add(record.id)
            self.ledger.reserve_images({record.id})
            await asyncio.to_thread(self.image_store.save, record.id, image_bytes)
        return _BuiltItem(item=item, record=record, correction=correction)

    async def _restamp(
        self,
        built: list[_BuiltItem],
        items: list[DetectedFood],
        image_bytes: bytes,
    ) -> list[_BuiltItem]:
        now = self.clock.now()
        meal_type = (
            built[0].record.meal_type
            if self._explicit_meal_type
            else meal_type_for_time(now)
        )
        _logger.warning(
            "Capture crossed midnight; re-stamping %s records at %s",
            len(built),
            now.isoformat(),
        )
        await self._discard_images(built)
        return await self._build_batch(items, now, meal_type, image_bytes)

    async def _discard_images(self, built: list[_BuiltItem]) -> None:
        if self.image_store is None:
            return
        for entry in built:
            await asyncio.to_thread(self.image_store.delete, entry.record.id)

    def _fail(
        self, placeholder: NutritionRecord, error: FoodLedgerError
    ) -> CaptureResult:
        self._state = CaptureState.FAILED
        self.ledger.remove(placeholder.id)
        _logger.warning("Capture %s failed: %s", placeholder.id, error)
        return CaptureResult(
            outcome=CaptureOutcome.FAILED,
            error=error,
            placeholder_id=placeholder.id,
        )


def _inline_result(entry: _BuiltItem) -> InlineResult:
    return InlineResult(
        record_id=entry.record.id,
        name=entry.record.name,
        confidence=entry.item.confidence,
        raw_calories=entry.item.calories,
        raw_protein=entry.item.protein,
        calories=entry.record.calories,
        protein=entry.record.protein,
        carbs=entry.record.carbs,
        fat=entry.record.fat,
        portion_multiplier=entry.correction.portion,
        underestimation_multiplier=entry.correction.underestimation,
    )
