"""Domain models for photo captures."""

from dataclasses import dataclass, field
from enum import StrEnum
from uuid import UUID

from food_ledger.domain.records import NutritionRecord
from food_ledger.errors import FoodLedgerError


class CaptureState(StrEnum):
    """States of the capture pipeline."""

    IDLE = "idle"
    PENDING = "pending"
    ANALYZING = "analyzing"
    COMMITTING = "committing"
    FAILED = "failed"


class CaptureOutcome(StrEnum):
    """How a capture ended."""

    COMMITTED = "committed"
    NOT_DETECTED = "not_detected"
    FAILED = "failed"
    REJECTED = "rejected"


@dataclass(frozen=True)
class InlineResult:
    """Highest-confidence item of a capture, shown with raw and corrected values."""

    record_id: UUID
    name: str
    confidence: float
    raw_calories: float
    raw_protein: float
    calories: float
    protein: float
    carbs: float
    fat: float
    portion_multiplier: float
    underestimation_multiplier: float

    @property
    def multiplier(self) -> float:
        """Combined correction applied to the raw values."""
        return self.portion_multiplier * self.underestimation_multiplier

    @property
    def confidence_percentage(self) -> int:
        """Confidence as a whole percentage."""
        return int(self.confidence * 100)


@dataclass(frozen=True)
class CaptureResult:
    """Result of one capture."""

    outcome: CaptureOutcome
    records: list[NutritionRecord] = field(default_factory=list)
    inline: InlineResult | None = None
    error: FoodLedgerError | None = None
    placeholder_id: UUID | None = None

    @property
    def message(self) -> str:
        """User-facing description of the outcome."""
        if self.outcome is CaptureOutcome.COMMITTED:
            count = len(self.records)
            noun = "item" if count == 1 else "items"
            return f"Logged {count} food {noun}."
        if self.outcome is CaptureOutcome.NOT_DETECTED:
            return "Food not detected."
        if self.outcome is CaptureOutcome.REJECTED:
            return "Analysis already in progress."
        return str(self.error) if self.error else "Analysis failed."
