"""Pydantic models for the HTTP API."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field

from food_ledger.domain.capture import CaptureResult
from food_ledger.domain.library import SavedFood
from food_ledger.domain.records import MealType, NutritionRecord
from food_ledger.domain.stats import MacroTotals
from food_ledger.domain.trends import PeriodSummary, Timeframe
from food_ledger.errors import InferenceEmptyResult

# Nutrient inputs accept strings so bad values can be clamped instead of rejected.
NutrientInput = float | str | None


class EntryCreate(BaseModel):
    """Explicitly entered record."""

    name: str = Field(min_length=1)
    calories: NutrientInput = 0.0
    protein: NutrientInput = 0.0
    carbs: NutrientInput = 0.0
    fat: NutrientInput = 0.0
    fiber: NutrientInput = 0.0
    sugar: NutrientInput = 0.0
    sodium: NutrientInput = 0.0
    meal_type: MealType | None = None
    timestamp: datetime | None = None
    ingredients: list[str] | None = None
    location: str | None = None
    portion_size: str | None = None


class EstimateRequest(BaseModel):
    """Food name to estimate and log."""

    name: str = Field(min_length=1)
    meal_type: MealType | None = None


class EntryUpdate(BaseModel):
    """Partial edit of a record. Only fields that are set are applied."""

    name: str | None = Field(default=None, min_length=1)
    calories: NutrientInput = None
    protein: NutrientInput = None
    carbs: NutrientInput = None
    fat: NutrientInput = None
    fiber: NutrientInput = None
    sugar: NutrientInput = None
    sodium: NutrientInput = None
    meal_type: MealType | None = None
    timestamp: datetime | None = None
    ingredients: list[str] | None = None
    location: str | None = None
    portion_size: str | None = None
    macro_character: str | None = None


class RecordOut(BaseModel):
    """Record as returned by the API."""

    id: UUID
    name: str
    timestamp: datetime
    meal_type: MealType
    calories: float
    protein: float
    carbs: float
    fat: float
    fiber: float
    sugar: float
    sodium: float
    ingredients: list[str] | None = None
    location: str | None = None
    portion_size: str | None = None
    macro_character: str | None = None
    pending: bool = False

    @classmethod
    def from_record(cls, record: NutritionRecord, pending: bool = False) -> "RecordOut":
        """Build the API view of a record."""
        return cls(
            id=record.id,
            name=record.name,
            timestamp=record.timestamp,
            meal_type=record.meal_type,
            ingredients=list(record.ingredients) if record.ingredients else None,
            location=record.location,
            portion_size=record.portion_size,
            macro_character=record.macro_character,
            pending=pending,
            **record.nutrients(),
        )


class TotalsOut(BaseModel):
    """Summed calories and macros."""

    scope: str
    calories: float
    protein: float
    carbs: float
    fat: float
    count: int

    @classmethod
    def from_totals(cls, scope: str, totals: MacroTotals) -> "TotalsOut":
        """Build the API view of totals."""
        return cls(
            scope=scope,
            calories=totals.calories,
            protein=totals.protein,
            carbs=totals.carbs,
            fat=totals.fat,
            count=totals.count,
        )


class InlineOut(BaseModel):
    """Highest-confidence item of a capture with raw and corrected values."""

    record_id: UUID
    name: str
    confidence_percentage: int
    raw_calories: float
    raw_protein: float
    calories: float
    protein: float
    carbs: float
    fat: float
    multiplier: float


class CaptureOut(BaseModel):
    """Outcome of a photo capture."""

    outcome: str
    message: str
    error: str | None = None
    records: list[RecordOut] = Field(default_factory=list)
    inline: InlineOut | None = None
    description: str | None = None
    suggestions: list[str] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: CaptureResult) -> "CaptureOut":
        """Build the API view of a capture result."""
        inline = None
        if result.inline is not None:
            inline = InlineOut(
                record_id=result.inline.record_id,
                name=result.inline.name,
                confidence_percentage=result.inline.confidence_percentage,
                raw_calories=result.inline.raw_calories,
                raw_protein=result.inline.raw_protein,
                calories=result.inline.calories,
                protein=result.inline.protein,
                carbs=result.inline.carbs,
                fat=result.inline.fat,
                multiplier=result.inline.multiplier,
            )
        description = None
        suggestions: list[str] = []
        if isinstance(result.error, InferenceEmptyResult):
            description = result.error.description or None
            suggestions = list(result.error.suggestions)
        return cls(
            outcome=result.outcome.value,
            message=result.message,
            error=type(result.error).__name__ if result.error is not None else None,
            records=[RecordOut.from_record(record) for record in result.records],
            inline=inline,
            description=description,
            suggestions=suggestions,
        )


class SavedFoodCreate(BaseModel):
    """Food typed in by hand for the library."""

    name: str = Field(min_length=1)
    calories: NutrientInput = 0.0
    protein: NutrientInput = 0.0
    carbs: NutrientInput = 0.0
    fat: NutrientInput = 0.0
    fiber: NutrientInput = 0.0
    sugar: NutrientInput = 0.0
    sodium: NutrientInput = 0.0
    ingredients: list[str] | None = None
    portion_size: str | None = None


class SavedFoodUpdate(BaseModel):
    """Partial edit of a saved food. Only fields that are set are applied."""

    name: str | None = Field(default=None, min_length=1)
    calories: NutrientInput = None
    protein: NutrientInput = None
    carbs: NutrientInput = None
    fat: NutrientInput = None
    fiber: NutrientInput = None
    sugar: NutrientInput = None
    sodium: NutrientInput = None
    ingredients: list[str] | None = None
    portion_size: str | None = None


class SavedFoodOut(BaseModel):
    """Saved food as returned by the API."""

    id: UUID
    name: str
    calories: float
    protein: float
    carbs: float
    fat: float
    fiber: float
    sugar: float
    sodium: float
    ingredients: list[str] | None = None
    portion_size: str | None = None
    is_custom: bool

    @classmethod
    def from_food(cls, food: SavedFood) -> "SavedFoodOut":
        """Build the API view of a saved food."""
        return cls(
            id=food.id,
            name=food.name,
            ingredients=list(food.ingredients) if food.ingredients else None,
            portion_size=food.portion_size,
            is_custom=food.is_custom,
            **food.nutrients(),
        )


class LogSavedFood(BaseModel):
    """Optional meal type for logging a saved food."""

    meal_type: MealType | None = None


class DailyIntakeOut(BaseModel):
    """Totals for one completed day."""

    day: date
    calories: float
    protein: float
    carbs: float
    fat: float
    count: int


class TrendsOut(BaseModel):
    """Trend summary over a trailing window."""

    timeframe: Timeframe
    start: date
    end: date
    days_tracked: int
    completed_days: int
    total_foods: int
    average_calories: float
    average_protein: float
    average_carbs: float
    average_fat: float
    average_items_per_day: float
    daily: list[DailyIntakeOut]
    most_frequent_foods: list[dict[str, object]]
    top_protein_sources: list[dict[str, object]]

    @classmethod
    def from_summary(cls, summary: PeriodSummary) -> "TrendsOut":
        """Build the API view of a period summary. Averages use one decimal."""
        return cls(
            timeframe=summary.timeframe,
            start=summary.start,
            end=summary.end,
            days_tracked=summary.days_tracked,
            completed_days=summary.completed_days,
            total_foods=summary.total_foods,
            average_calories=round(summary.average_calories, 1),
            average_protein=round(summary.average_protein, 1),
            average_carbs=round(summary.average_carbs, 1),
            average_fat=round(summary.average_fat, 1),
            average_items_per_day=round(summary.average_items_per_day, 1),
            daily=[
                DailyIntakeOut(
                    day=entry.day,
                    calories=entry.calories,
                    protein=entry.protein,
                    carbs=entry.carbs,
                    fat=entry.fat,
                    count=entry.count,
                )
                for entry in summary.daily
            ],
            most_frequent_foods=[
                {"name": food.name, "count": food.count}
                for food in summary.most_frequent_foods
            ],
            top_protein_sources=[
                {
                    "name": source.name,
                    "average_protein": round(source.average_protein, 1),
                    "count": source.count,
                }
                for source in summary.top_protein_sources
            ],
        )
