"""Domain models for daily statistics."""

import math
from collections.abc import Iterable
from dataclasses import dataclass, field
from uuid import UUID

from food_ledger.domain.records import MealType, NutritionRecord


@dataclass(frozen=True)
class MacroTotals:
    """Summed calories and macros."""

    calories: float = 0.0
    protein: float = 0.0
    carbs: float = 0.0
    fat: float = 0.0
    count: int = 0


def sum_macros(records: Iterable[NutritionRecord]) -> MacroTotals:
    """Return exact sums of calories and macros over ``records``."""
    items = list(records)
    return MacroTotals(
        calories=math.fsum(record.calories for record in items),
        protein=math.fsum(record.protein for record in items),
        carbs=math.fsum(record.carbs for record in items),
        fat=math.fsum(record.fat for record in items),
        count=len(items),
    )


@dataclass(frozen=True)
class MealTypeBreakdown:
    """Aggregates for one meal type. Macros are rounded to one decimal."""

    meal_type: MealType
    count: int
    calories: float
    protein: float
    carbs: float
    fat: float
    calorie_percentage: int


@dataclass(frozen=True)
class LargestMealType:
    """Meal type with the most calories today."""

    meal_type: MealType
    calories: float
    percentage: int


@dataclass(frozen=True)
class LargestRecord:
    """Single record with the most calories today."""

    record_id: UUID
    name: str
    meal_type: MealType
    calories: float
    portion_size: str


@dataclass(frozen=True)
class DailyStatistics:
    """Deterministic statistics over the records of one day.

    ``total_macros`` is the only source for day totals; consumers must not
    re-derive it from ``meal_types``.
    """

    meal_types: dict[MealType, MealTypeBreakdown]
    total_macros: MacroTotals
    largest_meal_type: LargestMealType | None
    largest_record: LargestRecord | None
    first_food_time: str | None
    latest_food_time: str | None
    ingredient_frequency: dict[str, int] = field(default_factory=dict)
    location_distribution: dict[str, int] = field(default_factory=dict)

    @property
    def record_count(self) -> int:
        """Number of records the statistics were computed from."""
        return self.total_macros.count

    def to_payload(self) -> dict[str, object]:
        """Render the statistics with the key names used by the narrative."""
        if self.record_count == 0:
            return {}
        payload: dict[str, object] = {
            "first_food_time": self.first_food_time,
            "latest_food_time": self.latest_food_time,
            "meal_type_distribution": {
                meal_type.value: breakdown.count
                for meal_type, breakdown in self.meal_types.items()
            },
            "meal_type_macro_distribution": {
                meal_type.value: {
                    "protein": breakdown.protein,
                    "carbs": breakdown.carbs,
                    "fat": breakdown.fat,
                    "calories": breakdown.calories,
                }
                for meal_type, breakdown in self.meal_types.items()
            },
            "total_macros": {
                "protein": self.total_macros.protein,
                "carbs": self.total_macros.carbs,
                "fat": self.total_macros.fat,
                "calories": self.total_macros.calories,
            },
            "ingredient_frequency": dict(self.ingredient_frequency),
        }
        if self.total_macros.calories > 0:
            payload["meal_type_calorie_distribution"] = {
                meal_type.value: {
                    "calories": breakdown.calories,
                    "percentage": breakdown.calorie_percentage,
                }
                for meal_type, breakdown in self.meal_types.items()
            }
        if self.largest_meal_type is not None:
            payload["largest_meal_type"] = {
                "meal_type": self.largest_meal_type.meal_type.value,
                "calories": self.largest_meal_type.calories,
                "percentage": self.largest_meal_type.percentage,
            }
        if self.largest_record is not None:
            payload["largest_portion"] = {
                "meal_type": self.largest_record.meal_type.value,
                "calories": self.largest_record.calories,
                "portion_size": self.largest_record.portion_size,
            }
        if self.location_distribution:
            payload["location_distribution"] = dict(self.location_distribution)
        return payload
