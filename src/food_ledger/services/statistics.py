"""Deterministic statistics over one day of records."""

import math
from collections import Counter
from collections.abc import Iterable
from datetime import datetime

from food_ledger.domain.records import MEAL_TYPE_ORDER, MealType, NutritionRecord
from food_ledger.domain.stats import (
    DailyStatistics,
    LargestMealType,
    LargestRecord,
    MacroTotals,
    MealTypeBreakdown,
    sum_macros,
)

DEFAULT_LOCATION = "home"
DEFAULT_PORTION_SIZE = "medium"
NOON_HOUR = 12


def extract_statistics(records: Iterable[NutritionRecord]) -> DailyStatistics:
    """Compute the statistics for a day's records.

    Pure and total: any list of records, including an empty one, produces a
    result. Records are ordered chronologically before extraction, so the
    input order never changes the outcome.
    """
    ordered = sorted(records, key=lambda record: record.timestamp.timestamp())
    total = sum_macros(ordered)

    grouped: dict[MealType, list[NutritionRecord]] = {}
    for record in ordered:
        grouped.setdefault(record.meal_type, []).append(record)
    present = [meal_type for meal_type in MEAL_TYPE_ORDER if meal_type in grouped]

    calories_by_type = {
        meal_type: math.fsum(record.calories for record in grouped[meal_type])
        for meal_type in present
    }
    percentages = _calorie_percentages(calories_by_type, total.calories)
    breakdowns = {
        meal_type: _breakdown(
            meal_type,
            grouped[meal_type],
            calories_by_type[meal_type],
            percentages.get(meal_type, 0),
        )
        for meal_type in present
    }

    return DailyStatistics(
        meal_types=breakdowns,
        total_macros=total,
        largest_meal_type=_largest_meal_type(calories_by_type, percentages),
        largest_record=_largest_record(ordered),
        first_food_time=format_clock_time(ordered[0].timestamp) if ordered else None,
        latest_food_time=(
            format_clock_time(ordered[-1].timestamp) if ordered else None
        ),
        ingredient_frequency=_ingredient_frequency(ordered),
        location_distribution=_location_distribution(ordered),
    )


def format_clock_time(moment: datetime) -> str:
    """Render the timestamp's own wall-clock fields as ``h:mm AM/PM``."""
    suffix = "PM" if moment.hour >= NOON_HOUR else "AM"
    hour = moment.hour % NOON_HOUR or NOON_HOUR
    return f"{hour}:{moment.minute:02d} {suffix}"


def _breakdown(
    meal_type: MealType,
    records: list[NutritionRecord],
    calories: float,
    percentage: int,
) -> MealTypeBreakdown:
    totals: MacroTotals = sum_macros(records)
    return MealTypeBreakdown(
        meal_type=meal_type,
        count=len(records),
        calories=calories,
        protein=round(totals.protein, 1),
        carbs=round(totals.carbs, 1),
        fat=round(totals.fat, 1),
        calorie_percentage=percentage,
    )


def _calorie_percentages(
    calories_by_type: dict[MealType, float], total_calories: float
) -> dict[MealType, int]:
    """Whole percentages of the day's calories that sum to exactly 100.

    Uses largest-remainder rounding; ties in the remainder go to the meal
    type that comes first in the fixed priority order.
    """
    if total_calories <= 0:
        return {meal_type: 0 for meal_type in calories_by_type}

    exact = {
        meal_type: calories / total_calories * 100
        for meal_type, calories in calories_by_type.items()
    }
    floors = {meal_type: math.floor(value) for meal_type, value in exact.items()}
    leftover = 100 - sum(floors.values())
    by_remainder = sorted(
        exact,
        key=lambda meal_type: (
            -(exact[meal_type] - floors[meal_type]),
            MEAL_TYPE_ORDER.index(meal_type),
        ),
    )
    for meal_type in by_remainder[:leftover]:
        floors[meal_type] += 1
    return floors


def _largest_meal_type(
    calories_by_type: dict[MealType, float], percentages: dict[MealType, int]
) -> LargestMealType | None:
    winner: MealType | None = None
    winner_calories = 0.0
    # Priority order means a later meal type must be strictly larger to win.
    for meal_type in MEAL_TYPE_ORDER:
        calories = calories_by_type.get(meal_type, 0.0)
        if calories > winner_calories:
            winner = meal_type
            winner_calories = calories
    if winner is None:
        return None
    return LargestMealType(
        meal_type=winner,
        calories=winner_calories,
        percentage=percentages.get(winner, 0),
    )


def _largest_record(ordered: list[NutritionRecord]) -> LargestRecord | None:
    if not ordered:
        return None
    largest = ordered[0]
    for record in ordered[1:]:
        if record.calories > largest.calories:
            largest = record
    return LargestRecord(
        record_id=largest.id,
        name=largest.name,
        meal_type=largest.meal_type,
        calories=largest.calories,
        portion_size=largest.portion_size or DEFAULT_PORTION_SIZE,
    )


def _ingredient_frequency(records: list[NutritionRecord]) -> dict[str, int]:
    counter: Counter[str] = Counter()
    for record in records:
        counter.update(record.ingredients or ())
    return dict(counter)


def _location_distribution(records: list[NutritionRecord]) -> dict[str, int]:
    counter: Counter[str] = Counter(
        record.location
        for record in records
        if record.location and record.location != DEFAULT_LOCATION
    )
    return dict(counter)
