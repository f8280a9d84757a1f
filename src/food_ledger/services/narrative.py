"""Narrative summaries of a day's eating pattern."""

import json
import logging
from dataclasses import dataclass
from typing import Protocol

from pydantic import ValidationError as PydanticValidationError

from food_ledger.domain.narrative import DEFAULT_TITLE, PatternSummary
from food_ledger.domain.records import MEAL_TYPE_ORDER, MealType, NutritionRecord
from food_ledger.domain.stats import DailyStatistics
from food_ledger.errors import FoodLedgerError, NarrativeUnavailable
from food_ledger.services.json_output import parse_json_object
from food_ledger.services.statistics import (
    DEFAULT_LOCATION,
    DEFAULT_PORTION_SIZE,
    extract_statistics,
    format_clock_time,
)

_logger = logging.getLogger(__name__)

PATTERN_SUMMARY_PROMPT = """\
You are generating a daily eating pattern summary for a food-tracking app.
The summary must be purely descriptive: no advice, no evaluations, no
nutrition judgments, no health conclusions. Only objective observations,
frequencies and comparisons, addressed to the user in second person.

Notes about the data:
- Each entry in "Food items logged today" is a FOOD ITEM, not a meal session.
- Only mention location when it is present in the data.
- Use timestamp_display for time references.

Food items logged today:
{records}

Extracted patterns:
{patterns}

Use the provided aggregates verbatim:
- When stating total protein, carbs, fat or calories, ALWAYS use the values in
  total_macros. Never add up meal_type_macro_distribution yourself.
- The largest meal is the meal TYPE given in largest_meal_type. Only one meal
  type can be the largest; never use largest_portion for it. If
  largest_meal_type is absent, do not name a largest meal.
- Calorie shares per meal type come from meal_type_calorie_distribution.
- A bullet that mentions calories from macros must end with "(estimated)".

Return exactly this JSON structure:
{{
  "summary": "Today's Eating Pattern",
  "bullets": ["3 to 6 bullets"],
  "overall": "One sentence that connects several of the patterns above"
}}
"""

EMPTY_DAY_SUMMARY = PatternSummary(
    summary=DEFAULT_TITLE,
    bullets=["No meals logged yet", "Start tracking to see your eating patterns"],
    overall="Begin logging meals to discover your eating patterns.",
)


class NarrativeClient(Protocol):
    """Interface for the narrative model endpoint."""

    async def complete(self, prompt: str) -> str:
        """Return the raw text produced for the prompt."""


@dataclass
class NarrativeService:
    """Service that turns today's records and statistics into a summary."""

    client: NarrativeClient

    async def summarize(
        self,
        records: list[NutritionRecord],
        statistics: DailyStatistics | None = None,
    ) -> PatternSummary:
        """Summarize a day.

        The model is given the statistics payload and told to use its totals
        as-is. Any failure yields a summary computed from the statistics.
        """
        if not records:
            return EMPTY_DAY_SUMMARY.model_copy(deep=True)
        stats = statistics if statistics is not None else extract_statistics(records)
        prompt = build_prompt(records, stats)
        try:
            raw = await self.client.complete(prompt)
            payload = parse_json_object(raw)
            summary = PatternSummary.model_validate(payload)
        except (FoodLedgerError, PydanticValidationError) as exc:
            _logger.warning("%s", NarrativeUnavailable(f"Narrative failed: {exc}"))
            return fallback_summary(stats)
        if not summary.bullets:
            _logger.warning("Narrative returned no bullets; using fallback")
            return fallback_summary(stats)
        return summary


def build_prompt(records: list[NutritionRecord], stats: DailyStatistics) -> str:
    """Render the narrative prompt for a day's records and statistics."""
    ordered = sorted(records, key=lambda record: record.timestamp.timestamp())
    return PATTERN_SUMMARY_PROMPT.format(
        records=json.dumps([_record_payload(record) for record in ordered], indent=2),
        patterns=json.dumps(stats.to_payload(), indent=2),
    )


def fallback_summary(stats: DailyStatistics) -> PatternSummary:
    """Build a plain summary from the statistics alone."""
    if stats.record_count == 0:
        return EMPTY_DAY_SUMMARY.model_copy(deep=True)

    bullets = [
        _count_bullet(meal_type, stats.meal_types[meal_type].count)
        for meal_type in MEAL_TYPE_ORDER
        if meal_type in stats.meal_types and stats.meal_types[meal_type].count > 0
    ]
    if stats.total_macros.calories > 0:
        bullets.append(f"Total calories: {int(stats.total_macros.calories)}")
    if not bullets:
        bullets = ["Continue logging meals to see insights"]

    count = stats.record_count
    noun = "item" if count == 1 else "items"
    return PatternSummary(
        summary=DEFAULT_TITLE,
        bullets=bullets,
        overall=f"You've logged {count} food {noun} today.",
    )


def _count_bullet(meal_type: MealType, count: int) -> str:
    if meal_type is MealType.SNACK:
        return f"You logged {count} snack{'s' if count > 1 else ''}"
    noun = "items" if count > 1 else "item"
    return f"You logged {count} {meal_type.value} {noun}"


def _record_payload(record: NutritionRecord) -> dict[str, object]:
    payload: dict[str, object] = {
        "timestamp": record.timestamp.isoformat(),
        "timestamp_display": format_clock_time(record.timestamp),
        "detected_ingredients": list(record.ingredients or ()),
        "portion_size_estimate": record.portion_size or DEFAULT_PORTION_SIZE,
        "meal_type_guess": record.meal_type.value,
        "calories": record.calories,
        "carbs": record.carbs,
        "protein": record.protein,
        "fat": record.fat,
    }
    if record.location and record.location != DEFAULT_LOCATION:
        payload["location"] = record.location
    return payload
