"""Trend summaries over the trailing week, month or year."""

import math
from collections import Counter
from collections.abc import Iterable
from datetime import date, datetime, timedelta, tzinfo

from food_ledger.domain.records import NutritionRecord
from food_ledger.domain.stats import sum_macros
from food_ledger.domain.trends import (
    DailyIntake,
    FoodFrequency,
    PeriodSummary,
    ProteinSource,
    Timeframe,
)

FREQUENT_FOOD_MIN_COUNT = 2
TOP_FOODS_LIMIT = 5


def summarize_period(
    records: Iterable[NutritionRecord], now: datetime, timeframe: Timeframe | str
) -> PeriodSummary:
    """Summarize the records logged in the window ending at ``now``.

    Raises ``ValueError`` for an unknown timeframe.
    """
    frame = Timeframe(timeframe)
    tz = now.tzinfo
    today = now.date()
    cutoff = now - timedelta(days=frame.days)
    window = [
        record for record in records if _as_local(record.timestamp, tz) >= cutoff
    ]

    by_day: dict[date, list[NutritionRecord]] = {}
    for record in window:
        by_day.setdefault(_as_local(record.timestamp, tz).date(), []).append(record)
    daily = [
        _aggregate_day(day, by_day[day]) for day in sorted(by_day) if day < today
    ]

    return PeriodSummary(
        timeframe=frame,
        start=cutoff.date(),
        end=today,
        days_tracked=len(by_day),
        total_foods=len(window),
        average_calories=_average(entry.calories for entry in daily),
        average_protein=_average(entry.protein for entry in daily),
        average_carbs=_average(entry.carbs for entry in daily),
        average_fat=_average(entry.fat for entry in daily),
        average_items_per_day=_average(entry.count for entry in daily),
        daily=daily,
        most_frequent_foods=_most_frequent(window),
        top_protein_sources=_top_protein_sources(window),
    )


def _aggregate_day(day: date, records: list[NutritionRecord]) -> DailyIntake:
    totals = sum_macros(records)
    return DailyIntake(
        day=day,
        calories=totals.calories,
        protein=totals.protein,
        carbs=totals.carbs,
        fat=totals.fat,
        count=totals.count,
    )


def _average(values: Iterable[float]) -> float:
    items = list(values)
    if not items:
        return 0.0
    return math.fsum(items) / len(items)


def _most_frequent(records: list[NutritionRecord]) -> list[FoodFrequency]:
    counts = Counter(record.name for record in records)
    return [
        FoodFrequency(name=name, count=count)
        for name, count in counts.most_common()
        if count >= FREQUENT_FOOD_MIN_COUNT
    ][:TOP_FOODS_LIMIT]


def _top_protein_sources(records: list[NutritionRecord]) -> list[ProteinSource]:
    grouped: dict[str, list[float]] = {}
    for record in records:
        grouped.setdefault(record.name, []).append(record.protein)
    sources = [
        ProteinSource(
            name=name,
            average_protein=math.fsum(values) / len(values),
            count=len(values),
        )
        for name, values in grouped.items()
    ]
    sources = [source for source in sources if source.average_protein > 0]
    sources.sort(key=lambda source: source.average_protein, reverse=True)
    return sources[:TOP_FOODS_LIMIT]


def _as_local(moment: datetime, tz: tzinfo | None) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=tz)
    return moment.astimezone(tz)
