"""Domain models for multi-day trend summaries."""

from dataclasses import dataclass, field
from datetime import date
from enum import StrEnum


class Timeframe(StrEnum):
    """Look-back windows for trend summaries."""

    WEEK = "week"
    MONTH = "month"
    YEAR = "year"

    @property
    def days(self) -> int:
        """Length of the window in days."""
        return {"week": 7, "month": 30, "year": 365}[self.value]


@dataclass(frozen=True)
class DailyIntake:
    """Summed calories and macros for one completed day."""

    day: date
    calories: float
    protein: float
    carbs: float
    fat: float
    count: int


@dataclass(frozen=True)
class FoodFrequency:
    """How often one food name was logged in the window."""

    name: str
    count: int


@dataclass(frozen=True)
class ProteinSource:
    """Average protein per record for one food name."""

    name: str
    average_protein: float
    count: int


@dataclass(frozen=True)
class PeriodSummary:
    """Averages and habits over a trailing window.

    Averages cover completed days with at least one record; today is
    excluded because it is still in progress.
    """

    timeframe: Timeframe
    start: date
    end: date
    days_tracked: int
    total_foods: int
    average_calories: float
    average_protein: float
    average_carbs: float
    average_fat: float
    average_items_per_day: float
    daily: list[DailyIntake] = field(default_factory=list)
    most_frequent_foods: list[FoodFrequency] = field(default_factory=list)
    top_protein_sources: list[ProteinSource] = field(default_factory=list)

    @property
    def completed_days(self) -> int:
        """Number of completed days the averages were computed from."""
        return len(self.daily)
