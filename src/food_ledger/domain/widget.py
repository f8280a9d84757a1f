"""Domain models for the widget snapshot."""

from dataclasses import dataclass
from datetime import date

KEY_TODAY_CALORIES = "widget_todayCalories"
KEY_TODAY_PROTEIN = "widget_todayProtein"
KEY_TODAY_CARBS = "widget_todayCarbs"
KEY_TODAY_FAT = "widget_todayFat"
KEY_FOOD_COUNT = "widget_foodCount"
KEY_GOAL_CALORIES = "widget_goalCalories"
KEY_GOAL_PROTEIN = "widget_goalProtein"
KEY_GOAL_CARBS = "widget_goalCarbs"
KEY_GOAL_FAT = "widget_goalFat"
KEY_LAST_UPDATE_DATE = "widget_lastUpdateDate"

FLOAT_KEYS = (
    KEY_TODAY_CALORIES,
    KEY_TODAY_PROTEIN,
    KEY_TODAY_CARBS,
    KEY_TODAY_FAT,
    KEY_GOAL_CALORIES,
    KEY_GOAL_PROTEIN,
    KEY_GOAL_CARBS,
    KEY_GOAL_FAT,
)
SNAPSHOT_KEYS = (*FLOAT_KEYS, KEY_FOOD_COUNT, KEY_LAST_UPDATE_DATE)


@dataclass(frozen=True)
class NutritionGoals:
    """Daily nutrition goals."""

    calories: float = 2000
    protein: float = 150
    carbs: float = 250
    fat: float = 65


@dataclass(frozen=True)
class WidgetSnapshot:
    """Aggregate of today's intake shared with the widget process."""

    day: date
    calories: float
    protein: float
    carbs: float
    fat: float
    food_count: int
    goals: NutritionGoals

    def to_values(self) -> dict[str, object]:
        """Return the snapshot keyed by the widget store keys."""
        return {
            KEY_TODAY_CALORIES: self.calories,
            KEY_TODAY_PROTEIN: self.protein,
            KEY_TODAY_CARBS: self.carbs,
            KEY_TODAY_FAT: self.fat,
            KEY_FOOD_COUNT: self.food_count,
            KEY_GOAL_CALORIES: self.goals.calories,
            KEY_GOAL_PROTEIN: self.goals.protein,
            KEY_GOAL_CARBS: self.goals.carbs,
            KEY_GOAL_FAT: self.goals.fat,
            KEY_LAST_UPDATE_DATE: self.day.isoformat(),
        }
