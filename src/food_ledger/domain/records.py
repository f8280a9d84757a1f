"""Domain models for logged nutrition records."""

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from uuid import UUID, uuid4

PLACEHOLDER_NAME = "Processing..."

NUTRIENT_FIELDS = (
    "calories",
    "protein",
    "carbs",
    "fat",
    "fiber",
    "sugar",
    "sodium",
)

# Minutes after local midnight.
_BREAKFAST_START = 4 * 60
_LUNCH_START = 10 * 60
_LUNCH_END = 15 * 60 + 30
_DINNER_START = 17 * 60


class MealType(StrEnum):
    """Meal bucket a record is logged under."""

    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"
    SNACK = "snack"

    @classmethod
    def parse(cls, value: object) -> "MealType | None":
        """Return the meal type for a case-insensitive label, if known."""
        if isinstance(value, MealType):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


# Fixed priority used to break ties between meal types.
MEAL_TYPE_ORDER = (
    MealType.BREAKFAST,
    MealType.LUNCH,
    MealType.DINNER,
    MealType.SNACK,
)


def meal_type_for_time(moment: datetime) -> MealType:
    """Derive the meal type from the local wall-clock time of ``moment``.

    Breakfast 04:00-10:00, lunch 10:00-15:30, dinner 17:00-24:00 and snack
    for everything else. Lower bounds are inclusive.
    """
    minutes = moment.hour * 60 + moment.minute
    if _BREAKFAST_START <= minutes < _LUNCH_START:
        return MealType.BREAKFAST
    if _LUNCH_START <= minutes < _LUNCH_END:
        return MealType.LUNCH
    if minutes >= _DINNER_START:
        return MealType.DINNER
    return MealType.SNACK


def non_negative(value: object) -> float:
    """Coerce a nutrient value to a finite non-negative float; bad input becomes 0."""
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, int | float):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return 0.0
    else:
        return 0.0
    if not math.isfinite(number) or number < 0:
        return 0.0
    return number


@dataclass(frozen=True)
class NutritionRecord:
    """One logged food entry.

    Records are immutable; edits go through ``dataclasses.replace`` and keep
    the same ``id``. Nutrient values are clamped to be non-negative.
    """

    name: str
    timestamp: datetime
    meal_type: MealType
    calories: float = 0.0
    protein: float = 0.0
    carbs: float = 0.0
    fat: float = 0.0
    fiber: float = 0.0
    sugar: float = 0.0
    sodium: float = 0.0
    ingredients: tuple[str, ...] | None = None
    location: str | None = None
    portion_size: str | None = None
    macro_character: str | None = None
    id: UUID = field(default_factory=uuid4)

    def __post_init__(self) -> None:
        for name in NUTRIENT_FIELDS:
            object.__setattr__(self, name, non_negative(getattr(self, name)))
        meal_type = MealType.parse(self.meal_type) or meal_type_for_time(
            self.timestamp
        )
        object.__setattr__(self, "meal_type", meal_type)
        if self.ingredients is not None and not isinstance(self.ingredients, tuple):
            object.__setattr__(self, "ingredients", tuple(self.ingredients))

    def nutrients(self) -> dict[str, float]:
        """Return the nutrient fields keyed by name."""
        return {name: getattr(self, name) for name in NUTRIENT_FIELDS}


def placeholder_record(timestamp: datetime, meal_type: MealType) -> NutritionRecord:
    """Create the zero-valued record shown while an analysis is running."""
    return NutritionRecord(
        name=PLACEHOLDER_NAME,
        timestamp=timestamp,
        meal_type=meal_type,
    )


def record_to_dict(record: NutritionRecord) -> dict[str, object]:
    """Serialize a record for persistence. Image payloads are never included."""
    payload: dict[str, object] = {
        "id": str(record.id),
        "name": record.name,
        "timestamp": record.timestamp.isoformat(),
        "meal_type": record.meal_type.value,
    }
    payload.update(record.nutrients())
    if record.ingredients is not None:
        payload["ingredients"] = list(record.ingredients)
    if record.location is not None:
        payload["location"] = record.location
    if record.portion_size is not None:
        payload["portion_size"] = record.portion_size
    if record.macro_character is not None:
        payload["macro_character"] = record.macro_character
    return payload


def record_from_dict(payload: dict[str, object]) -> NutritionRecord:
    """Rebuild a record from its persisted form.

    Raises ``KeyError`` or ``ValueError`` when required fields are missing or
    malformed.
    """
    timestamp = datetime.fromisoformat(str(payload["timestamp"]))
    ingredients = payload.get("ingredients")
    return NutritionRecord(
        id=UUID(str(payload["id"])),
        name=str(payload["name"]),
        timestamp=timestamp,
        meal_type=MealType.parse(payload.get("meal_type"))
        or meal_type_for_time(timestamp),
        calories=non_negative(payload.get("calories")),
        protein=non_negative(payload.get("protein")),
        carbs=non_negative(payload.get("carbs")),
        fat=non_negative(payload.get("fat")),
        fiber=non_negative(payload.get("fiber")),
        sugar=non_negative(payload.get("sugar")),
        sodium=non_negative(payload.get("sodium")),
        ingredients=(
            tuple(str(item) for item in ingredients)
            if isinstance(ingredients, list)
            else None
        ),
        location=_optional_str(payload.get("location")),
        portion_size=_optional_str(payload.get("portion_size")),
        macro_character=_optional_str(payload.get("macro_character")),
    )


def _optional_str(value: object) -> str | None:
    if value is None:
        return None
    return str(value)
