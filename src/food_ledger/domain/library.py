"""Domain models for the saved-food library."""

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID, uuid4

from food_ledger.domain.records import (
    NUTRIENT_FIELDS,
    MealType,
    NutritionRecord,
    meal_type_for_time,
    non_negative,
)


@dataclass(frozen=True)
class SavedFood:
    """Reusable food the user can log again with one action.

    Names are unique within a library, compared case-insensitively.
    ``is_custom`` marks foods typed in by hand rather than saved from a
    logged record.
    """

    name: str
    calories: float = 0.0
    protein: float = 0.0
    carbs: float = 0.0
    fat: float = 0.0
    fiber: float = 0.0
    sugar: float = 0.0
    sodium: float = 0.0
    ingredients: tuple[str, ...] | None = None
    portion_size: str | None = None
    is_custom: bool = False
    id: UUID = field(default_factory=uuid4)

    def __post_init__(self) -> None:
        object.__setattr__(self, "name", self.name.strip())
        for name in NUTRIENT_FIELDS:
            object.__setattr__(self, name, non_negative(getattr(self, name)))
        if self.ingredients is not None and not isinstance(self.ingredients, tuple):
            object.__setattr__(self, "ingredients", tuple(self.ingredients))

    @property
    def key(self) -> str:
        """Case-insensitive name used to find duplicates."""
        return self.name.casefold()

    def nutrients(self) -> dict[str, float]:
        """Return the nutrient fields keyed by name."""
        return {name: getattr(self, name) for name in NUTRIENT_FIELDS}

    def to_record(
        self, timestamp: datetime, meal_type: MealType | None = None
    ) -> NutritionRecord:
        """Create a new ledger record for this food at ``timestamp``."""
        return NutritionRecord(
            name=self.name,
            timestamp=timestamp,
            meal_type=meal_type or meal_type_for_time(timestamp),
            ingredients=self.ingredients,
            portion_size=self.portion_size,
            **self.nutrients(),
        )


def saved_food_from_record(record: NutritionRecord) -> SavedFood:
    """Copy the reusable parts of a logged record."""
    return SavedFood(
        name=record.name,
        ingredients=record.ingredients,
        portion_size=record.portion_size,
        is_custom=False,
        **record.nutrients(),
    )


def saved_food_to_dict(food: SavedFood) -> dict[str, object]:
    """Serialize a saved food. Image payloads are stored separately."""
    payload: dict[str, object] = {"id": str(food.id), "name": food.name}
    payload.update(food.nutrients())
    payload["ingredients"] = list(food.ingredients) if food.ingredients else None
    payload["portion_size"] = food.portion_size
    payload["is_custom"] = food.is_custom
    return payload


def saved_food_from_dict(payload: dict[str, object]) -> SavedFood:
    """Rebuild a saved food. Raises ``KeyError`` or ``ValueError`` when malformed."""
    name = str(payload["name"]).strip()
    if not name:
        raise ValueError("saved food name is empty")
    ingredients = payload.get("ingredients")
    portion_size = payload.get("portion_size")
    return SavedFood(
        id=UUID(str(payload["id"])),
        name=name,
        ingredients=(
            tuple(str(item) for item in ingredients)
            if isinstance(ingredients, list)
            else None
        ),
        portion_size=None if portion_size is None else str(portion_size),
        is_custom=bool(payload.get("is_custom", False)),
        **{
            nutrient: non_negative(payload.get(nutrient))
            for nutrient in NUTRIENT_FIELDS
        },
    )
