"""Correction of likely underestimated or portion-mismatched nutrition values."""

import logging
from dataclasses import dataclass

from food_ledger.domain.records import NUTRIENT_FIELDS, MealType

_logger = logging.getLogger(__name__)

PORTION_MULTIPLIERS = {
    "small": 0.75,
    "medium": 1.0,
    "": 1.0,
    "large": 1.5,
}

UNDERESTIMATE_CEILING = 150.0

COMPOSITE_DISH_KEYWORDS = (
    "pasta",
    "noodles",
    "rice",
    "pizza",
    "burger",
    "sandwich",
    "wrap",
    "burrito",
    "taco",
    "curry",
    "stir",
    "fry",
    "stir-fry",
    "casserole",
    "lasagna",
    "spaghetti",
    "fettuccine",
    "penne",
    "macaroni",
    "risotto",
    "paella",
    "fried rice",
    "ramen",
)

LOW_CALORIE_VEGETABLE_KEYWORDS = (
    "broccoli",
    "carrot",
    "lettuce",
    "spinach",
    "cabbage",
    "celery",
    "cucumber",
    "zucchini",
    "pepper",
    "onion",
    "tomato",
    "mushroom",
    "asparagus",
    "green beans",
)

# (upper bound, multiplier) bands for composite dishes, checked in order.
_COMPOSITE_BANDS = ((50.0, 5.0), (80.0, 4.0), (120.0, 3.0))
_COMPOSITE_FLOOR_MULTIPLIER = 2.0


@dataclass(frozen=True)
class Correction:
    """Portion and underestimation factors for one detected food."""

    portion: float = 1.0
    underestimation: float = 1.0

    @property
    def multiplier(self) -> float:
        """Combined factor applied to every nutrient."""
        return self.portion * self.underestimation


def portion_multiplier(portion_label: str | None) -> float:
    """Return the scaling factor for a portion label; unknown labels map to 1.0."""
    label = (portion_label or "").strip().lower()
    multiplier = PORTION_MULTIPLIERS.get(label)
    if multiplier is None:
        _logger.debug("Unknown portion size %r, defaulting to medium", portion_label)
        return 1.0
    return multiplier


def underestimation_multiplier(
    name: str,
    raw_calories: float,
    meal_type: MealType,
    co_detected_count: int,
) -> float:
    """Return a factor >= 1.0 compensating single-ingredient detections.

    Fires only below 150 kcal. Composite dishes are banded by how low the
    estimate is; a lone low-calorie vegetable or a lone low-calorie item at a
    main meal is assumed to be missing its base component.
    """
    if raw_calories >= UNDERESTIMATE_CEILING:
        return 1.0

    lowered = name.lower()
    has_composite = any(keyword in lowered for keyword in COMPOSITE_DISH_KEYWORDS)
    has_vegetable = any(
        keyword in lowered for keyword in LOW_CALORIE_VEGETABLE_KEYWORDS
    )
    is_main_meal = meal_type is not MealType.SNACK
    single_item = co_detected_count == 1

    if has_composite:
        for upper, multiplier in _COMPOSITE_BANDS:
            if raw_calories < upper:
                return multiplier
        return _COMPOSITE_FLOOR_MULTIPLIER

    if has_vegetable and is_main_meal:
        if single_item and raw_calories < 80:
            return 3.0
        if raw_calories < 100:
            return 2.0

    if is_main_meal and single_item and raw_calories < 80:
        return 2.5

    return 1.0


def correct(
    name: str,
    raw_calories: float,
    meal_type: MealType,
    co_detected_count: int,
    portion_label: str | None,
) -> Correction:
    """Compute the correction for one detected food."""
    correction = Correction(
        portion=portion_multiplier(portion_label),
        underestimation=underestimation_multiplier(
            name, raw_calories, meal_type, co_detected_count
        ),
    )
    if correction.underestimation > 1.0:
        _logger.info(
            "Applying %.1fx underestimation correction to %r (%.0f kcal, %s)",
            correction.underestimation,
            name,
            raw_calories,
            meal_type.value,
        )
    return correction


def correction_multiplier(
    name: str,
    raw_calories: float,
    meal_type: MealType,
    co_detected_count: int,
    portion_label: str | None,
) -> float:
    """Return the combined portion and underestimation multiplier."""
    return correct(
        name, raw_calories, meal_type, co_detected_count, portion_label
    ).multiplier


def apply_correction(
    values: dict[str, float], multiplier: float
) -> dict[str, float]:
    """Scale every nutrient field by the same multiplier."""
    return {name: values.get(name, 0.0) * multiplier for name in NUTRIENT_FIELDS}
