"""Models for inference results."""

from pydantic import AliasChoices, BaseModel, Field, field_validator

from food_ledger.domain.records import non_negative

UNIDENTIFIED_NAME = "Unidentified Food"
_UNUSABLE_NAME_MARKERS = ("unidentified", "unknown")


class DetectedFood(BaseModel):
    """Single food item detected in an image."""

    name: str = UNIDENTIFIED_NAME
    calories: float = 0.0
    protein: float = 0.0
    carbs: float = 0.0
    fat: float = 0.0
    fiber: float = 0.0
    sugar: float = 0.0
    sodium: float = 0.0
    confidence: float = 0.0
    portion_size: str = Field(
        default="medium",
        validation_alias=AliasChoices("portion_size", "portionSize", "portion"),
    )
    serving_size: str | None = Field(
        default=None, validation_alias=AliasChoices("serving_size", "servingSize")
    )
    cooking_method: str | None = Field(
        default=None,
        validation_alias=AliasChoices("cooking_method", "cookingMethod"),
    )
    ingredients: list[str] = Field(default_factory=list)
    macro_character: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "macro_character", "macroCharacter", "macro_guess", "macroGuess"
        ),
    )

    @field_validator(
        "calories", "protein", "carbs", "fat", "fiber", "sugar", "sodium",
        mode="before",
    )
    @classmethod
    def _clamp_nutrient(cls, value: object) -> float:
        return non_negative(value)

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value: object) -> float:
        return min(non_negative(value), 1.0)

    @field_validator("name", mode="before")
    @classmethod
    def _default_name(cls, value: object) -> str:
        if value is None or not str(value).strip():
            return UNIDENTIFIED_NAME
        return str(value).strip()

    @field_validator("portion_size", mode="before")
    @classmethod
    def _default_portion(cls, value: object) -> str:
        if value is None:
            return "medium"
        return str(value)

    @field_validator("ingredients", mode="before")
    @classmethod
    def _coerce_ingredients(cls, value: object) -> list[str]:
        if not isinstance(value, list):
            return []
        return [str(item) for item in value if item is not None]

    def is_usable(self) -> bool:
        """Return True when the item names a real food with calories."""
        lowered = self.name.lower()
        if any(marker in lowered for marker in _UNUSABLE_NAME_MARKERS):
            return False
        return self.calories > 0


class ImageAnalysis(BaseModel):
    """Structured result of analysing one food photo."""

    items: list[DetectedFood] = Field(
        default_factory=list, validation_alias=AliasChoices("items", "foods")
    )
    overall_confidence: float = Field(
        default=0.0,
        validation_alias=AliasChoices("overall_confidence", "overallConfidence"),
    )
    description: str = Field(
        default="",
        validation_alias=AliasChoices(
            "description", "image_description", "imageDescription"
        ),
    )
    suggestions: list[str] = Field(default_factory=list)

    @field_validator("items", mode="before")
    @classmethod
    def _coerce_items(cls, value: object) -> list[object]:
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, dict | DetectedFood)]

    @field_validator("overall_confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value: object) -> float:
        return min(non_negative(value), 1.0)

    @field_validator("description", mode="before")
    @classmethod
    def _coerce_description(cls, value: object) -> str:
        return "" if value is None else str(value)

    @field_validator("suggestions", mode="before")
    @classmethod
    def _coerce_suggestions(cls, value: object) -> list[str]:
        if not isinstance(value, list):
            return []
        return [str(item) for item in value if item is not None]

    def usable_items(self) -> list[DetectedFood]:
        """Return usable items, highest confidence first."""
        usable = [item for item in self.items if item.is_usable()]
        return sorted(usable, key=lambda item: item.confidence, reverse=True)


def unidentified_analysis() -> ImageAnalysis:
    """Last-resort result used when inference output cannot be parsed."""
    return ImageAnalysis(
        items=[DetectedFood(name=UNIDENTIFIED_NAME, calories=0, confidence=0.1)],
        overall_confidence=0.1,
        description="Unable to analyze image",
        suggestions=["Try taking a clearer photo with better lighting"],
    )


class NameEstimate(BaseModel):
    """Macro estimate for a food typed by name."""

    name: str
    calories: float = 0.0
    protein: float = 0.0
    carbs: float = 0.0
    fat: float = 0.0
    fiber: float = 0.0
    sugar: float = 0.0
    sodium: float = 0.0
    serving_description: str = Field(
        default="1 serving",
        validation_alias=AliasChoices(
            "serving_description", "serving_size", "servingSize"
        ),
    )
    confidence: float = 0.7

    @field_validator(
        "calories", "protein", "carbs", "fat", "fiber", "sugar", "sodium",
        mode="before",
    )
    @classmethod
    def _clamp_nutrient(cls, value: object) -> float:
        return non_negative(value)

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value: object) -> float:
        if value is None:
            return 0.7
        return min(non_negative(value), 1.0)

    @field_validator("serving_description", mode="before")
    @classmethod
    def _default_serving(cls, value: object) -> str:
        if value is None or not str(value).strip():
            return "1 serving"
        return str(value)
