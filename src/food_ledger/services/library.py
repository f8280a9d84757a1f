"""Services for managing the saved-food library."""

import logging
from dataclasses import dataclass, replace
from typing import Protocol
from uuid import UUID

from food_ledger.domain.library import SavedFood, saved_food_from_record
from food_ledger.domain.records import (
    NUTRIENT_FIELDS,
    MealType,
    NutritionRecord,
    non_negative,
)
from food_ledger.services.clock import Clock
from food_ledger.services.ledger import DailyLedger, ImageStore

_logger = logging.getLogger(__name__)


class SavedFoodRepository(Protocol):
    """Persistence interface for saved foods."""

    def list_foods(self) -> list[SavedFood]:
        """Return every saved food in the order it was first saved."""

    def upsert_food(self, food: SavedFood) -> None:
        """Insert a food or replace the one with the same id."""

    def delete_food(self, food_id: UUID) -> None:
        """Delete a food by id, if present."""


@dataclass
class LibraryService:
    """Application service for saved-food operations.

    ``image_store`` keeps images for saved foods. ``record_images`` is the
    ledger's store, used to copy images between the two.
    """

    repository: SavedFoodRepository
    ledger: DailyLedger
    clock: Clock
    image_store: ImageStore | None = None
    record_images: ImageStore | None = None

    def list_foods(self, query: str | None = None) -> list[SavedFood]:
        """Return saved foods, filtered by a name or ingredient substring."""
        foods = self.repository.list_foods()
        if not query or not query.strip():
            return foods
        needle = query.strip().casefold()
        return [food for food in foods if _matches(food, needle)]

    def get_food(self, food_id: UUID) -> SavedFood | None:
        """Return a saved food by id, if present."""
        for food in self.repository.list_foods():
            if food.id == food_id:
                return food
        return None

    def save_food(self, food: SavedFood, image: bytes | None = None) -> SavedFood:
        """Save a food, replacing any saved food with the same name.

        A replaced food keeps its id so existing references stay valid. Its
        image is replaced only when a new one is given.
        """
        existing = self._find_by_name(food.key)
        if existing is not None:
            food = replace(food, id=existing.id)
            _logger.info("Replacing saved food %r", existing.name)
        self.repository.upsert_food(food)
        if image is not None and self.image_store is not None:
            self.image_store.save(food.id, image)
        return food

    def save_record(self, record_id: UUID) -> SavedFood | None:
        """Save a logged record, with its image, as a reusable food."""
        record = self.ledger.get(record_id)
        if record is None or self.ledger.is_transient(record_id):
            return None
        image = None
        if self.record_images is not None:
            image = self.record_images.load(record_id)
        return self.save_food(saved_food_from_record(record), image)

    def update_food(self, food_id: UUID, **fields: object) -> SavedFood | None:
        """Edit a saved food, keeping its id and image.

        Raises ``ValueError`` for unknown fields, an empty name or a name
        another saved food already uses.
        """
        current = self.get_food(food_id)
        if current is None:
            return None
        updated = replace(current, **_validated_changes(fields))
        other = self._find_by_name(updated.key)
        if other is not None and other.id != food_id:
            raise ValueError(f"A saved food named {other.name!r} already exists")
        self.repository.upsert_food(updated)
        return updated

    def delete_food(self, food_id: UUID) -> bool:
        """Delete a saved food and its image."""
        if self.get_food(food_id) is None:
            return False
        self.repository.delete_food(food_id)
        if self.image_store is not None:
            self.image_store.delete(food_id)
        return True

    def log_food(
        self, food_id: UUID, meal_type: MealType | str | None = None
    ) -> NutritionRecord | None:
        """Log a saved food as a new record timestamped now.

        The meal type is derived from the current time unless one is given.
        The saved image, if any, is copied to the new record.
        """
        food = self.get_food(food_id)
        if food is None:
            return None
        record = food.to_record(self.clock.now(), MealType.parse(meal_type))
        if not self.ledger.append(record):
            return None
        if self.image_store is not None and self.record_images is not None:
            image = self.image_store.load(food.id)
            if image is not None:
                self.record_images.save(record.id, image)
        _logger.info("Logged saved food %r as record %s", food.name, record.id)
        return record

    def _find_by_name(self, key: str) -> SavedFood | None:
        for food in self.repository.list_foods():
            if food.key == key:
                return food
        return None


def _matches(food: SavedFood, needle: str) -> bool:
    if needle in food.key:
        return True
    return any(
        needle in ingredient.casefold() for ingredient in food.ingredients or ()
    )


def _validated_changes(fields: dict[str, object]) -> dict[str, object]:
    changes: dict[str, object] = {}
    for key, value in fields.items():
        if key in NUTRIENT_FIELDS:
            changes[key] = non_negative(value)
        elif key == "name":
            if value is None or not str(value).strip():
                raise ValueError("name must not be empty")
            changes[key] = str(value).strip()
        elif key == "ingredients":
            if value is not None and not isinstance(value, list | tuple):
                raise ValueError("ingredients must be a list")
            changes[key] = None if value is None else tuple(str(v) for v in value)
        elif key == "portion_size":
            changes[key] = None if value is None else str(value)
        else:
            raise ValueError(f"Field cannot be edited: {key}")
    return changes
