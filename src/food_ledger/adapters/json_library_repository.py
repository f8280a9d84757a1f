"""JSON file-backed saved-food repository."""

import logging
from dataclasses import dataclass
from pathlib import Path
from uuid import UUID

from food_ledger.adapters.json_files import read_json, write_json_atomic
from food_ledger.domain.library import (
    SavedFood,
    saved_food_from_dict,
    saved_food_to_dict,
)
from food_ledger.errors import ParseError
from food_ledger.services.library import SavedFoodRepository

_logger = logging.getLogger(__name__)


@dataclass
class JsonSavedFoodRepository(SavedFoodRepository):
    """Stores every saved food in one JSON array."""

    path: Path

    def list_foods(self) -> list[SavedFood]:
        """Return the saved foods, skipping entries that fail to decode."""
        payload = read_json(self.path)
        if payload is None:
            return []
        if not isinstance(payload, list):
            raise ParseError(f"{self.path} does not contain a list of saved foods")
        foods: list[SavedFood] = []
        for entry in payload:
            if not isinstance(entry, dict):
                _logger.warning("Skipping non-object saved food: %r", entry)
                continue
            try:
                foods.append(saved_food_from_dict(entry))
            except (KeyError, ValueError) as exc:
                _logger.warning("Skipping malformed saved food: %s", exc)
        return foods

    def upsert_food(self, food: SavedFood) -> None:
        """Replace the food with the same id, or append it."""
        foods = self.list_foods()
        for index, existing in enumerate(foods):
            if existing.id == food.id:
                foods[index] = food
                break
        else:
            foods.append(food)
        self._write(foods)

    def delete_food(self, food_id: UUID) -> None:
        """Remove the food with ``food_id``, if present."""
        foods = self.list_foods()
        kept = [food for food in foods if food.id != food_id]
        if len(kept) != len(foods):
            self._write(kept)

    def _write(self, foods: list[SavedFood]) -> None:
        write_json_atomic(self.path, [saved_food_to_dict(food) for food in foods])
