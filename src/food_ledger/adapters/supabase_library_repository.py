"""Supabase implementation for the saved-food library."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from supabase import Client

from food_ledger.domain.library import (
    SavedFood,
    saved_food_from_dict,
    saved_food_to_dict,
)
from food_ledger.services.library import SavedFoodRepository

_logger = logging.getLogger(__name__)

_TABLE = "saved_foods"


@dataclass
class SupabaseSavedFoodRepository(SavedFoodRepository):
    """Supabase-backed repository with one row per saved food and owner."""

    client: Client
    owner: str

    def list_foods(self) -> list[SavedFood]:
        """Return the owner's saved foods in the order they were created."""
        response = (
            self.client.table(_TABLE)
            .select("*")
            .eq("owner", self.owner)
            .order("created_at")
            .execute()
        )
        foods: list[SavedFood] = []
        for row in response.data or []:
            try:
                foods.append(saved_food_from_dict(row))
            except (KeyError, TypeError, ValueError) as exc:
                _logger.warning("Skipping malformed saved food row: %s", exc)
        return foods

    def upsert_food(self, food: SavedFood) -> None:
        """Insert or replace the row for ``food``."""
        self.client.table(_TABLE).upsert(
            {
                **saved_food_to_dict(food),
                "owner": self.owner,
                "updated_at": datetime.now(tz=UTC).isoformat(),
            },
            on_conflict="id",
        ).execute()

    def delete_food(self, food_id: UUID) -> None:
        """Delete the owner's row for ``food_id``."""
        (
            self.client.table(_TABLE)
            .delete()
            .eq("id", str(food_id))
            .eq("owner", self.owner)
            .execute()
        )
