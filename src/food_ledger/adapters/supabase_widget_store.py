"""Supabase-backed widget key/value store."""

from dataclasses import dataclass
from datetime import UTC, datetime

from supabase import Client

from food_ledger.services.widget import WidgetStore

_TABLE = "widget_state"


@dataclass
class SupabaseWidgetStore(WidgetStore):
    """Stores each widget key as a row scoped to one owner."""

    client: Client
    owner: str

    def write(self, values: dict[str, object]) -> None:
        """Upsert every key in ``values``."""
        updated_at = datetime.now(tz=UTC).isoformat()
        rows = [
            {"owner": self.owner, "key": key, "value": value, "updated_at": updated_at}
            for key, value in values.items()
        ]
        self.client.table(_TABLE).upsert(rows, on_conflict="owner,key").execute()

    def read(self, keys: tuple[str, ...]) -> dict[str, object]:
        """Return the stored values for ``keys``."""
        response = (
            self.client.table(_TABLE)
            .select("key, value")
            .eq("owner", self.owner)
            .in_("key", list(keys))
            .execute()
        )
        return {row["key"]: row.get("value") for row in response.data or []}
