"""Supabase-backed ledger repository."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime

from supabase import Client

from food_ledger.domain.records import NutritionRecord, record_from_dict, record_to_dict
from food_ledger.errors import ParseError
from food_ledger.services.ledger import LedgerRepository

_logger = logging.getLogger(__name__)

_TABLE = "ledger_snapshots"


@dataclass
class SupabaseLedgerRepository(LedgerRepository):
    """Stores the serialized ledger as one row per owner."""

    client: Client
    owner: str

    def load(self) -> list[NutritionRecord]:
        """Return the persisted records for the owner."""
        response = (
            self.client.table(_TABLE)
            .select("records")
            .eq("owner", self.owner)
            .limit(1)
            .execute()
        )
        if not response.data:
            return []
        payload = response.data[0].get("records")
        if payload is None:
            return []
        if not isinstance(payload, list):
            raise ParseError(f"Ledger snapshot for {self.owner} is not a list")
        records: list[NutritionRecord] = []
        for entry in payload:
            try:
                records.append(record_from_dict(entry))
            except (KeyError, TypeError, ValueError) as exc:
                _logger.warning("Skipping malformed ledger entry: %s", exc)
        return records

    def save_all(self, records: list[NutritionRecord]) -> None:
        """Replace the owner's snapshot with ``records``."""
        self.client.table(_TABLE).upsert(
            {
                "owner": self.owner,
                "records": [record_to_dict(record) for record in records],
                "updated_at": datetime.now(tz=UTC).isoformat(),
            },
            on_conflict="owner",
        ).execute()
