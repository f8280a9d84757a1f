"""JSON file-backed ledger repository."""

import logging
from dataclasses import dataclass
from pathlib import Path

from food_ledger.adapters.json_files import read_json, write_json_atomic
from food_ledger.domain.records import NutritionRecord, record_from_dict, record_to_dict
from food_ledger.errors import ParseError
from food_ledger.services.ledger import LedgerRepository

_logger = logging.getLogger(__name__)


@dataclass
class JsonLedgerRepository(LedgerRepository):
    """Stores the whole ledger as one JSON array of records."""

    path: Path

    def load(self) -> list[NutritionRecord]:
        """Return the persisted records, skipping entries that fail to decode."""
        payload = read_json(self.path)
        if payload is None:
            return []
        if not isinstance(payload, list):
            raise ParseError(f"{self.path} does not contain a list of records")
        records: list[NutritionRecord] = []
        for entry in payload:
            if not isinstance(entry, dict):
                _logger.warning("Skipping non-object ledger entry: %r", entry)
                continue
            try:
                records.append(record_from_dict(entry))
            except (KeyError, ValueError) as exc:
                _logger.warning("Skipping malformed ledger entry: %s", exc)
        return records

    def save_all(self, records: list[NutritionRecord]) -> None:
        """Re-serialize the whole ledger."""
        write_json_atomic(self.path, [record_to_dict(record) for record in records])
