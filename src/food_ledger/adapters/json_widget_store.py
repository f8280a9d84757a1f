"""JSON file-backed widget key/value store."""

from dataclasses import dataclass
from pathlib import Path

from food_ledger.adapters.json_files import read_json, write_json_atomic
from food_ledger.errors import ParseError
from food_ledger.services.widget import WidgetStore


@dataclass
class JsonWidgetStore(WidgetStore):
    """Shares the widget snapshot with other processes through one JSON file."""

    path: Path

    def write(self, values: dict[str, object]) -> None:
        """Merge ``values`` into the stored snapshot, replacing a corrupt file."""
        try:
            current = self._read_all()
        except ParseError:
            current = {}
        current.update(values)
        write_json_atomic(self.path, current)

    def read(self, keys: tuple[str, ...]) -> dict[str, object]:
        """Return the stored values for ``keys``; missing keys are omitted."""
        current = self._read_all()
        return {key: current[key] for key in keys if key in current}

    def _read_all(self) -> dict[str, object]:
        payload = read_json(self.path)
        if not isinstance(payload, dict):
            return {}
        return payload
