"""Directory-backed image payload store."""

import logging
from dataclasses import dataclass
from pathlib import Path
from uuid import UUID

from food_ledger.services.ledger import ImageStore

_logger = logging.getLogger(__name__)

_SUFFIX = ".img"


@dataclass
class FileImageStore(ImageStore):
    """Stores one file per record id. Payloads are kept as given."""

    directory: Path

    def save(self, record_id: UUID, data: bytes) -> None:
        """Write the payload for a record."""
        self.directory.mkdir(parents=True, exist_ok=True)
        self._path(record_id).write_bytes(data)

    def load(self, record_id: UUID) -> bytes | None:
        """Return the payload for a record, if stored."""
        try:
            return self._path(record_id).read_bytes()
        except FileNotFoundError:
            return None

    def delete(self, record_id: UUID) -> None:
        """Delete the payload for a record, if stored."""
        self._path(record_id).unlink(missing_ok=True)

    def retain_only(self, record_ids: set[UUID]) -> int:
        """Delete every payload whose record is gone and return the count."""
        if not self.directory.exists():
            return 0
        keep = {str(record_id) for record_id in record_ids}
        deleted = 0
        for path in self.directory.glob(f"*{_SUFFIX}"):
            if path.stem not in keep:
                path.unlink(missing_ok=True)
                deleted += 1
        if deleted:
            _logger.debug("Removed %s orphaned images from %s", deleted, self.directory)
        return deleted

    def _path(self, record_id: UUID) -> Path:
        return self.directory / f"{record_id}{_SUFFIX}"
