"""Debounced publishing of today's totals to the widget store."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Protocol

from food_ledger.domain.widget import (
    FLOAT_KEYS,
    KEY_FOOD_COUNT,
    KEY_LAST_UPDATE_DATE,
    WidgetSnapshot,
)

_logger = logging.getLogger(__name__)

_FLOAT_TOLERANCE = 0.01


class WidgetStore(Protocol):
    """Cross-process key/value store read by the widget."""

    def write(self, values: dict[str, object]) -> None:
        """Write all values. Writes are idempotent."""

    def read(self, keys: tuple[str, ...]) -> dict[str, object]:
        """Read the stored values for the given keys."""


@dataclass
class WidgetPublisher:
    """Coalesces snapshot updates and writes them with verify-then-retry."""

    store: WidgetStore
    debounce_seconds: float = 0.2
    _latest: WidgetSnapshot | None = field(default=None, init=False, repr=False)
    _pending: asyncio.Task[bool] | None = field(default=None, init=False, repr=False)

    def request(self, snapshot: WidgetSnapshot) -> None:
        """Schedule a publish, replacing any publish still waiting to run.

        Without a running event loop there is nothing to coalesce with, so the
        snapshot is published immediately.
        """
        self._latest = snapshot
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._latest = None
            self.publish(snapshot)
            return
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = loop.create_task(self._publish_later())

    async def flush(self) -> bool:
        """Publish the latest requested snapshot now, if any."""
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None
        snapshot, self._latest = self._latest, None
        if snapshot is None:
            return True
        return self.publish(snapshot)

    def publish(self, snapshot: WidgetSnapshot) -> bool:
        """Write a snapshot, read it back and retry once on mismatch."""
        values = snapshot.to_values()
        for attempt in range(2):
            try:
                self.store.write(values)
                stored = self.store.read(tuple(values))
            except Exception:
                _logger.exception("Widget store write failed (attempt %s)", attempt + 1)
                continue
            mismatches = _mismatched_keys(values, stored)
            if not mismatches:
                _logger.info(
                    "Synced widget: %.0f kcal, %s items",
                    snapshot.calories,
                    snapshot.food_count,
                )
                return True
            _logger.warning(
                "Widget verification failed for %s (attempt %s)",
                ", ".join(mismatches),
                attempt + 1,
            )
        return False

    async def _publish_later(self) -> bool:
        await asyncio.sleep(self.debounce_seconds)
        snapshot, self._latest = self._latest, None
        if snapshot is None:
            return True
        return self.publish(snapshot)


def _mismatched_keys(
    expected: dict[str, object], stored: dict[str, object]
) -> list[str]:
    mismatches: list[str] = []
    for key in FLOAT_KEYS:
        try:
            actual = float(stored.get(key))  # type: ignore[arg-type]
        except (TypeError, ValueError):
            mismatches.append(key)
            continue
        if abs(actual - float(expected[key])) >= _FLOAT_TOLERANCE:  # type: ignore[arg-type]
            mismatches.append(key)
    if stored.get(KEY_FOOD_COUNT) != expected[KEY_FOOD_COUNT]:
        mismatches.append(KEY_FOOD_COUNT)
    if stored.get(KEY_LAST_UPDATE_DATE) != expected[KEY_LAST_UPDATE_DATE]:
        mismatches.append(KEY_LAST_UPDATE_DATE)
    return mismatches
