"""Daily ledger of nutrition records."""

import asyncio
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta, tzinfo
from typing import Protocol
from uuid import UUID

from food_ledger.domain.records import (
    NUTRIENT_FIELDS,
    MealType,
    NutritionRecord,
    non_negative,
)
from food_ledger.domain.stats import MacroTotals, sum_macros
from food_ledger.domain.widget import NutritionGoals, WidgetSnapshot
from food_ledger.errors import ParseError, RetentionNoop, ValidationError
from food_ledger.services.clock import Clock
from food_ledger.services.widget import WidgetPublisher

_logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS = 365

TOTALS_SCOPES = ("today", "all")

_OPTIONAL_TEXT_FIELDS = ("location", "portion_size", "macro_character")


class LedgerRepository(Protocol):
    """Persistence interface for the serialized ledger."""

    def load(self) -> list[NutritionRecord]:
        """Return every persisted record. Raises ``ParseError`` when corrupt."""

    def save_all(self, records: list[NutritionRecord]) -> None:
        """Replace the persisted ledger with ``records``."""


class ImageStore(Protocol):
    """Content store for image payloads, addressed by record id."""

    def save(self, record_id: UUID, data: bytes) -> None:
        """Store the image payload for a record."""

    def load(self, record_id: UUID) -> bytes | None:
        """Return the image payload for a record, if any."""

    def delete(self, record_id: UUID) -> None:
        """Delete the image payload for a record, if any."""

    def retain_only(self, record_ids: set[UUID]) -> int:
        """Delete payloads whose record id is not in ``record_ids``."""


@dataclass
class DailyLedger:
    """Single-writer store of every logged record with a derived today view.

    Mutations are synchronous and must run on the owning event loop. Each
    one purges expired records, re-serializes the whole ledger and requests
    a widget publish with today's totals.
    """

    repository: LedgerRepository
    clock: Clock
    image_store: ImageStore | None = None
    publisher: WidgetPublisher | None = None
    goals: NutritionGoals = field(default_factory=NutritionGoals)
    retention_days: int = DEFAULT_RETENTION_DAYS
    _records: list[NutritionRecord] = field(
        default_factory=list, init=False, repr=False
    )
    _transient: set[UUID] = field(default_factory=set, init=False, repr=False)
    _reserved_images: set[UUID] = field(
        default_factory=set, init=False, repr=False
    )
    _subscribers: list[Callable[[date], None]] = field(
        default_factory=list, init=False, repr=False
    )
    _last_observed: date | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        self._records = self._load()
        self._sort()
        self._last_observed = self.clock.now().date()

    def append(self, record: NutritionRecord, transient: bool = False) -> bool:
        """Append a record timestamped today.

        Records from any other local day are dropped without changing the
        ledger. Transient records are visible in ``today`` but are never
        persisted or counted in totals.
        """
        now = self.clock.now()
        if not self._is_today(record, now):
            _log_noop(record, now)
            return False
        self._records.append(record)
        if transient:
            self._transient.add(record.id)
        self._sort()
        self._commit(now)
        return True

    def remove(self, record_id: UUID) -> bool:
        """Remove a record and its image payload."""
        record = self.get(record_id)
        if record is None:
            return False
        self._records.remove(record)
        was_transient = record_id in self._transient
        self._transient.discard(record_id)
        if self.image_store is not None and not was_transient:
            self.image_store.delete(record_id)
        self._commit(self.clock.now())
        return True

    def replace(
        self, remove_id: UUID | None, records: Iterable[NutritionRecord]
    ) -> list[NutritionRecord]:
        """Swap one record for a batch in a single mutation.

        Only records timestamped today are accepted. When nothing is
        accepted the ledger, including ``remove_id``, is left untouched so
        the caller can re-stamp and retry.
        """
        now = self.clock.now()
        batch = list(records)
        accepted: list[NutritionRecord] = []
        for record in batch:
            if self._is_today(record, now):
                accepted.append(record)
            else:
                _log_noop(record, now)
        if batch and not accepted:
            return []

        if remove_id is not None:
            existing = self.get(remove_id)
            if existing is not None:
                self._records.remove(existing)
            self._transient.discard(remove_id)
        self._records.extend(accepted)
        self._sort()
        self._commit(now)
        return accepted

    def update(self, record_id: UUID, **fields: object) -> NutritionRecord | None:
        """Replace a record with an edited copy that keeps the same id.

        Nutrient values that are non-numeric or negative are clamped to zero.
        Raises ``ValueError`` for unknown fields or an unknown meal type.
        """
        current = self.get(record_id)
        if current is None:
            return None
        changes = _validated_changes(current, fields)
        updated = replace(current, **changes)
        index = self._records.index(current)
        self._records[index] = updated
        self._sort()
        self._commit(self.clock.now())
        return updated

    def get(self, record_id: UUID) -> NutritionRecord | None:
        """Return the record with ``record_id``, if present."""
        for record in self._records:
            if record.id == record_id:
                return record
        return None

    def is_transient(self, record_id: UUID) -> bool:
        """Return True when the record is held in memory only."""
        return record_id in self._transient

    def today(self, include_transient: bool = True) -> list[NutritionRecord]:
        """Return today's records, most recent first."""
        now = self.clock.now()
        return [
            record
            for record in self._records
            if self._is_today(record, now)
            and (include_transient or record.id not in self._transient)
        ]

    def all_records(self) -> list[NutritionRecord]:
        """Return every persisted record, most recent first."""
        return [
            record for record in self._records if record.id not in self._transient
        ]

    def records_for_meal_type(self, meal_type: MealType) -> list[NutritionRecord]:
        """Return today's records logged under ``meal_type``."""
        return [
            record
            for record in self.today(include_transient=False)
            if record.meal_type is meal_type
        ]

    def totals(self, scope: str = "today") -> MacroTotals:
        """Return exact sums for today's records or for the whole ledger."""
        if scope == "today":
            records = self.today(include_transient=False)
        elif scope == "all":
            records = self.all_records()
        else:
            raise ValueError(f"Unknown totals scope: {scope}")
        return sum_macros(records)

    def widget_snapshot(self) -> WidgetSnapshot:
        """Build the widget snapshot for the current local day."""
        totals = self.totals("today")
        return WidgetSnapshot(
            day=self.clock.now().date(),
            calories=totals.calories,
            protein=totals.protein,
            carbs=totals.carbs,
            fat=totals.fat,
            food_count=totals.count,
            goals=self.goals,
        )

    def reserve_images(self, record_ids: Iterable[UUID]) -> None:
        """Keep image payloads for records that are not committed yet."""
        self._reserved_images.update(record_ids)

    def release_images(self, record_ids: Iterable[UUID]) -> None:
        """Drop reservations taken with ``reserve_images``."""
        self._reserved_images.difference_update(record_ids)

    def purge_expired(self) -> list[NutritionRecord]:
        """Drop records older than the retention window and orphaned images."""
        now = self.clock.now()
        removed = self._purge(now)
        if removed:
            self._persist()
        return removed

    def subscribe(self, callback: Callable[[date], None]) -> Callable[[], None]:
        """Register a day-change callback and return a function removing it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def check_day_rollover(self) -> bool:
        """Detect a local date change and notify subscribers.

        History is kept; only expired records are purged and the ledger is
        re-serialized whenever a purge removed something. Returns True when
        the day changed.
        """
        now = self.clock.now()
        removed = self._purge(now, force_image_cleanup=True)
        current = now.date()
        if current == self._last_observed:
            if removed:
                self._persist()
            return False
        previous, self._last_observed = self._last_observed, current
        _logger.info("Local day changed from %s to %s", previous, current)
        self._persist()
        for callback in list(self._subscribers):
            callback(current)
        self._request_publish()
        return True

    async def watch_day_rollover(self, interval_seconds: float = 60.0) -> None:
        """Run ``check_day_rollover`` periodically until cancelled."""
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                self.check_day_rollover()
            except Exception:
                _logger.exception("Day rollover check failed")

    def _commit(self, now: datetime) -> None:
        self._purge(now)
        self._persist()
        self._request_publish()

    def _purge(
        self, now: datetime, force_image_cleanup: bool = False
    ) -> list[NutritionRecord]:
        cutoff = now - timedelta(days=self.retention_days)
        tz = now.tzinfo
        kept: list[NutritionRecord] = []
        removed: list[NutritionRecord] = []
        for record in self._records:
            if _as_local(record.timestamp, tz) < cutoff:
                removed.append(record)
            else:
                kept.append(record)
        if removed:
            self._records = kept
            _logger.info(
                "Purged %s records older than %s days",
                len(removed),
                self.retention_days,
            )
        if self.image_store is not None and (removed or force_image_cleanup):
            keep = {record.id for record in self._records} | self._reserved_images
            deleted = self.image_store.retain_only(keep)
            if deleted:
                _logger.info("Deleted %s orphaned image payloads", deleted)
        return removed

    def _persist(self) -> None:
        self.repository.save_all(self.all_records())

    def _request_publish(self) -> None:
        if self.publisher is not None:
            self.publisher.request(self.widget_snapshot())

    def _load(self) -> list[NutritionRecord]:
        try:
            records = self.repository.load()
        except ParseError:
            _logger.exception("Persisted ledger is corrupt; starting empty")
            return []
        _logger.info("Loaded %s records", len(records))
        return records

    def _is_today(self, record: NutritionRecord, now: datetime) -> bool:
        return _as_local(record.timestamp, now.tzinfo).date() == now.date()

    def _sort(self) -> None:
        tz = self.clock.now().tzinfo
        self._records.sort(
            key=lambda record: _as_local(record.timestamp, tz), reverse=True
        )


def _as_local(moment: datetime, tz: tzinfo | None) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=tz)
    return moment.astimezone(tz)


def _log_noop(record: NutritionRecord, now: datetime) -> None:
    error = RetentionNoop(
        f"Dropped {record.name!r} timestamped {record.timestamp.isoformat()}; "
        f"today is {now.date().isoformat()}"
    )
    _logger.info("%s", error)


def _validated_changes(
    current: NutritionRecord, fields: dict[str, object]
) -> dict[str, object]:
    changes: dict[str, object] = {}
    for key, value in fields.items():
        if key in NUTRIENT_FIELDS:
            clamped = non_negative(value)
            if not _is_clean_number(value):
                _logger.warning(
                    "%s",
                    ValidationError(
                        f"Coerced {key}={value!r} to {clamped} for record {current.id}"
                    ),
                )
            changes[key] = clamped
        elif key == "name":
            if value is None or not str(value).strip():
                raise ValueError("name must not be empty")
            changes[key] = str(value).strip()
        elif key == "meal_type":
            meal_type = MealType.parse(value)
            if meal_type is None:
                raise ValueError(f"Unknown meal type: {value!r}")
            changes[key] = meal_type
        elif key == "timestamp":
            if not isinstance(value, datetime):
                raise ValueError("timestamp must be a datetime")
            changes[key] = value
        elif key == "ingredients":
            if value is not None and not isinstance(value, list | tuple):
                raise ValueError("ingredients must be a list")
            changes[key] = None if value is None else tuple(str(v) for v in value)
        elif key in _OPTIONAL_TEXT_FIELDS:
            changes[key] = None if value is None else str(value)
        else:
            raise ValueError(f"Field cannot be edited: {key}")
    return changes


def _is_clean_number(value: object) -> bool:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return False
    return value >= 0
