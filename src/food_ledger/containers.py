"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from food_ledger.adapters.file_image_store import FileImageStore
from food_ledger.adapters.json_ledger_repository import JsonLedgerRepository
from food_ledger.adapters.json_library_repository import JsonSavedFoodRepository
from food_ledger.adapters.json_widget_store import JsonWidgetStore
from food_ledger.adapters.openai_client import OpenAIClient
from food_ledger.adapters.supabase_ledger_repository import SupabaseLedgerRepository
from food_ledger.adapters.supabase_library_repository import (
    SupabaseSavedFoodRepository,
)
from food_ledger.adapters.supabase_widget_store import SupabaseWidgetStore
from food_ledger.config import Settings, resolve_storage_backend
from food_ledger.services.capture import CapturePipeline
from food_ledger.services.clock import Clock, SystemClock
from food_ledger.services.inference import InferenceService
from food_ledger.services.ledger import DailyLedger, ImageStore, LedgerRepository
from food_ledger.services.library import LibraryService, SavedFoodRepository
from food_ledger.services.narrative import NarrativeService
from food_ledger.services.widget import WidgetPublisher, WidgetStore


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    clock: Clock
    ledger: DailyLedger
    widget_publisher: WidgetPublisher
    inference_service: InferenceService
    capture_pipeline: CapturePipeline
    narrative_service: NarrativeService
    library_service: LibraryService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    clock = SystemClock(resolved_settings.timezone)
    repository, widget_store, saved_foods = _build_storage(resolved_settings)
    image_store: ImageStore = FileImageStore(resolved_settings.data_dir / "images")

    widget_publisher = WidgetPublisher(
        store=widget_store,
        debounce_seconds=resolved_settings.widget_debounce_seconds,
    )
    ledger = DailyLedger(
        repository=repository,
        clock=clock,
        image_store=image_store,
        publisher=widget_publisher,
        goals=resolved_settings.goals,
        retention_days=resolved_settings.retention_days,
    )
    openai_client = OpenAIClient.create(
        api_key=resolved_settings.openai_api_key,
        model=resolved_settings.openai_model,
        timeout_seconds=resolved_settings.openai_timeout_seconds,
        max_retries=resolved_settings.openai_max_retries,
    )
    inference_service = InferenceService(client=openai_client)
    capture_pipeline = CapturePipeline(
        ledger=ledger,
        inference=inference_service,
        clock=clock,
        image_store=image_store,
        timeout_seconds=resolved_settings.inference_timeout_seconds,
    )
    narrative_service = NarrativeService(client=openai_client)
    library_service = LibraryService(
        repository=saved_foods,
        ledger=ledger,
        clock=clock,
        image_store=FileImageStore(resolved_settings.data_dir / "saved_images"),
        record_images=image_store,
    )

    async def close_resources() -> None:
        await widget_publisher.flush()
        await openai_client.close()

    return AppContainer(
        settings=resolved_settings,
        clock=clock,
        ledger=ledger,
        widget_publisher=widget_publisher,
        inference_service=inference_service,
        capture_pipeline=capture_pipeline,
        narrative_service=narrative_service,
        library_service=library_service,
        close_resources=close_resources,
    )


def _build_storage(
    settings: Settings,
) -> tuple[LedgerRepository, WidgetStore, SavedFoodRepository]:
    """Create the repositories and widget store for the configured backend."""
    if resolve_storage_backend(settings) == "supabase":
        supabase_client = create_client(
            settings.supabase_url, settings.supabase_service_key
        )
        return (
            SupabaseLedgerRepository(supabase_client, settings.ledger_owner),
            SupabaseWidgetStore(supabase_client, settings.ledger_owner),
            SupabaseSavedFoodRepository(supabase_client, settings.ledger_owner),
        )
    return (
        JsonLedgerRepository(settings.data_dir / "ledger.json"),
        JsonWidgetStore(settings.data_dir / "widget.json"),
        JsonSavedFoodRepository(settings.data_dir / "saved_foods.json"),
    )
