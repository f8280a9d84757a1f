"""FastAPI application factory."""

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import UUID

from fastapi import FastAPI, HTTPException, Request, Response, status

from food_ledger.api.schemas import (
    CaptureOut,
    EntryCreate,
    EntryUpdate,
    EstimateRequest,
    LogSavedFood,
    RecordOut,
    SavedFoodCreate,
    SavedFoodOut,
    SavedFoodUpdate,
    TotalsOut,
    TrendsOut,
)
from food_ledger.app_logging import configure_logging
from food_ledger.containers import AppContainer
from food_ledger.domain.capture import CaptureOutcome
from food_ledger.domain.library import SavedFood
from food_ledger.domain.narrative import PatternSummary
from food_ledger.domain.records import MealType
from food_ledger.domain.trends import Timeframe
from food_ledger.errors import (
    InferenceTimeout,
    InferenceTransportError,
    RetentionNoop,
)
from food_ledger.services.ledger import TOTALS_SCOPES
from food_ledger.services.statistics import extract_statistics
from food_ledger.services.trends import summarize_period


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        state_container: AppContainer = app.state.container
        state_container.ledger.purge_expired()
        watcher = asyncio.create_task(
            state_container.ledger.watch_day_rollover(
                state_container.settings.rollover_check_interval_seconds
            )
        )
        yield
        watcher.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await watcher
        await state_container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.post("/captures")
    async def create_capture(
        request: Request, meal_type: MealType | None = None
    ) -> CaptureOut:
        """Analyze a raw image body and log every detected food."""
        state_container: AppContainer = request.app.state.container
        image_bytes = await request.body()
        if not image_bytes:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="Empty image body"
            )
        result = await state_container.capture_pipeline.capture(image_bytes, meal_type)
        body = CaptureOut.from_result(result)
        if result.outcome is CaptureOutcome.REJECTED:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT, detail=result.message
            )
        if result.outcome is CaptureOutcome.FAILED:
            raise HTTPException(
                status_code=_failure_status(result.error),
                detail=body.model_dump(mode="json"),
            )
        return body

    @app.get("/capture/state")
    async def capture_state(request: Request) -> dict[str, str | None]:
        """Return the state of the capture pipeline."""
        pipeline = request.app.state.container.capture_pipeline
        placeholder_id = pipeline.placeholder_id
        return {
            "state": pipeline.state.value,
            "placeholder_id": str(placeholder_id) if placeholder_id else None,
        }

    @app.post("/entries", status_code=status.HTTP_201_CREATED)
    async def create_entry(body: EntryCreate, request: Request) -> RecordOut:
        """Log an explicitly entered record."""
        state_container: AppContainer = request.app.state.container
        record = state_container.capture_pipeline.log_manual(
            **body.model_dump(exclude_none=True)
        )
        if record is None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Only records for the current day can be added",
            )
        return RecordOut.from_record(record)

    @app.post("/entries/estimate", status_code=status.HTTP_201_CREATED)
    async def estimate_entry(body: EstimateRequest, request: Request) -> RecordOut:
        """Estimate macros for a food name and log it."""
        state_container: AppContainer = request.app.state.container
        try:
            record = await state_container.capture_pipeline.log_by_name(
                body.name, body.meal_type
            )
        except InferenceTimeout as exc:
            raise HTTPException(
                status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail=str(exc)
            ) from exc
        except InferenceTransportError as exc:
            logger.exception("Estimate request failed")
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)
            ) from exc
        if record is None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Only records for the current day can be added",
            )
        return RecordOut.from_record(record)

    @app.get("/entries/today")
    async def today_entries(request: Request) -> list[RecordOut]:
        """Return today's records, most recent first."""
        ledger = request.app.state.container.ledger
        return [
            RecordOut.from_record(record, pending=ledger.is_transient(record.id))
            for record in ledger.today()
        ]

    @app.patch("/entries/{entry_id}")
    async def update_entry(
        entry_id: UUID, body: EntryUpdate, request: Request
    ) -> RecordOut:
        """Edit a record, keeping its id."""
        ledger = request.app.state.container.ledger
        try:
            record = ledger.update(entry_id, **body.model_dump(exclude_unset=True))
        except ValueError as exc:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)
            ) from exc
        if record is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
        return RecordOut.from_record(record)

    @app.delete("/entries/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_entry(entry_id: UUID, request: Request) -> Response:
        """Delete a record and its image."""
        ledger = request.app.state.container.ledger
        if not ledger.remove(entry_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.get("/totals")
    async def totals(request: Request, scope: str = "today") -> TotalsOut:
        """Return summed calories and macros for today or all history."""
        if scope not in TOTALS_SCOPES:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"scope must be one of {', '.join(TOTALS_SCOPES)}",
            )
        ledger = request.app.state.container.ledger
        return TotalsOut.from_totals(scope, ledger.totals(scope))

    @app.get("/stats/today")
    async def stats_today(request: Request) -> dict[str, object]:
        """Return today's statistics with the narrative key names."""
        ledger = request.app.state.container.ledger
        return extract_statistics(ledger.today(include_transient=False)).to_payload()

    @app.post("/summary/today")
    async def summary_today(request: Request) -> PatternSummary:
        """Return a narrative summary of today's eating pattern."""
        state_container: AppContainer = request.app.state.container
        records = state_container.ledger.today(include_transient=False)
        return await state_container.narrative_service.summarize(
            records, extract_statistics(records)
        )

    @app.get("/saved-foods")
    async def list_saved_foods(
        request: Request, query: str | None = None
    ) -> list[SavedFoodOut]:
        """Return saved foods, optionally filtered by name or ingredient."""
        library = request.app.state.container.library_service
        return [SavedFoodOut.from_food(food) for food in library.list_foods(query)]

    @app.post("/saved-foods", status_code=status.HTTP_201_CREATED)
    async def create_saved_food(
        body: SavedFoodCreate, request: Request
    ) -> SavedFoodOut:
        """Save a custom food, replacing one with the same name."""
        library = request.app.state.container.library_service
        food = library.save_food(
            SavedFood(is_custom=True, **body.model_dump(exclude_none=True))
        )
        return SavedFoodOut.from_food(food)

    @app.post(
        "/saved-foods/from-entry/{entry_id}", status_code=status.HTTP_201_CREATED
    )
    async def save_entry(entry_id: UUID, request: Request) -> SavedFoodOut:
        """Save a logged record, with its image, to the library."""
        library = request.app.state.container.library_service
        food = library.save_record(entry_id)
        if food is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
        return SavedFoodOut.from_food(food)

    @app.patch("/saved-foods/{food_id}")
    async def update_saved_food(
        food_id: UUID, body: SavedFoodUpdate, request: Request
    ) -> SavedFoodOut:
        """Edit a saved food, keeping its id and image."""
        library = request.app.state.container.library_service
        try:
            food = library.update_food(food_id, **body.model_dump(exclude_unset=True))
        except ValueError as exc:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)
            ) from exc
        if food is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
        return SavedFoodOut.from_food(food)

    @app.delete("/saved-foods/{food_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_saved_food(food_id: UUID, request: Request) -> Response:
        """Delete a saved food and its image."""
        library = request.app.state.container.library_service
        if not library.delete_food(food_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.post("/saved-foods/{food_id}/log", status_code=status.HTTP_201_CREATED)
    async def log_saved_food(
        food_id: UUID, request: Request, body: LogSavedFood | None = None
    ) -> RecordOut:
        """Log a saved food as a new record for now."""
        library = request.app.state.container.library_service
        record = library.log_food(food_id, body.meal_type if body else None)
        if record is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
        return RecordOut.from_record(record)

    @app.get("/trends")
    async def trends(
        request: Request, timeframe: Timeframe = Timeframe.WEEK
    ) -> TrendsOut:
        """Return averages and habits over the trailing week, month or year."""
        state_container: AppContainer = request.app.state.container
        summary = summarize_period(
            state_container.ledger.all_records(),
            state_container.clock.now(),
            timeframe,
        )
        return TrendsOut.from_summary(summary)

    return app


def _failure_status(error: Exception | None) -> int:
    if isinstance(error, InferenceTimeout):
        return status.HTTP_504_GATEWAY_TIMEOUT
    if isinstance(error, InferenceTransportError):
        return status.HTTP_502_BAD_GATEWAY
    if isinstance(error, RetentionNoop):
        return status.HTTP_409_CONFLICT
    return status.HTTP_500_INTERNAL_SERVER_ERROR
