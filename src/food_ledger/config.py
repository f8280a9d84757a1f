"""Application configuration."""

import os
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from food_ledger.domain.widget import NutritionGoals

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")

STORAGE_BACKENDS = ("file", "supabase")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    openai_api_key: str
    openai_model: str = "gpt-4o"
    openai_timeout_seconds: float = 60.0
    openai_max_retries: int = 2
    storage_backend: str = "file"
    data_dir: Path = Path("data")
    supabase_url: str | None = None
    supabase_service_key: str | None = None
    ledger_owner: str = "default"
    timezone: str | None = None
    inference_timeout_seconds: float = 30.0
    retention_days: int = 365
    rollover_check_interval_seconds: float = 60.0
    widget_debounce_seconds: float = 0.2
    log_level: str = "INFO"
    goal_calories: float = 2000
    goal_protein: float = 150
    goal_carbs: float = 250
    goal_fat: float = 65
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

    @property
    def goals(self) -> NutritionGoals:
        """Daily goals published with the widget snapshot."""
        return NutritionGoals(
            calories=self.goal_calories,
            protein=self.goal_protein,
            carbs=self.goal_carbs,
            fat=self.goal_fat,
        )


def resolve_storage_backend(settings: Settings) -> str:
    """Return the configured storage backend, validating its name and inputs."""
    backend = settings.storage_backend.strip().lower()
    if backend not in STORAGE_BACKENDS:
        raise ValueError(f"Unknown storage backend: {settings.storage_backend}")
    if backend == "supabase" and not (
        settings.supabase_url and settings.supabase_service_key
    ):
        raise ValueError("Supabase storage requires SUPABASE_URL and SUPABASE_SERVICE_KEY")
    return backend
