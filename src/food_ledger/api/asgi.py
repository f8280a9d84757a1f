"""ASGI entrypoint for the food ledger API."""

from food_ledger.api.app import create_app
from food_ledger.containers import build_container

app = create_app(build_container())
