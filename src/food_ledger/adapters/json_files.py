"""Helpers for JSON files written with atomic replacement."""

import json
import os
from pathlib import Path

from food_ledger.errors import ParseError


def read_json(path: Path) -> object | None:
    """Return the decoded JSON in ``path``, or ``None`` when it does not exist.

    Raises ``ParseError`` when the file exists but is not valid JSON.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ParseError(f"{path} is not valid JSON: {exc}") from exc


def write_json_atomic(path: Path, payload: object) -> None:
    """Write ``payload`` to a temporary file, then rename it over ``path``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(path.name + ".tmp")
    try:
        with tmp_path.open("w", encoding="utf-8") as handle:
            json.dump(payload, handle, ensure_ascii=False, indent=2)
        os.replace(tmp_path, path)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise
