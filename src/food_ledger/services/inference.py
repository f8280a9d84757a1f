"""Food recognition through an LLM inference client."""

import base64
import logging
from dataclasses import dataclass
from typing import Protocol

from pydantic import ValidationError as PydanticValidationError

from food_ledger.domain.analysis import ImageAnalysis, NameEstimate, unidentified_analysis
from food_ledger.errors import ParseError
from food_ledger.services.json_output import parse_json_object

_logger = logging.getLogger(__name__)

ANALYZE_IMAGE_PROMPT = """\
Analyze this food image and provide nutrition information.

Identify every food item visible, its portion size, cooking method and
nutritional content. For mixed dishes (pasta with vegetables, rice with
protein, stir-fries) include ALL components: base ingredients such as pasta,
rice, noodles or bread even when partially hidden, vegetables, sauces, oils
and proteins. Estimate nutrition for the ENTIRE visible portion; if several
pieces of the same food are visible, count them and include all of them.

For each food item provide:
- name: specific name including quantity and preparation
  (e.g. "pasta with broccoli", "2 scrambled eggs", "chicken fried rice")
- calories, protein, carbs, fat, fiber (grams) for the whole visible portion
- serving_size: description of the serving
- confidence: 0-1
- cooking_method
- ingredients: array of all main ingredients, base ingredients included
- portion_size: "small", "medium" or "large"
- macro_guess: "carb-heavy", "protein-rich", "fat-heavy" or "balanced"

Return ONLY a JSON object with this structure:
{
  "foods": [
    {
      "name": "string",
      "calories": number,
      "protein": number,
      "carbs": number,
      "fat": number,
      "fiber": number,
      "serving_size": "string",
      "confidence": number,
      "cooking_method": "string",
      "ingredients": ["string"],
      "portion_size": "small" | "medium" | "large",
      "macro_guess": "carb-heavy" | "protein-rich" | "fat-heavy" | "balanced"
    }
  ],
  "overall_confidence": number,
  "image_description": "string",
  "suggestions": ["string"]
}

If no food can be identified, return "foods": [], overall_confidence 0.1,
an image_description explaining why, and suggestions for a better photo.
Never return plain text.
"""

ESTIMATE_NAME_PROMPT = """\
Estimate the typical nutritional information for this food item: "{name}"

Base the estimate on a standard serving and typical preparation; for
restaurant items use standard restaurant portions.

Return ONLY a JSON object with this structure:
{{
  "name": "{name}",
  "calories": number,
  "protein": number,
  "carbs": number,
  "fat": number,
  "fiber": number,
  "sugar": number,
  "sodium": number,
  "serving_size": "string describing typical serving",
  "confidence": number
}}

Grams for protein, carbs, fat, fiber and sugar; milligrams for sodium.
"""


class InferenceClient(Protocol):
    """Interface for the remote inference endpoint."""

    async def complete(self, prompt: str, image_data_url: str | None = None) -> str:
        """Return the raw text produced for the prompt and optional image."""


@dataclass
class InferenceService:
    """Service that prepares inference prompts and normalizes the results."""

    client: InferenceClient

    async def analyze_image(self, image_bytes: bytes) -> ImageAnalysis:
        """Detect foods in an image.

        Transport errors from the client propagate. Unparseable output yields
        the single "Unidentified Food" fallback item.
        """
        raw = await self.client.complete(
            ANALYZE_IMAGE_PROMPT, image_data_url=to_data_url(image_bytes)
        )
        return parse_image_analysis(raw)

    async def estimate_from_name(self, name: str) -> NameEstimate:
        """Estimate macros for a food given only its name."""
        raw = await self.client.complete(ESTIMATE_NAME_PROMPT.format(name=name))
        return parse_name_estimate(raw, name)


def parse_image_analysis(raw: str | None) -> ImageAnalysis:
    """Parse inference text into an ``ImageAnalysis``, never raising."""
    try:
        payload = parse_json_object(raw)
        return ImageAnalysis.model_validate(payload)
    except (ParseError, PydanticValidationError):
        _logger.warning("Could not parse image analysis; using fallback item")
        return unidentified_analysis()


def parse_name_estimate(raw: str | None, name: str) -> NameEstimate:
    """Parse inference text into a ``NameEstimate``, never raising."""
    try:
        payload = parse_json_object(raw)
        if not payload.get("name"):
            payload["name"] = name
        return NameEstimate.model_validate(payload)
    except (ParseError, PydanticValidationError):
        _logger.warning("Could not parse macro estimate for %r; using fallback", name)
        return NameEstimate(name=name, confidence=0.1)


def to_data_url(image_bytes: bytes) -> str:
    """Convert bytes to a base64 data URL for image input."""
    mime_type = _detect_mime_type(image_bytes)
    encoded = base64.b64encode(image_bytes).decode("utf-8")
    return f"data:{mime_type};base64,{encoded}"


def _detect_mime_type(image_bytes: bytes) -> str:
    """Infer a basic image MIME type from file signatures."""
    if image_bytes.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if image_bytes.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"
