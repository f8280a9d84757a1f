"""Models for narrative summaries."""

from pydantic import BaseModel, Field

DEFAULT_TITLE = "Today's Eating Pattern"


class PatternSummary(BaseModel):
    """Narrative summary of a day's eating pattern."""

    summary: str = DEFAULT_TITLE
    bullets: list[str] = Field(default_factory=list)
    overall: str = ""
