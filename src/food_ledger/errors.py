"""Error taxonomy for the logging pipeline."""


class FoodLedgerError(Exception):
    """Base class for pipeline errors."""


class InferenceTimeout(FoodLedgerError):
    """Inference did not answer within the capture timeout."""

    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(
            f"Analysis timed out after {timeout_seconds:g} seconds. "
            "Please check your internet connection and try again."
        )
        self.timeout_seconds = timeout_seconds


class InferenceTransportError(FoodLedgerError):
    """Inference request failed before a result was produced."""


class InferenceEmptyResult(FoodLedgerError):
    """Inference succeeded but returned no usable food items."""

    def __init__(
        self, description: str = "", suggestions: list[str] | None = None
    ) -> None:
        super().__init__("Food not detected")
        self.description = description
        self.suggestions = suggestions or []


class ParseError(FoodLedgerError):
    """Collaborator output could not be parsed into the expected shape."""


class ValidationError(FoodLedgerError):
    """A record field was non-numeric or negative and has been clamped."""


class RetentionNoop(FoodLedgerError):
    """A record outside the current local day was not appended."""


class NarrativeUnavailable(FoodLedgerError):
    """The narrative collaborator failed to produce a summary."""
