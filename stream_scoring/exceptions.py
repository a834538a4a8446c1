"""Exception hierarchy for the scoring engine."""

from typing import Optional


class ScoringError(Exception):
    """Base class for all scoring errors."""


class ConfigurationError(ScoringError):
    """Raised when a scoring configuration is invalid."""


class ModelLoadError(ScoringError):
    """Raised when a model file cannot be located or deserialized."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class RowPredictionError(ScoringError):
    """The model failed while scoring a single row."""

    def __init__(self, row_number: int, message: Optional[str] = None):
        self.row_number = row_number
        super().__init__(message or f"Unable to make prediction for row #{row_number}")


class BatchPredictionError(ScoringError):
    """The model failed while scoring a buffered batch; no row of the batch is emitted."""

    def __init__(self, first_row: int, last_row: int, message: Optional[str] = None):
        self.first_row = first_row
        self.last_row = last_row
        super().__init__(
            message or f"Problem while getting predictions for batch of rows #{first_row}-#{last_row}"
        )


class IncrementalUpdateError(ScoringError):
    """Updating an incremental model failed. Fatal for the stream."""

    def __init__(self, row_number: int, message: Optional[str] = None):
        self.row_number = row_number
        super().__init__(message or f"Failed to update incremental model with row #{row_number}")
