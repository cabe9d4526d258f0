"""Exceptions raised by the cross-validation harness."""

from typing import Any, Optional, Sequence


class HarnessError(Exception):
    """Base exception for harness operations."""
    pass


class TrainingError(HarnessError):
    """A training call failed.

    ``models`` holds the handles that were produced by the calls that did
    succeed, so they can still be deleted.
    """

    def __init__(self, message: str, models: Optional[Sequence[Any]] = None):
        super().__init__(message)
        self.models = list(models or [])


class PollingTimeoutError(HarnessError):
    """A model did not report completion within the polling timeout."""

    def __init__(self, message: str, elapsed: float = 0.0, timeout: float = 0.0):
        super().__init__(message)
        self.elapsed = elapsed
        self.timeout = timeout


class PredictionError(HarnessError):
    """A prediction call failed."""

    def __init__(self, message: str, model_id: Optional[str] = None):
        super().__init__(message)
        self.model_id = model_id


class ModelNotFoundError(HarnessError):
    """Model handle is unknown to the service."""
    pass


class TrainOnlyRun(Exception):
    """Signal used to stop a train-only run before prediction."""
    pass
