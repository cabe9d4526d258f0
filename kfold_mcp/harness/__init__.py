"""K-fold cross-validation harness."""

from .capabilities import CallableModelService, ModelService
from .config import DEFAULT_CONFIG, RunConfig, resolve_config
from .errors import (
    HarnessError,
    ModelNotFoundError,
    PollingTimeoutError,
    PredictionError,
    TrainingError,
)
from .models import Example, Fold, ModelHandle, Prediction, RunResult, RunStatus
from .observer import LoggingObserver, RunObserver, RunState
from .partition import partition
from .polling import poll_until
from .predictor import BatchPredictor
from .runner import CrossValidation, run_experiment

__all__ = [
    "BatchPredictor",
    "CallableModelService",
    "CrossValidation",
    "DEFAULT_CONFIG",
    "Example",
    "Fold",
    "HarnessError",
    "LoggingObserver",
    "ModelHandle",
    "ModelNotFoundError",
    "ModelService",
    "PollingTimeoutError",
    "Prediction",
    "PredictionError",
    "RunConfig",
    "RunObserver",
    "RunResult",
    "RunState",
    "RunStatus",
    "TrainingError",
    "partition",
    "poll_until",
    "resolve_config",
    "run_experiment",
]
