"""Observers notified at each step of a cross-validation run."""

import logging
from enum import Enum
from typing import Any, Optional, Sequence

from .models import model_id

logger = logging.getLogger(__name__)


class RunState(str, Enum):
    """Steps of a cross-validation run."""
    EXPORT = "export"
    PARTITION = "partition"
    RESUME = "resume"
    TRAIN = "train"
    POLL = "poll"
    PREDICT = "predict"
    REPORT = "report"
    CLEANUP = "cleanup"
    DONE = "done"
    FAILED = "failed"


class RunObserver:
    """Receives run events. Every hook is a no-op."""

    def run_started(self, config: Any) -> None:
        pass

    def state_changed(self, state: RunState) -> None:
        pass

    def data_exported(self, count: int) -> None:
        pass

    def partitioned(self, folds: Sequence[Any]) -> None:
        pass

    def model_training(self, model: Any) -> None:
        pass

    def model_status(self, model: Any, done: bool) -> None:
        pass

    def batch_started(self, model: Any, start: int, end: int) -> None:
        pass

    def batch_finished(self, model: Any, start: int, end: int) -> None:
        pass

    def reports_generated(self, count: int) -> None:
        pass

    def run_failed(self, error: BaseException) -> None:
        pass

    def cleanup_failed(self, model: Any, error: BaseException) -> None:
        pass

    def run_finished(self, result: Any) -> None:
        pass


class LoggingObserver(RunObserver):
    """Traces run events through the logging module."""

    def __init__(self, log: Optional[logging.Logger] = None, level: int = logging.INFO):
        self.log = log or logger
        self.level = level

    def _emit(self, msg: str, *args) -> None:
        self.log.log(self.level, "[K-FOLD] " + msg, *args)

    def run_started(self, config: Any) -> None:
        self._emit(
            "Starting experiment (folds=%s, batch_size=%s, seed=%s, train_only=%s)",
            config.num_folds, config.batch_size, config.seed, config.train_only,
        )

    def state_changed(self, state: RunState) -> None:
        messages = {
            RunState.EXPORT: "Exporting data",
            RunState.PARTITION: "Partitioning data",
            RunState.RESUME: "Temporary models already created",
            RunState.TRAIN: "Training temporary models",
            RunState.POLL: "Waiting for temporary models to train",
            RunState.PREDICT: "All temporary models done training",
            RunState.REPORT: "Generating reports",
            RunState.CLEANUP: "Deleting temporary models",
            RunState.DONE: "All done",
            RunState.FAILED: "Run failed",
        }
        self._emit(messages[state])

    def data_exported(self, count: int) -> None:
        self._emit("Exported %d examples", count)

    def partitioned(self, folds: Sequence[Any]) -> None:
        self._emit(
            "Partitioned into %d folds (test sizes: %s)",
            len(folds), [len(f.test) for f in folds],
        )

    def model_training(self, model: Any) -> None:
        self._emit("[%s] Training", model_id(model))

    def model_status(self, model: Any, done: bool) -> None:
        self._emit("[%s] Ready: %s", model_id(model), done)

    def batch_started(self, model: Any, start: int, end: int) -> None:
        self._emit("[%s] Starting batch %d - %d", model_id(model), start, end)

    def batch_finished(self, model: Any, start: int, end: int) -> None:
        self._emit("[%s] Finished batch %d - %d", model_id(model), start, end)

    def reports_generated(self, count: int) -> None:
        self._emit("Reports generated from %d predictions", count)

    def run_failed(self, error: BaseException) -> None:
        self.log.log(self.level, "[K-FOLD] %s: %s", type(error).__name__, error)

    def cleanup_failed(self, model: Any, error: BaseException) -> None:
        self.log.warning("[K-FOLD] [%s] Could not delete model: %s", model_id(model), error)
