"""Cross-validation run orchestration."""

import asyncio
import logging
from typing import Any, Awaitable, Iterable, Optional, Sequence

from ..analysis.reports import generate_reports
from .capabilities import ModelService, ReportGenerator
from .config import DEFAULT_CONFIG, RunConfig, resolve_config
from .errors import TrainingError, TrainOnlyRun
from .models import Example, Fold, Prediction, RunResult, RunStatus, model_id
from .observer import LoggingObserver, RunObserver, RunState
from .partition import partition
from .polling import poll_until
from .predictor import BatchPredictor

logger = logging.getLogger(__name__)


async def _settle(aws: Iterable[Awaitable[Any]]) -> list[Any]:
    """Wait for every awaitable, returning results and exceptions in order."""
    return await asyncio.gather(*aws, return_exceptions=True)


def _raise_first(results: Sequence[Any]) -> None:
    for result in results:
        if isinstance(result, BaseException):
            raise result


class CrossValidation:
    """K-fold cross-validation of a model service."""

    def __init__(
        self,
        service: ModelService,
        config: Optional[RunConfig] = None,
        report_generator: Optional[ReportGenerator] = None,
        observer: Optional[RunObserver] = None,
    ):
        self.service = service
        self.config = config or DEFAULT_CONFIG
        self.report_generator = report_generator or generate_reports

        if observer is None:
            observer = LoggingObserver() if self.config.verbose else RunObserver()
        self.observer = observer

        self.predictor = BatchPredictor(
            service,
            batch_size=self.config.batch_size,
            throttle=self.config.throttle,
            observer=self.observer,
        )

    async def run(self) -> RunResult:
        """Run the experiment.

        Failures before reporting are caught here and give a failed result.
        Models are deleted afterwards unless the run is train-only.
        """
        config = self.config
        self.observer.run_started(config)

        folds: tuple[Fold, ...] = ()
        models: tuple[Any, ...] = ()
        result = RunResult(status=RunStatus.FAILED)
        error: Optional[str] = None

        try:
            resume = config.resume_state
            if resume is None:
                folds = await self.export_and_partition()
                try:
                    models = await self.train_folds(folds)
                except TrainingError as exc:
                    models = tuple(exc.models)
                    raise
            else:
                self.observer.state_changed(RunState.RESUME)
                folds, models = resume

            self.observer.state_changed(RunState.POLL)
            await self.wait_until_all_trained(models)

            if config.train_only:
                raise TrainOnlyRun()

            self.observer.state_changed(RunState.PREDICT)
            predictions = await self.predict_folds(folds, models)

            self.observer.state_changed(RunState.REPORT)
            reports = self.report_generator(predictions)
            self.observer.reports_generated(len(predictions))
            result = RunResult(
                status=RunStatus.COMPLETED,
                predictions=tuple(predictions),
                reports=reports,
            )
        except TrainOnlyRun:
            pass
        except Exception as exc:
            logger.debug("Cross-validation run failed", exc_info=True)
            error = str(exc) or type(exc).__name__
            self.observer.state_changed(RunState.FAILED)
            self.observer.run_failed(exc)
            result = RunResult(status=RunStatus.FAILED, error=error)
        finally:
            # Also runs when cancellation escapes the run.
            if not config.train_only:
                await self.cleanup(models)

        if config.train_only:
            result = RunResult(
                status=RunStatus.FAILED if error else RunStatus.TRAIN_ONLY,
                folds=tuple(folds),
                train_models=tuple(models),
                error=error,
                train_only=True,
            )

        self.observer.state_changed(RunState.DONE)
        self.observer.run_finished(result)
        return result

    async def export_and_partition(self) -> tuple[Fold, ...]:
        """Export the dataset and split it into folds."""
        self.observer.state_changed(RunState.EXPORT)
        data = list(await self.service.export_data())
        self.observer.data_exported(len(data))

        self.observer.state_changed(RunState.PARTITION)
        folds = partition(data, self.config.seed, self.config.num_folds)
        self.observer.partitioned(folds)
        return tuple(folds)

    async def train_folds(self, folds: Sequence[Fold]) -> tuple[Any, ...]:
        """Train one model per fold concurrently, in fold order.

        Raises TrainingError if any call failed, after all calls settled.
        """
        self.observer.state_changed(RunState.TRAIN)
        results = await _settle(self.service.train_model(fold.train) for fold in folds)

        errors = [r for r in results if isinstance(r, BaseException)]
        if errors:
            produced = [r for r in results if not isinstance(r, BaseException)]
            raise TrainingError(
                f"{len(errors)} of {len(results)} training calls failed: {errors[0]}",
                models=produced,
            ) from errors[0]

        return tuple(results)

    async def wait_until_trained(self, model: Any) -> bool:
        """Poll the service until the model has finished training."""
        self.observer.model_training(model)

        async def check() -> bool:
            done = await self.service.check_model_status(model)
            self.observer.model_status(model, done)
            return done

        return await poll_until(
            check,
            self.config.polling_interval,
            self.config.polling_timeout,
            description=f"model {model_id(model)}",
        )

    async def wait_until_all_trained(self, models: Sequence[Any]) -> None:
        """Poll every model concurrently; raise the first failure."""
        results = await _settle(self.wait_until_trained(m) for m in models)
        _raise_first(results)

    async def run_tests(self, model: Any, tests: Sequence[Example]) -> list[Prediction]:
        """Predict a fold's test set in throttled batches."""
        return await self.predictor.run_tests(model, tests)

    async def predict_folds(
        self,
        folds: Sequence[Fold],
        models: Sequence[Any],
    ) -> list[Prediction]:
        """Predict every fold concurrently and return sorted predictions."""
        results = await _settle(
            self.run_tests(model, fold.test) for model, fold in zip(models, folds)
        )
        _raise_first(results)

        predictions = [p for fold_predictions in results for p in fold_predictions]
        return sorted(predictions, key=lambda p: p.serialize())

    async def cleanup(self, models: Sequence[Any]) -> None:
        """Delete models concurrently. Failures are reported, not raised."""
        self.observer.state_changed(RunState.CLEANUP)
        results = await _settle(self.service.delete_model(m) for m in models)
        for model, result in zip(models, results):
            if isinstance(result, BaseException):
                logger.debug("Failed to delete model %s", model_id(model), exc_info=result)
                self.observer.cleanup_failed(model, result)


async def run_experiment(
    service: ModelService,
    report_generator: Optional[ReportGenerator] = None,
    observer: Optional[RunObserver] = None,
    **overrides: Any,
) -> RunResult:
    """Resolve overrides over the defaults and run one experiment."""
    config = resolve_config(overrides)
    experiment = CrossValidation(
        service,
        config,
        report_generator=report_generator,
        observer=observer,
    )
    return await experiment.run()
