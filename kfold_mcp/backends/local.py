"""In-process model service backed by scikit-learn estimators."""

import asyncio
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Sequence

import numpy as np

from ..harness.capabilities import ModelService
from ..harness.errors import HarnessError, ModelNotFoundError, TrainingError
from ..harness.models import Example, ModelHandle, model_id, plain_value
from .factory import ModelFactory, ModelType, TaskType, detect_task_type
from .features import FeatureEngineer, records_to_frame


@dataclass
class FittedModel:
    """A trained estimator and the feature pipeline it was trained with."""
    estimator: Any
    engineer: FeatureEngineer
    task_type: TaskType
    train_size: int
    trained_at: datetime
    # Maps encoded class indices back to labels; None for regression.
    label_encoder: Any = None


class LocalModelService(ModelService):
    """Trains one estimator per train set in the default executor.

    ``train_model`` returns as soon as the fit is scheduled; the fit runs in
    the background and ``check_model_status`` reports when it is done.
    """

    def __init__(
        self,
        source: Any = None,
        model_type: ModelType = ModelType.RANDOM_FOREST,
        hyperparameters: Optional[dict[str, Any]] = None,
        random_state: int = 42,
    ):
        self.source = source
        self.model_type = ModelType(model_type)
        self.hyperparameters = hyperparameters or {}
        self.random_state = random_state
        self._jobs: dict[str, asyncio.Future] = {}

    @property
    def model_ids(self) -> list[str]:
        return list(self._jobs)

    async def export_data(self) -> Sequence[Example]:
        if self.source is None:
            raise HarnessError("No data source configured")
        return await self.source.load()

    async def train_model(self, train: Sequence[Example]) -> ModelHandle:
        train = list(train)
        if not train:
            raise TrainingError("Cannot train on an empty train set")

        handle = ModelHandle(
            id=str(uuid.uuid4())[:8],
            payload={"model_type": self.model_type.value, "train_size": len(train)},
        )

        loop = asyncio.get_running_loop()
        self._jobs[handle.id] = loop.run_in_executor(None, self._fit, train)
        return handle

    def _fit(self, train: list[Example]) -> FittedModel:
        """Fit features and estimator (synchronous)."""
        engineer = FeatureEngineer()
        X = engineer.fit_transform(records_to_frame([e.input for e in train]))
        y = np.asarray([e.label for e in train])

        task_type = detect_task_type(y)
        label_encoder = None
        if task_type != TaskType.REGRESSION:
            from sklearn.preprocessing import LabelEncoder
            label_encoder = LabelEncoder()
            y = label_encoder.fit_transform(y)

        estimator = ModelFactory.create_model(
            self.model_type,
            task_type,
            self.hyperparameters,
            random_state=self.random_state,
        )
        estimator.fit(X, y)

        return FittedModel(
            estimator=estimator,
            engineer=engineer,
            task_type=task_type,
            train_size=len(train),
            trained_at=datetime.now(),
            label_encoder=label_encoder,
        )

    def _job(self, model: Any) -> asyncio.Future:
        job = self._jobs.get(model_id(model))
        if job is None:
            raise ModelNotFoundError(f"Unknown model: {model_id(model)}")
        return job

    async def check_model_status(self, model: Any) -> bool:
        job = self._job(model)
        if not job.done():
            return False
        if job.cancelled():
            raise TrainingError(f"Training of model {model_id(model)} was cancelled")
        error = job.exception()
        if error is not None:
            raise TrainingError(f"Training of model {model_id(model)} failed: {error}") from error
        return True

    async def predict(self, model: Any, input: Any) -> dict:
        job = self._job(model)
        if not job.done():
            raise HarnessError(f"Model {model_id(model)} is still training")

        fitted = job.result()
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._predict, fitted, input)

    @staticmethod
    def _predict(fitted: FittedModel, input: Any) -> dict:
        """Predict one input (synchronous)."""
        X = fitted.engineer.transform(records_to_frame([input]))
        prediction = fitted.estimator.predict(X)
        if fitted.label_encoder is not None:
            prediction = fitted.label_encoder.inverse_transform(prediction.astype(int))
        output = {"class": plain_value(prediction[0])}

        if fitted.task_type != TaskType.REGRESSION and hasattr(fitted.estimator, "predict_proba"):
            proba = fitted.estimator.predict_proba(X)[0]
            output["confidence"] = float(np.max(proba))

        return output

    async def delete_model(self, model: Any) -> None:
        job = self._jobs.pop(model_id(model), None)
        if job is None:
            raise ModelNotFoundError(f"Unknown model: {model_id(model)}")
        if not job.done():
            job.cancel()
