"""Batched, throttled prediction over a fold's test set."""

import asyncio
from typing import Any, Optional, Sequence

from .capabilities import ModelService
from .errors import PredictionError
from .models import Example, Prediction, model_id
from .observer import RunObserver


class BatchPredictor:
    """Runs a model over test examples in sequential, throttled batches."""

    def __init__(
        self,
        service: ModelService,
        batch_size: int = 10,
        throttle: float = 1.0,
        observer: Optional[RunObserver] = None,
    ):
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")
        self.service = service
        self.batch_size = batch_size
        self.throttle = throttle
        self.observer = observer or RunObserver()

    async def _predict_one(self, model: Any, example: Example) -> Prediction:
        output = await self.service.predict(model, example.input)
        return Prediction(input=example.input, true_class=example.label, output=output)

    async def run_tests(self, model: Any, tests: Sequence[Example]) -> list[Prediction]:
        """Predict every test example, batch by batch.

        Predictions within a batch run concurrently and are returned in input
        order. The throttle delay follows every batch, including the last.
        """
        predictions: list[Prediction] = []

        for start in range(0, len(tests), self.batch_size):
            end = start + self.batch_size
            self.observer.batch_started(model, start, end)
            batch = tests[start:end]

            results = await asyncio.gather(
                *(self._predict_one(model, example) for example in batch),
                return_exceptions=True,
            )
            for result in results:
                if isinstance(result, BaseException):
                    raise PredictionError(
                        f"Prediction failed for model {model_id(model)}: {result}",
                        model_id=model_id(model),
                    ) from result

            predictions.extend(results)
            self.observer.batch_finished(model, start, end)
            await asyncio.sleep(self.throttle)

        return predictions
