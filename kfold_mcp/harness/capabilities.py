"""Capability interface the harness uses to reach a model-training service."""

import inspect
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional, Sequence, Union

from .errors import HarnessError
from .models import Example, Prediction

ReportGenerator = Callable[[Sequence[Prediction]], Any]


class ModelService(ABC):
    """Operations a training service must provide to be cross-validated."""

    @abstractmethod
    async def export_data(self) -> Sequence[Example]:
        """Return the full dataset to partition."""
        raise NotImplementedError

    @abstractmethod
    async def train_model(self, train: Sequence[Example]) -> Any:
        """Start training on a train set and return a model handle."""
        raise NotImplementedError

    @abstractmethod
    async def check_model_status(self, model: Any) -> bool:
        """Return True once the model has finished training."""
        raise NotImplementedError

    @abstractmethod
    async def predict(self, model: Any, input: Any) -> Any:
        """Return the model output for one input."""
        raise NotImplementedError

    @abstractmethod
    async def delete_model(self, model: Any) -> None:
        """Discard a trained model."""
        raise NotImplementedError


MaybeAsync = Callable[..., Union[Any, Awaitable[Any]]]


async def _call(func: Optional[MaybeAsync], name: str, *args) -> Any:
    if func is None:
        raise HarnessError(f"No {name} function supplied")
    result = func(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


class CallableModelService(ModelService):
    """Model service built from plain functions.

    Each function may be synchronous or return an awaitable.
    """

    def __init__(
        self,
        export_data: Optional[MaybeAsync] = None,
        train_model: Optional[MaybeAsync] = None,
        check_model_status: Optional[MaybeAsync] = None,
        predict: Optional[MaybeAsync] = None,
        delete_model: Optional[MaybeAsync] = None,
    ):
        self._export_data = export_data
        self._train_model = train_model
        self._check_model_status = check_model_status
        self._predict = predict
        self._delete_model = delete_model

    async def export_data(self) -> Sequence[Example]:
        return await _call(self._export_data, "export_data")

    async def train_model(self, train: Sequence[Example]) -> Any:
        return await _call(self._train_model, "train_model", train)

    async def check_model_status(self, model: Any) -> bool:
        return bool(await _call(self._check_model_status, "check_model_status", model))

    async def predict(self, model: Any, input: Any) -> Any:
        return await _call(self._predict, "predict", model, input)

    async def delete_model(self, model: Any) -> None:
        await _call(self._delete_model, "delete_model", model)
