import asyncio
from typing import Any, Optional

import pytest

from kfold_mcp.harness import Example, ModelHandle, ModelService, RunConfig


class FakeModelService(ModelService):
    """Scripted model service recording every call.

    A model "predicts" the label stored in its input, so every prediction is
    correct.
    """

    def __init__(
        self,
        data: Optional[list[Example]] = None,
        polls_until_done: int = 1,
        fail_training_on_call: Optional[int] = None,
        fail_predict_for: Optional[set] = None,
        fail_delete: bool = False,
        never_done: bool = False,
        predict_delay: float = 0.0,
    ):
        self.data = data if data is not None else make_examples(6)
        self.polls_until_done = polls_until_done
        self.fail_training_on_call = fail_training_on_call
        self.fail_predict_for = fail_predict_for or set()
        self.fail_delete = fail_delete
        self.never_done = never_done
        self.predict_delay = predict_delay

        self.trained: list[tuple] = []
        self.status_calls: dict[str, int] = {}
        self.predict_calls: list[tuple[str, Any]] = []
        self.deleted: list[str] = []
        self.export_calls = 0

    async def export_data(self):
        self.export_calls += 1
        return list(self.data)

    async def train_model(self, train):
        call = len(self.trained)
        self.trained.append(tuple(train))
        await asyncio.sleep(0)
        if self.fail_training_on_call == call:
            raise RuntimeError("training rejected")
        return ModelHandle(id=f"model-{call}")

    async def check_model_status(self, model):
        count = self.status_calls.get(model.id, 0) + 1
        self.status_calls[model.id] = count
        if self.never_done:
            return False
        return count >= self.polls_until_done

    async def predict(self, model, input):
        self.predict_calls.append((model.id, input))
        if self.predict_delay:
            await asyncio.sleep(self.predict_delay)
        if input["id"] in self.fail_predict_for:
            raise RuntimeError(f"cannot predict {input['id']}")
        return {"class": input["label"]}

    async def delete_model(self, model):
        self.deleted.append(model.id)
        if self.fail_delete:
            raise RuntimeError("delete failed")


def make_examples(n: int, classes: tuple = ("a", "b")) -> list[Example]:
    return [
        Example(input={"id": i, "label": classes[i % len(classes)]}, label=classes[i % len(classes)])
        for i in range(n)
    ]


def fast_config(**overrides) -> RunConfig:
    settings = dict(
        seed=7,
        num_folds=2,
        batch_size=2,
        throttle_ms=0,
        polling_interval_ms=1,
        polling_timeout_ms=1000,
    )
    settings.update(overrides)
    return RunConfig(**settings)


@pytest.fixture
def examples():
    return make_examples(6)


@pytest.fixture
def service(examples):
    return FakeModelService(data=examples)
