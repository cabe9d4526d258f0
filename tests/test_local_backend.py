import asyncio

import numpy as np
import pytest

from kfold_mcp.backends import (
    FeatureEngineer,
    LocalModelService,
    ModelFactory,
    ModelType,
    TaskType,
    detect_task_type,
)
from kfold_mcp.backends.features import records_to_frame
from kfold_mcp.harness import (
    CrossValidation,
    Example,
    ModelHandle,
    ModelNotFoundError,
    RunStatus,
    TrainingError,
)

from conftest import fast_config


class ListSource:
    def __init__(self, examples):
        self.examples = examples

    async def load(self):
        return list(self.examples)


def separable_examples(n=30):
    rng = np.random.default_rng(0)
    examples = []
    for i in range(n):
        label = "high" if i % 2 else "low"
        x = float(rng.normal(10 if label == "high" else -10, 1))
        examples.append(Example(input={"x": x, "color": "red" if i % 3 else "blue"}, label=label))
    return examples


async def wait_trained(service, handle):
    while not await service.check_model_status(handle):
        await asyncio.sleep(0.01)


def test_detect_task_type():
    assert detect_task_type(["a", "b", "a"]) == TaskType.BINARY_CLASSIFICATION
    assert detect_task_type(["a", "b", "c"]) == TaskType.MULTICLASS_CLASSIFICATION
    assert detect_task_type(np.arange(5)) == TaskType.MULTICLASS_CLASSIFICATION
    assert detect_task_type(np.linspace(0, 1, 100)) == TaskType.REGRESSION


def test_factory_merges_hyperparameters():
    model = ModelFactory.create_model(
        ModelType.RANDOM_FOREST, TaskType.BINARY_CLASSIFICATION, {"n_estimators": 5}, random_state=3,
    )
    assert model.n_estimators == 5
    assert model.max_depth == 10
    assert model.random_state == 3


def test_factory_rejects_unsupported_regression():
    with pytest.raises(ValueError):
        ModelFactory.create_model(ModelType.LOGISTIC_REGRESSION, TaskType.REGRESSION)


def test_feature_engineer_handles_missing_and_unseen_values():
    train = records_to_frame([
        {"x": 1.0, "c": "a"},
        {"x": 3.0, "c": "b"},
        {"x": None, "c": None},
    ])
    engineer = FeatureEngineer().fit(train)

    row = engineer.transform(records_to_frame([{"x": None, "c": "unseen"}]))
    assert row.shape == (1, 2)
    assert not np.isnan(row).any()
    assert engineer.get_feature_names() == ["x", "c"]

    missing_column = engineer.transform(records_to_frame([{"c": "a"}]))
    assert missing_column.shape == (1, 2)


def test_feature_engineer_requires_fit():
    with pytest.raises(RuntimeError):
        FeatureEngineer().transform(records_to_frame([{"x": 1}]))


def test_train_predict_delete():
    service = LocalModelService(
        model_type=ModelType.LOGISTIC_REGRESSION, hyperparameters={"max_iter": 200},
    )
    examples = separable_examples()

    async def scenario():
        handle = await service.train_model(examples)
        await wait_trained(service, handle)
        output = await service.predict(handle, {"x": 12.0, "color": "red"})
        await service.delete_model(handle)
        return handle, output

    handle, output = asyncio.run(scenario())
    assert len(handle.id) == 8
    assert handle.payload == {"model_type": "logistic_regression", "train_size": 30}
    assert output["class"] == "high"
    assert 0.5 < output["confidence"] <= 1.0
    assert service.model_ids == []


def test_unknown_model():
    service = LocalModelService()

    async def scenario():
        with pytest.raises(ModelNotFoundError):
            await service.check_model_status(ModelHandle("nope"))
        with pytest.raises(ModelNotFoundError):
            await service.delete_model(ModelHandle("nope"))

    asyncio.run(scenario())


def test_empty_train_set_is_rejected():
    with pytest.raises(TrainingError):
        asyncio.run(LocalModelService().train_model([]))


def test_failed_fit_is_reported_by_status():
    service = LocalModelService(
        model_type=ModelType.LOGISTIC_REGRESSION, hyperparameters={"not_a_parameter": 1},
    )
    examples = separable_examples(10)

    async def scenario():
        handle = await service.train_model(examples)
        with pytest.raises(TrainingError):
            while True:
                await service.check_model_status(handle)
                await asyncio.sleep(0.01)

    asyncio.run(scenario())


def test_end_to_end_cross_validation():
    service = LocalModelService(
        source=ListSource(separable_examples(30)),
        model_type=ModelType.RANDOM_FOREST,
        hyperparameters={"n_estimators": 10},
    )
    config = fast_config(num_folds=3, batch_size=5, polling_interval_ms=10)

    result = asyncio.run(CrossValidation(service, config).run())

    assert result.status == RunStatus.COMPLETED
    assert len(result.predictions) == 30
    assert result.reports["summary"]["accuracy"] > 0.9
    assert service.model_ids == []


def test_train_only_keeps_models_for_resume():
    service = LocalModelService(
        source=ListSource(separable_examples(12)),
        model_type=ModelType.RANDOM_FOREST,
        hyperparameters={"n_estimators": 5},
    )

    async def scenario():
        first = await CrossValidation(service, fast_config(train_only=True)).run()
        kept = service.model_ids
        resumed = await CrossValidation(
            service, fast_config(folds=first.folds, train_models=first.train_models),
        ).run()
        return first, kept, resumed

    first, kept, resumed = asyncio.run(scenario())
    assert first.status == RunStatus.TRAIN_ONLY
    assert sorted(kept) == sorted(m.id for m in first.train_models)
    assert resumed.status == RunStatus.COMPLETED
    assert len(resumed.predictions) == 12
    assert service.model_ids == []


def test_integer_labels_are_predicted_as_integers():
    examples = [Example(input={"x": float(i)}, label=int(i >= 10)) for i in range(20)]
    service = LocalModelService(model_type=ModelType.KNN, hyperparameters={"n_neighbors": 3})

    async def scenario():
        handle = await service.train_model(examples)
        await wait_trained(service, handle)
        return await service.predict(handle, {"x": 18.0})

    output = asyncio.run(scenario())
    assert output["class"] == 1
    assert type(output["class"]) is int
