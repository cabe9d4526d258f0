import asyncio
import math
import time

import pytest

from kfold_mcp.harness import BatchPredictor, ModelHandle, PredictionError, RunObserver

from conftest import FakeModelService, make_examples


class BatchRecorder(RunObserver):
    def __init__(self):
        self.started = []
        self.finished = []

    def batch_started(self, model, start, end):
        self.started.append((start, end))

    def batch_finished(self, model, start, end):
        self.finished.append((start, end))


MODEL = ModelHandle("m1")


@pytest.mark.parametrize("n,batch_size", [(10, 3), (9, 3), (1, 10), (0, 4), (5, 1)])
def test_batch_count_and_prediction_count(n, batch_size):
    service = FakeModelService()
    recorder = BatchRecorder()
    predictor = BatchPredictor(service, batch_size=batch_size, throttle=0, observer=recorder)

    predictions = asyncio.run(predictor.run_tests(MODEL, make_examples(n)))

    assert len(predictions) == n
    assert len(recorder.started) == math.ceil(n / batch_size)
    assert recorder.started == recorder.finished
    assert len(service.predict_calls) == n


def test_last_batch_may_be_smaller():
    recorder = BatchRecorder()
    predictor = BatchPredictor(FakeModelService(), batch_size=4, throttle=0, observer=recorder)
    asyncio.run(predictor.run_tests(MODEL, make_examples(10)))
    assert recorder.started == [(0, 4), (4, 8), (8, 12)]


def test_predictions_keep_input_order_and_pair_labels():
    tests = make_examples(7)
    predictor = BatchPredictor(FakeModelService(), batch_size=3, throttle=0)

    predictions = asyncio.run(predictor.run_tests(MODEL, tests))

    assert [p.input for p in predictions] == [e.input for e in tests]
    assert [p.true_class for p in predictions] == [e.label for e in tests]
    assert [p.output for p in predictions] == [{"class": e.label} for e in tests]


def test_order_does_not_depend_on_completion_order():
    class ReverseLatency(FakeModelService):
        async def predict(self, model, input):
            await asyncio.sleep(0.01 * (5 - input["id"]))
            return input["id"]

    predictor = BatchPredictor(ReverseLatency(), batch_size=5, throttle=0)
    predictions = asyncio.run(predictor.run_tests(MODEL, make_examples(5)))
    assert [p.output for p in predictions] == [0, 1, 2, 3, 4]


def test_throttle_follows_every_batch():
    predictor = BatchPredictor(FakeModelService(), batch_size=2, throttle=0.05)

    started = time.monotonic()
    asyncio.run(predictor.run_tests(MODEL, make_examples(6)))
    elapsed = time.monotonic() - started

    assert elapsed >= 3 * 0.05 * 0.9


def test_batches_are_sequential():
    active = []
    peak = []

    class Tracking(FakeModelService):
        async def predict(self, model, input):
            active.append(input["id"])
            peak.append(len(active))
            await asyncio.sleep(0.01)
            active.remove(input["id"])
            return input["label"]

    predictor = BatchPredictor(Tracking(), batch_size=3, throttle=0)
    asyncio.run(predictor.run_tests(MODEL, make_examples(9)))
    assert max(peak) == 3


def test_failing_prediction_fails_the_call():
    service = FakeModelService(fail_predict_for={4})
    predictor = BatchPredictor(service, batch_size=2, throttle=0)

    with pytest.raises(PredictionError) as info:
        asyncio.run(predictor.run_tests(MODEL, make_examples(8)))

    assert info.value.model_id == "m1"
    assert isinstance(info.value.__cause__, RuntimeError)
    # Batches after the failing one are never started.
    assert sorted(i["id"] for _, i in service.predict_calls) == [0, 1, 2, 3, 4, 5]


def test_batch_size_must_be_positive():
    with pytest.raises(ValueError):
        BatchPredictor(FakeModelService(), batch_size=0)
