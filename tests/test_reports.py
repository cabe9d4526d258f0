import pytest

from kfold_mcp.analysis import generate_reports, predicted_label
from kfold_mcp.harness import Prediction


def p(true, predicted):
    return Prediction(input={"text": f"{true}->{predicted}"}, true_class=true, output={"class": predicted})


def test_predicted_label():
    assert predicted_label({"class": "a", "confidence": 0.9}) == "a"
    assert predicted_label({"label": "b"}) == "b"
    assert predicted_label("c") == "c"
    assert predicted_label(3) == 3


def test_empty_predictions():
    reports = generate_reports([])
    assert reports["summary"]["total"] == 0
    assert reports["summary"]["accuracy"] == 0.0
    assert reports["per_class"] == {}
    assert reports["confusion_matrix"] == {}


def test_summary_and_per_class():
    predictions = [p("a", "a"), p("a", "b"), p("b", "b"), p("b", "b")]
    reports = generate_reports(predictions)

    summary = reports["summary"]
    assert summary["total"] == 4
    assert summary["correct"] == 3
    assert summary["accuracy"] == pytest.approx(0.75)

    assert reports["per_class"]["a"] == {
        "precision": pytest.approx(1.0),
        "recall": pytest.approx(0.5),
        "f1": pytest.approx(2 / 3),
        "support": 2,
    }
    assert reports["per_class"]["b"]["precision"] == pytest.approx(2 / 3)
    assert reports["per_class"]["b"]["recall"] == pytest.approx(1.0)
    assert summary["macro_recall"] == pytest.approx(0.75)


def test_confusion_matrix_includes_predicted_only_labels():
    reports = generate_reports([p("a", "a"), p("a", "c")])
    assert reports["confusion_matrix"] == {
        "a": {"a": 1, "c": 1},
        "c": {"a": 0, "c": 0},
    }
    assert reports["per_class"]["c"]["support"] == 0


def test_plain_outputs_and_mixed_label_types():
    predictions = [
        Prediction(input=1, true_class=1, output=1),
        Prediction(input=2, true_class="1", output=1),
        Prediction(input=3, true_class=0, output=1),
    ]
    reports = generate_reports(predictions)
    assert reports["summary"]["correct"] == 2


def test_custom_label_extractor():
    predictions = [Prediction(input=1, true_class="x", output={"intents": [{"intent": "x"}]})]
    reports = generate_reports(predictions, label_of=lambda out: out["intents"][0]["intent"])
    assert reports["summary"]["accuracy"] == 1.0
