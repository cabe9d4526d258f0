"""Default evaluation reports for cross-validation predictions."""

from typing import Any, Callable, Mapping, Sequence

import numpy as np
import pandas as pd


def predicted_label(output: Any) -> Any:
    """Extract the predicted class from a model output."""
    if isinstance(output, Mapping):
        if "class" in output:
            return output["class"]
        if "label" in output:
            return output["label"]
    return output


def generate_reports(
    predictions: Sequence[Any],
    label_of: Callable[[Any], Any] = predicted_label,
) -> dict:
    """Summarize classification quality of a set of predictions."""
    if not predictions:
        return {
            "summary": {
                "total": 0,
                "correct": 0,
                "accuracy": 0.0,
                "macro_precision": 0.0,
                "macro_recall": 0.0,
                "macro_f1": 0.0,
            },
            "per_class": {},
            "confusion_matrix": {},
        }

    from sklearn.metrics import accuracy_score, precision_recall_fscore_support

    # Labels are compared as text so mixed types stay sortable.
    y_true = [str(p.true_class) for p in predictions]
    y_pred = [str(label_of(p.output)) for p in predictions]
    labels = sorted(set(y_true) | set(y_pred))

    precision, recall, f1, support = precision_recall_fscore_support(
        y_true, y_pred, labels=labels, zero_division=0,
    )
    correct = sum(1 for t, p in zip(y_true, y_pred) if t == p)

    per_class = {
        label: {
            "precision": float(precision[i]),
            "recall": float(recall[i]),
            "f1": float(f1[i]),
            "support": int(support[i]),
        }
        for i, label in enumerate(labels)
    }

    matrix = pd.crosstab(
        pd.Series(y_true, name="true"),
        pd.Series(y_pred, name="predicted"),
    ).reindex(index=labels, columns=labels, fill_value=0)
    confusion = {
        true: {pred: int(count) for pred, count in row.items()}
        for true, row in matrix.to_dict(orient="index").items()
    }

    return {
        "summary": {
            "total": len(predictions),
            "correct": correct,
            "accuracy": float(accuracy_score(y_true, y_pred)),
            "macro_precision": float(np.mean(precision)),
            "macro_recall": float(np.mean(recall)),
            "macro_f1": float(np.mean(f1)),
        },
        "per_class": per_class,
        "confusion_matrix": confusion,
    }
