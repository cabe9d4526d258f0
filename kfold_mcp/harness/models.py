"""Data models for cross-validation runs."""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

import numpy as np


@dataclass(frozen=True)
class Example:
    """A labeled example from the exported dataset."""
    input: Any
    label: Any

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {"input": self.input, "class": self.label}

    @classmethod
    def from_dict(cls, data: dict) -> "Example":
        """Create Example from a stored dictionary."""
        return cls(input=data.get("input"), label=data.get("class"))


@dataclass(frozen=True)
class Fold:
    """One train/test split of the dataset."""
    train: tuple[Example, ...] = ()
    test: tuple[Example, ...] = ()

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "train": [e.to_dict() for e in self.train],
            "test": [e.to_dict() for e in self.test],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Fold":
        """Create Fold from a stored dictionary."""
        return cls(
            train=tuple(Example.from_dict(e) for e in data.get("train", [])),
            test=tuple(Example.from_dict(e) for e in data.get("test", [])),
        )


@dataclass(frozen=True)
class ModelHandle:
    """Reference to a model held by the training service."""
    id: str
    payload: Any = None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {"id": self.id, "payload": self.payload}

    @classmethod
    def from_dict(cls, data: dict) -> "ModelHandle":
        """Create ModelHandle from a stored dictionary."""
        return cls(id=str(data.get("id", "")), payload=data.get("payload"))


@dataclass(frozen=True)
class Prediction:
    """A model output paired with the example it was computed for."""
    input: Any
    true_class: Any
    output: Any

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "input": self.input,
            "true_class": self.true_class,
            "output": self.output,
        }

    def serialize(self) -> str:
        """Compact JSON text of this prediction, used for ordering.

        Non-ASCII characters are kept as is so that ordering follows the
        characters themselves rather than their escapes.
        """
        return json.dumps(self.to_dict(), ensure_ascii=False, separators=(",", ":"), default=str)


class RunStatus(str, Enum):
    """Terminal status of a run."""
    COMPLETED = "completed"
    FAILED = "failed"
    TRAIN_ONLY = "train_only"


def model_id(model: Any) -> str:
    """Identifier of a model handle for tracing and storage."""
    return str(getattr(model, "id", model))


def plain_value(value: Any) -> Any:
    """Plain Python value for numpy scalars, with NaN as None."""
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float) and np.isnan(value):
        return None
    return value


@dataclass(frozen=True)
class RunResult:
    """Outcome of a cross-validation run."""
    status: RunStatus
    predictions: tuple[Prediction, ...] = ()
    reports: Any = None
    folds: tuple[Fold, ...] = ()
    train_models: tuple[Any, ...] = ()
    error: Optional[str] = None
    train_only: bool = False

    def to_dict(self) -> dict:
        """Convert to the public result shape.

        Train-only runs expose their folds and models, successful runs their
        predictions and reports, and failed runs nothing.
        """
        if self.train_only:
            return {
                "folds": [f.to_dict() for f in self.folds],
                "train_models": [
                    m.to_dict() if isinstance(m, ModelHandle) else m
                    for m in self.train_models
                ],
            }
        if self.status == RunStatus.COMPLETED:
            return {
                "predictions": [p.to_dict() for p in self.predictions],
                "reports": self.reports,
            }
        return {}
