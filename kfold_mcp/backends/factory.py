"""Estimator factory for the local model service."""

import importlib
from enum import Enum
from typing import Any, Optional

import numpy as np


class ModelType(str, Enum):
    """Supported estimator families."""
    LOGISTIC_REGRESSION = "logistic_regression"
    RANDOM_FOREST = "random_forest"
    GRADIENT_BOOSTING = "gradient_boosting"
    XGBOOST = "xgboost"
    LIGHTGBM = "lightgbm"
    RIDGE = "ridge"
    SVM = "svm"
    KNN = "knn"


class TaskType(str, Enum):
    """Learning task inferred from the labels."""
    BINARY_CLASSIFICATION = "binary_classification"
    MULTICLASS_CLASSIFICATION = "multiclass_classification"
    REGRESSION = "regression"


# (classifier, regressor) import paths per model type.
ESTIMATORS = {
    ModelType.LOGISTIC_REGRESSION: ("sklearn.linear_model.LogisticRegression", None),
    ModelType.RANDOM_FOREST: (
        "sklearn.ensemble.RandomForestClassifier",
        "sklearn.ensemble.RandomForestRegressor",
    ),
    ModelType.GRADIENT_BOOSTING: (
        "sklearn.ensemble.GradientBoostingClassifier",
        "sklearn.ensemble.GradientBoostingRegressor",
    ),
    ModelType.XGBOOST: ("xgboost.XGBClassifier", "xgboost.XGBRegressor"),
    ModelType.LIGHTGBM: ("lightgbm.LGBMClassifier", "lightgbm.LGBMRegressor"),
    ModelType.RIDGE: ("sklearn.linear_model.RidgeClassifier", "sklearn.linear_model.Ridge"),
    ModelType.SVM: ("sklearn.svm.SVC", "sklearn.svm.SVR"),
    ModelType.KNN: (
        "sklearn.neighbors.KNeighborsClassifier",
        "sklearn.neighbors.KNeighborsRegressor",
    ),
}

DEFAULT_HYPERPARAMETERS = {
    ModelType.LOGISTIC_REGRESSION: {"C": 1.0, "max_iter": 1000},
    ModelType.RANDOM_FOREST: {
        "n_estimators": 100,
        "max_depth": 10,
        "min_samples_split": 5,
        "min_samples_leaf": 2,
    },
    ModelType.GRADIENT_BOOSTING: {
        "n_estimators": 100,
        "max_depth": 5,
        "learning_rate": 0.1,
        "subsample": 0.8,
    },
    ModelType.XGBOOST: {
        "n_estimators": 100,
        "max_depth": 6,
        "learning_rate": 0.1,
        "subsample": 0.8,
        "colsample_bytree": 0.8,
    },
    ModelType.LIGHTGBM: {
        "n_estimators": 100,
        "num_leaves": 31,
        "learning_rate": 0.1,
        "verbose": -1,
    },
    ModelType.RIDGE: {"alpha": 1.0},
    ModelType.SVM: {"C": 1.0, "kernel": "rbf"},
    ModelType.KNN: {"n_neighbors": 5, "weights": "uniform"},
}

# Estimators whose constructor takes no random_state.
_NO_RANDOM_STATE = {
    "sklearn.neighbors.KNeighborsClassifier",
    "sklearn.neighbors.KNeighborsRegressor",
    "sklearn.svm.SVR",
}


def detect_task_type(y) -> TaskType:
    """Infer the task type from training labels."""
    y = np.asarray(y)
    unique_values = len(np.unique(y.astype(str)))

    if unique_values == 2:
        return TaskType.BINARY_CLASSIFICATION
    if y.dtype.kind in ("O", "U", "S", "b"):
        return TaskType.MULTICLASS_CLASSIFICATION
    if unique_values <= 20 or (y.dtype.kind in ("i", "u") and unique_values <= 50):
        return TaskType.MULTICLASS_CLASSIFICATION
    return TaskType.REGRESSION


def _load(path: str):
    module_name, _, attr = path.rpartition(".")
    return getattr(importlib.import_module(module_name), attr)


class ModelFactory:
    """Builds unfitted estimators."""

    @staticmethod
    def create_model(
        model_type: ModelType,
        task_type: TaskType,
        hyperparameters: Optional[dict[str, Any]] = None,
        random_state: int = 42,
    ):
        """Create an estimator with default hyperparameters merged with custom ones."""
        model_type = ModelType(model_type)
        params = ModelFactory.get_default_hyperparameters(model_type)
        if hyperparameters:
            params.update(hyperparameters)

        classifier, regressor = ESTIMATORS[model_type]
        if task_type == TaskType.REGRESSION:
            if regressor is None:
                raise ValueError(f"{model_type.value} does not support regression")
            path = regressor
        else:
            path = classifier
            if model_type == ModelType.SVM:
                params.setdefault("probability", True)

        if path not in _NO_RANDOM_STATE:
            params.setdefault("random_state", random_state)

        return _load(path)(**params)

    @staticmethod
    def get_default_hyperparameters(model_type: ModelType) -> dict[str, Any]:
        """Get default hyperparameters for a model type."""
        return DEFAULT_HYPERPARAMETERS.get(ModelType(model_type), {}).copy()
