"""Model services usable by the harness."""

from .factory import ModelFactory, ModelType, TaskType, detect_task_type
from .features import FeatureEngineer, analyze_dataframe
from .local import LocalModelService

__all__ = [
    "FeatureEngineer",
    "LocalModelService",
    "ModelFactory",
    "ModelType",
    "TaskType",
    "analyze_dataframe",
    "detect_task_type",
]
