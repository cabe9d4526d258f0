"""Data sources producing labeled examples."""

from .csv_source import CsvSource, SourceError, frame_to_examples
from .kaggle import KaggleAuthError, KaggleConfig, KaggleError, KaggleSource

__all__ = [
    "CsvSource",
    "KaggleAuthError",
    "KaggleConfig",
    "KaggleError",
    "KaggleSource",
    "SourceError",
    "frame_to_examples",
]
