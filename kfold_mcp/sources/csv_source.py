"""CSV data source."""

import asyncio
from pathlib import Path
from typing import Optional, Union

import pandas as pd

from ..harness.models import Example, plain_value


class SourceError(Exception):
    """Dataset could not be loaded."""
    pass


def frame_to_examples(
    df: pd.DataFrame,
    target_column: str,
    feature_columns: Optional[list[str]] = None,
) -> list[Example]:
    """Convert a frame to examples keyed by column name."""
    if target_column not in df.columns:
        raise SourceError(f"Target column not found: {target_column}")

    if feature_columns:
        missing = [c for c in feature_columns if c not in df.columns]
        if missing:
            raise SourceError(f"Feature columns not found: {', '.join(missing)}")
        columns = list(feature_columns)
    else:
        columns = [c for c in df.columns if c != target_column]

    examples = []
    for row in df.to_dict(orient="records"):
        examples.append(
            Example(
                input={str(c): plain_value(row[c]) for c in columns},
                label=plain_value(row[target_column]),
            )
        )
    return examples


class CsvSource:
    """Loads labeled examples from a CSV file."""

    def __init__(
        self,
        path: Union[str, Path],
        target_column: str,
        feature_columns: Optional[list[str]] = None,
    ):
        self.path = Path(path)
        self.target_column = target_column
        self.feature_columns = feature_columns

    def read_frame(self) -> pd.DataFrame:
        """Read the CSV file (synchronous)."""
        if not self.path.exists():
            raise SourceError(f"File not found: {self.path}")
        return pd.read_csv(self.path)

    def _load(self) -> list[Example]:
        return frame_to_examples(self.read_frame(), self.target_column, self.feature_columns)

    async def load(self) -> list[Example]:
        """Read the file in the executor and return its examples."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._load)
