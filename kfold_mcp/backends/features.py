"""Feature engineering for tabular example inputs."""

from typing import Any, Mapping, Optional, Sequence
from dataclasses import dataclass, field
import numpy as np
import pandas as pd

MISSING = "__MISSING__"


@dataclass
class FeatureConfig:
    """Configuration for feature engineering."""
    handle_missing: bool = True
    encode_categoricals: bool = True
    scale_numerics: bool = True


@dataclass
class FeatureInfo:
    """Columns seen while fitting."""
    columns: list[str]
    numeric_columns: list[str]
    categorical_columns: list[str]
    missing_stats: dict[str, float] = field(default_factory=dict)


def records_to_frame(records: Sequence[Any]) -> pd.DataFrame:
    """Build a frame from example inputs.

    Mapping inputs become one column per key; anything else becomes a single
    ``value`` column.
    """
    rows = [r if isinstance(r, Mapping) else {"value": r} for r in records]
    return pd.DataFrame.from_records(rows)


def analyze_dataframe(df: pd.DataFrame) -> dict:
    """Column types, missing values and summary statistics of a frame."""
    numeric_cols = df.select_dtypes(include=[np.number]).columns.tolist()
    categorical_cols = df.select_dtypes(include=["object", "category"]).columns.tolist()

    analysis = {
        "shape": list(df.shape),
        "columns": df.columns.tolist(),
        "numeric_columns": numeric_cols,
        "categorical_columns": categorical_cols,
        "missing_values": {k: int(v) for k, v in df.isnull().sum().items()},
        "dtypes": df.dtypes.astype(str).to_dict(),
    }

    if numeric_cols:
        analysis["numeric_stats"] = df[numeric_cols].describe().to_dict()

    if categorical_cols:
        analysis["categorical_stats"] = {
            col: {
                "unique_count": int(df[col].nunique()),
                "top_values": {str(k): int(v) for k, v in df[col].value_counts().head(5).items()},
            }
            for col in categorical_cols
        }

    return analysis


class FeatureEngineer:
    """Turns example inputs into a numeric matrix.

    Missing numerics are filled with medians from the training data,
    categoricals are label-encoded (unseen values map to the first class) and
    numerics are standardized.
    """

    def __init__(self, config: Optional[FeatureConfig] = None):
        self.config = config or FeatureConfig()
        self._encoders: dict[str, Any] = {}
        self._medians: dict[str, float] = {}
        self._scaler = None
        self._info: Optional[FeatureInfo] = None

    @property
    def fitted(self) -> bool:
        return self._info is not None

    def fit(self, df: pd.DataFrame) -> "FeatureEngineer":
        """Fit encoders, fill values and scaler on training inputs."""
        numeric_cols = df.select_dtypes(include=[np.number]).columns.tolist()
        categorical_cols = [c for c in df.columns if c not in numeric_cols]

        if self.config.encode_categoricals and categorical_cols:
            from sklearn.preprocessing import LabelEncoder
            for col in categorical_cols:
                encoder = LabelEncoder()
                encoder.fit(df[col].fillna(MISSING).astype(str))
                self._encoders[col] = encoder

        medians = df[numeric_cols].median() if numeric_cols else pd.Series(dtype=float)
        self._medians = {col: float(medians[col]) if pd.notna(medians[col]) else 0.0 for col in numeric_cols}

        if self.config.scale_numerics and numeric_cols:
            from sklearn.preprocessing import StandardScaler
            self._scaler = StandardScaler()
            self._scaler.fit(df[numeric_cols].fillna(self._medians))

        self._info = FeatureInfo(
            columns=df.columns.tolist(),
            numeric_columns=numeric_cols,
            categorical_columns=categorical_cols,
            missing_stats=(df.isnull().sum() / max(len(df), 1)).to_dict(),
        )
        return self

    def transform(self, df: pd.DataFrame) -> np.ndarray:
        """Transform inputs with the fitted state."""
        if not self.fitted:
            raise RuntimeError("FeatureEngineer must be fitted before transform")

        info = self._info
        result = df.reindex(columns=info.columns).copy()

        numeric = pd.DataFrame(
            {col: pd.to_numeric(result[col], errors="coerce") for col in info.numeric_columns},
            index=result.index,
        )
        if self.config.handle_missing:
            numeric = numeric.fillna(self._medians)
        if self._scaler is not None:
            numeric = pd.DataFrame(
                self._scaler.transform(numeric),
                columns=info.numeric_columns,
                index=result.index,
            )

        categorical = pd.DataFrame(index=result.index)
        for col in info.categorical_columns:
            values = result[col].fillna(MISSING).astype(str)
            encoder = self._encoders.get(col)
            if encoder is None:
                continue
            values = values.where(values.isin(encoder.classes_), encoder.classes_[0])
            categorical[col] = encoder.transform(values)

        return pd.concat([numeric, categorical], axis=1).to_numpy(dtype=float)

    def fit_transform(self, df: pd.DataFrame) -> np.ndarray:
        """Fit and transform in one step."""
        return self.fit(df).transform(df)

    def get_feature_names(self) -> list[str]:
        """Feature names in matrix column order."""
        if not self.fitted:
            return []
        names = list(self._info.numeric_columns)
        names += [c for c in self._info.categorical_columns if c in self._encoders]
        return names
