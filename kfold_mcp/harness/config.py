"""Run configuration for cross-validation experiments."""

import os
import random
from dataclasses import dataclass, fields, replace
from typing import Any, Mapping, Optional

from .models import Fold

# Drawn once per process; pass an explicit seed for reproducible runs.
PROCESS_SEED = random.random()

# Keys accepted by resolve_config in addition to the field names.
OVERRIDE_ALIASES = {
    "VERBOSE": "verbose",
    "NUM_FOLDS": "num_folds",
    "BATCH_SIZE": "batch_size",
    "THROTTLE": "throttle_ms",
    "POLLING_INTERVAL": "polling_interval_ms",
    "POLLING_TIMEOUT": "polling_timeout_ms",
    "SEED": "seed",
    "trainModels": "train_models",
    "trainOnly": "train_only",
}

ENV_VARS = {
    "KFOLD_VERBOSE": "verbose",
    "KFOLD_NUM_FOLDS": "num_folds",
    "KFOLD_BATCH_SIZE": "batch_size",
    "KFOLD_THROTTLE_MS": "throttle_ms",
    "KFOLD_POLLING_INTERVAL_MS": "polling_interval_ms",
    "KFOLD_POLLING_TIMEOUT_MS": "polling_timeout_ms",
    "KFOLD_SEED": "seed",
}


@dataclass(frozen=True)
class RunConfig:
    """Configuration for a cross-validation run.

    Times are in milliseconds. ``folds`` and ``train_models`` resume a
    previous run and must be supplied together.
    """
    verbose: bool = False
    num_folds: int = 3
    batch_size: int = 10
    throttle_ms: float = 1000
    polling_interval_ms: float = 10000
    polling_timeout_ms: float = 600000
    seed: Any = PROCESS_SEED
    folds: Optional[tuple[Fold, ...]] = None
    train_models: Optional[tuple[Any, ...]] = None
    train_only: bool = False

    def __post_init__(self):
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {self.batch_size}")
        for name in ("throttle_ms", "polling_interval_ms", "polling_timeout_ms"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")

        if (self.folds is None) != (self.train_models is None):
            raise ValueError("folds and train_models must be supplied together")
        if self.folds is not None:
            object.__setattr__(self, "folds", tuple(self.folds))
            object.__setattr__(self, "train_models", tuple(self.train_models))
            if len(self.folds) != len(self.train_models):
                raise ValueError(
                    f"Got {len(self.folds)} folds but {len(self.train_models)} models"
                )

    @property
    def throttle(self) -> float:
        """Delay between prediction batches in seconds."""
        return self.throttle_ms / 1000

    @property
    def polling_interval(self) -> float:
        """Delay between status checks in seconds."""
        return self.polling_interval_ms / 1000

    @property
    def polling_timeout(self) -> float:
        """Maximum time to wait for a model in seconds."""
        return self.polling_timeout_ms / 1000

    @property
    def resume_state(self) -> Optional[tuple[tuple[Fold, ...], tuple[Any, ...]]]:
        """Folds and models of a previous run, if this run resumes one."""
        if self.folds is None or self.train_models is None:
            return None
        return self.folds, self.train_models

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        base: Optional["RunConfig"] = None,
    ) -> "RunConfig":
        """Create configuration from KFOLD_* environment variables."""
        environ = os.environ if environ is None else environ
        base = base or DEFAULT_CONFIG

        overrides = {}
        for var, name in ENV_VARS.items():
            value = environ.get(var)
            if value is None or value == "":
                continue
            overrides[name] = _parse_env_value(name, value)

        return replace(base, **overrides)


def _parse_env_value(name: str, value: str) -> Any:
    """Convert an environment string to the field's type."""
    if name == "verbose":
        return value.strip().lower() in ("1", "true", "yes", "on")
    if name in ("num_folds", "batch_size"):
        return int(value)
    if name == "seed":
        try:
            return int(value)
        except ValueError:
            return value
    return float(value)


DEFAULT_CONFIG = RunConfig()


def resolve_config(
    overrides: Optional[Mapping[str, Any]] = None,
    base: Optional[RunConfig] = None,
) -> RunConfig:
    """Merge overrides over a base configuration field by field.

    Overrides may use field names or the upper-case keys in
    ``OVERRIDE_ALIASES``. The base is never modified.
    """
    base = base or DEFAULT_CONFIG
    if not overrides:
        return base

    names = {f.name for f in fields(RunConfig)}
    changes = {}
    for key, value in overrides.items():
        name = OVERRIDE_ALIASES.get(key, key)
        if name not in names:
            raise ValueError(f"Unknown configuration key: {key}")
        changes[name] = value

    return replace(base, **changes)
