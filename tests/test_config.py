import dataclasses

import pytest

from kfold_mcp.harness import DEFAULT_CONFIG, Fold, ModelHandle, RunConfig, resolve_config
from kfold_mcp.harness.config import PROCESS_SEED


def test_defaults():
    config = RunConfig()
    assert config.verbose is False
    assert config.num_folds == 3
    assert config.batch_size == 10
    assert config.throttle_ms == 1000
    assert config.polling_interval_ms == 10000
    assert config.polling_timeout_ms == 600000
    assert config.seed == PROCESS_SEED
    assert config.train_only is False
    assert config.resume_state is None


def test_seconds_properties():
    config = RunConfig(throttle_ms=1500, polling_interval_ms=250, polling_timeout_ms=2000)
    assert config.throttle == 1.5
    assert config.polling_interval == 0.25
    assert config.polling_timeout == 2.0


def test_config_is_frozen():
    with pytest.raises(dataclasses.FrozenInstanceError):
        DEFAULT_CONFIG.num_folds = 5


def test_resolve_merges_over_defaults_without_mutating_them():
    config = resolve_config({"NUM_FOLDS": 5, "THROTTLE": 0, "trainOnly": True, "seed": 1})
    assert config.num_folds == 5
    assert config.throttle_ms == 0
    assert config.train_only is True
    assert config.seed == 1
    assert config.batch_size == DEFAULT_CONFIG.batch_size
    assert DEFAULT_CONFIG.num_folds == 3
    assert DEFAULT_CONFIG.train_only is False


def test_resolve_without_overrides_returns_base():
    assert resolve_config() is DEFAULT_CONFIG
    base = RunConfig(num_folds=4)
    assert resolve_config({}, base=base) is base


def test_resolve_rejects_unknown_keys():
    with pytest.raises(ValueError, match="Unknown configuration key"):
        resolve_config({"NUM_FOLD": 2})


@pytest.mark.parametrize(
    "kwargs",
    [
        {"batch_size": 0},
        {"throttle_ms": -1},
        {"polling_interval_ms": -5},
        {"polling_timeout_ms": -5},
    ],
)
def test_invalid_values(kwargs):
    with pytest.raises(ValueError):
        RunConfig(**kwargs)


def test_num_folds_is_not_validated():
    assert RunConfig(num_folds=0).num_folds == 0


def test_resume_state_requires_folds_and_models_together():
    with pytest.raises(ValueError, match="together"):
        RunConfig(folds=[Fold()])
    with pytest.raises(ValueError, match="together"):
        resolve_config({"trainModels": [ModelHandle("m")]})


def test_resume_state_lengths_must_match():
    with pytest.raises(ValueError, match="2 folds but 1 models"):
        RunConfig(folds=[Fold(), Fold()], train_models=[ModelHandle("m")])


def test_resume_state_is_tupled():
    config = resolve_config({"folds": [Fold()], "trainModels": [ModelHandle("m")]})
    folds, models = config.resume_state
    assert folds == (Fold(),)
    assert models == (ModelHandle("m"),)


def test_from_env():
    environ = {
        "KFOLD_VERBOSE": "true",
        "KFOLD_NUM_FOLDS": "5",
        "KFOLD_BATCH_SIZE": "20",
        "KFOLD_THROTTLE_MS": "250",
        "KFOLD_POLLING_INTERVAL_MS": "100",
        "KFOLD_POLLING_TIMEOUT_MS": "5000",
        "KFOLD_SEED": "1234",
    }
    config = RunConfig.from_env(environ)
    assert config.verbose is True
    assert config.num_folds == 5
    assert config.batch_size == 20
    assert config.throttle_ms == 250.0
    assert config.polling_interval_ms == 100.0
    assert config.polling_timeout_ms == 5000.0
    assert config.seed == 1234


def test_from_env_ignores_unset_values_and_keeps_base():
    base = RunConfig(num_folds=7, seed="abc")
    config = RunConfig.from_env({"KFOLD_NUM_FOLDS": "", "KFOLD_SEED": "xyz"}, base=base)
    assert config.num_folds == 7
    assert config.seed == "xyz"
