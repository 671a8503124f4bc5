"""Tests du module config."""

import json
from pathlib import Path

import pytest

from catmatch.config import ConfigError, EngineConfig, Thresholds


def test_engine_config_defaults() -> None:
    config = EngineConfig()
    assert config.thresholds == Thresholds(high=0.85, low=0.60)
    assert config.concurrency == 4
    assert config.max_retries == 3
    assert config.retry_backoff == 0.5
    assert config.match_timeout == 30.0
    assert config.method == "token_set"
    assert config.max_items == 10_000
    assert config.max_file_mb == 10.0


def test_engine_config_from_dict_nested_thresholds() -> None:
    config = EngineConfig.from_dict({"thresholds": {"high": 0.9, "low": 0.5}, "concurrency": 8})
    assert config.thresholds == Thresholds(high=0.9, low=0.5)
    assert config.concurrency == 8


def test_engine_config_from_dict_flat_thresholds() -> None:
    config = EngineConfig.from_dict({"high_threshold": 0.8, "low_threshold": 0.4, "match_timeout": None})
    assert config.high_threshold == 0.8
    assert config.low_threshold == 0.4
    assert config.match_timeout is None


def test_engine_config_invalid_thresholds() -> None:
    with pytest.raises(ConfigError, match="seuils invalides"):
        EngineConfig.from_dict({"thresholds": {"high": 0.4, "low": 0.6}})
    with pytest.raises(ConfigError):
        EngineConfig.from_dict({"thresholds": [0.9, 0.5]})


@pytest.mark.parametrize(
    "overrides",
    [
        {"concurrency": 0},
        {"max_retries": -1},
        {"retry_backoff": -0.1},
        {"match_timeout": 0},
        {"top_k": 0},
        {"method": "soundex"},
        {"max_items": 0},
        {"max_file_mb": 0},
    ],
)
def test_engine_config_validate(overrides: dict) -> None:
    with pytest.raises(ConfigError):
        EngineConfig(**overrides)


def test_engine_config_from_dict_bad_type() -> None:
    with pytest.raises(ConfigError, match="valeur de configuration invalide"):
        EngineConfig.from_dict({"concurrency": "beaucoup"})


def test_engine_config_load(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text(
        json.dumps({"thresholds": {"high": 0.9, "low": 0.7}, "method": "token_sort", "top_k": 3}),
        encoding="utf-8",
    )
    config = EngineConfig.load(config_path)
    assert config.thresholds.high == 0.9
    assert config.method == "token_sort"
    assert config.top_k == 3
    # Les valeurs absentes gardent leur défaut
    assert config.max_retries == 3


def test_thresholds_from_dict() -> None:
    assert Thresholds.from_dict({}) == Thresholds()
    assert Thresholds.from_dict({"high": "0.95", "low": 0.2}) == Thresholds(high=0.95, low=0.2)
    with pytest.raises(ConfigError, match="non numériques"):
        Thresholds.from_dict({"high": "haut"})
