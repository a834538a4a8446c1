"""
Tests for config module
=======================
Tests for ScoringConfig defaults, YAML persistence and overrides.
"""

import pytest
import yaml
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from stream_scoring.config import (
    DEFAULT_BATCH_SCORING_SIZE,
    ScoringConfig,
    _coerce_bool,
    load_config,
    resolve_variables,
    save_config
)
from stream_scoring.exceptions import ConfigurationError


class TestScoringConfig:
    """Tests for ScoringConfig"""

    def test_defaults(self):
        config = ScoringConfig()
        assert config.model_file is None
        assert not config.model_from_field
        assert config.cache_loaded_models
        assert not config.output_probabilities
        assert not config.update_incremental_model
        assert config.batch_scoring
        assert config.default_batch_size == DEFAULT_BATCH_SCORING_SIZE == 100
        assert config.missing_prediction_marker is None

    def test_model_from_field(self):
        assert ScoringConfig(model_field="model_path").model_from_field
        assert not ScoringConfig(model_field="  ").model_from_field

    def test_from_dict_coerces_booleans(self, caplog):
        config = ScoringConfig.from_dict({"output_probabilities": "yes", "batch_scoring": "0", "extra": 1})
        assert config.output_probabilities is True
        assert config.batch_scoring is False
        assert "extra" in caplog.text

    def test_yaml_round_trip(self, tmp_path):
        path = tmp_path / "scoring.yaml"
        config = ScoringConfig(model_file="model.joblib", output_probabilities=True, batch_size="50")

        save_config(config, str(path))
        loaded = ScoringConfig.from_yaml(str(path))

        assert loaded == config

    def test_nested_yaml(self, tmp_path):
        path = tmp_path / "scoring.yaml"
        path.write_text(yaml.dump({"scoring": {"model_field": "model", "cache_loaded_models": "false"}}))

        config = ScoringConfig.from_yaml(str(path))

        assert config.model_field == "model"
        assert config.cache_loaded_models is False

    def test_empty_yaml(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert ScoringConfig.from_yaml(str(path)) == ScoringConfig()

    @pytest.mark.parametrize("field_name", ["default_batch_size", "feedback_interval", "batch_size"])
    def test_validate_rejects_non_positive(self, field_name):
        config = ScoringConfig(**{field_name: 0})
        with pytest.raises(ConfigurationError):
            config.validate()

    def test_validate_warns_on_unsaved_model(self, caplog):
        assert ScoringConfig(saved_model_file="out.joblib").validate()
        assert "nothing will be saved" in caplog.text


class TestLoadConfig:
    """Tests for load_config"""

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("SCORING_OUTPUT_PROBABILITIES", "true")
        monkeypatch.setenv("SCORING_BATCH_SIZE", "25")

        config = load_config()

        assert config.output_probabilities is True
        assert config.batch_size == "25"

    def test_keyword_overrides_win(self, tmp_path, monkeypatch):
        path = tmp_path / "scoring.yaml"
        ScoringConfig(model_file="from_yaml.joblib").to_yaml(str(path))
        monkeypatch.setenv("SCORING_UPDATE_INCREMENTAL_MODEL", "yes")

        config = load_config(str(path), model_file="from_kwargs.joblib", batch_size=None)

        assert config.model_file == "from_kwargs.joblib"
        assert config.update_incremental_model is True
        assert config.batch_size is None

    def test_missing_file_uses_defaults(self, tmp_path):
        assert load_config(str(tmp_path / "absent.yaml")) == ScoringConfig()

    def test_unknown_override(self):
        with pytest.raises(ConfigurationError):
            load_config(not_an_option=True)


class TestHelpers:
    """Tests for configuration helpers"""

    @pytest.mark.parametrize("value,expected", [
        ("true", True), ("Y", True), ("off", False), ("0", False), (None, None), (1, True),
    ])
    def test_coerce_bool(self, value, expected):
        assert _coerce_bool(value) is expected

    def test_resolve_variables(self, monkeypatch):
        monkeypatch.setenv("MODEL_DIR", "/models")
        assert resolve_variables("${MODEL_DIR}/iris.joblib") == "/models/iris.joblib"
        assert resolve_variables(None) is None
