"""Configuration management for the scoring step."""

import yaml
from pathlib import Path
from dataclasses import dataclass, asdict, fields
from typing import Dict, Any, Optional, Union
import logging
import os

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SCORING_SIZE = 100

# environment variable -> config attribute
ENVIRONMENT_OVERRIDES = {
    "SCORING_OUTPUT_PROBABILITIES": "output_probabilities",
    "SCORING_UPDATE_INCREMENTAL_MODEL": "update_incremental_model",
    "SCORING_CACHE_LOADED_MODELS": "cache_loaded_models",
    "SCORING_BATCH_SIZE": "batch_size",
    "SCORING_BATCH_SCORING": "batch_scoring",
}

_BOOLEAN_FIELDS = {"output_probabilities", "update_incremental_model", "cache_loaded_models", "batch_scoring"}


def _coerce_bool(value: Any) -> Optional[bool]:
    """Normalize common truthy/falsey representations to booleans."""
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "1", "yes", "on", "y"}:
            return True
        if lowered in {"false", "0", "no", "off", "n"}:
            return False
    return bool(value)


def resolve_variables(value: Optional[str]) -> Optional[str]:
    """Substitute ``${VAR}`` and ``$VAR`` references from the environment."""
    if value is None:
        return None
    return os.path.expandvars(str(value))


def is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


@dataclass
class ScoringConfig:
    """Settings of one scoring step."""

    # Model source
    model_file: Optional[str] = None
    model_field: Optional[str] = None  # field holding a model path per row
    cache_loaded_models: bool = True

    # Output
    output_probabilities: bool = False
    missing_prediction_marker: Optional[str] = None

    # Incremental models
    update_incremental_model: bool = False
    saved_model_file: Optional[str] = None

    # Batch scoring
    batch_scoring: bool = True
    batch_size: Optional[Union[str, int]] = None
    default_batch_size: int = DEFAULT_BATCH_SCORING_SIZE

    # Progress logging (rows)
    feedback_interval: int = 50000

    @property
    def model_from_field(self) -> bool:
        return not is_empty(self.model_field)

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> "ScoringConfig":
        known = {f.name for f in fields(cls)}
        unknown = set(config_dict) - known
        if unknown:
            logger.warning(f"Ignoring unknown configuration keys: {sorted(unknown)}")
        values = {k: v for k, v in config_dict.items() if k in known}
        for key in _BOOLEAN_FIELDS & set(values):
            values[key] = _coerce_bool(values[key])
        return cls(**values)

    @classmethod
    def from_yaml(cls, filepath: str) -> "ScoringConfig":
        """Load configuration from YAML file."""
        with open(filepath, 'r') as f:
            config_dict = yaml.safe_load(f)

        if not config_dict:
            return cls()
        # accept either a flat mapping or one nested under "scoring"
        if isinstance(config_dict.get("scoring"), dict):
            config_dict = config_dict["scoring"]
        return cls.from_dict(config_dict)

    def to_yaml(self, filepath: str) -> None:
        """Save configuration to YAML file."""
        with open(filepath, 'w') as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def apply_environment_overrides(self) -> None:
        for variable, attribute in ENVIRONMENT_OVERRIDES.items():
            raw = os.getenv(variable)
            if raw is None or raw == "":
                continue
            value = _coerce_bool(raw) if attribute in _BOOLEAN_FIELDS else raw
            logger.debug(f"{variable} overrides {attribute}={value!r}")
            setattr(self, attribute, value)

    def validate(self) -> bool:
        """
        Validate configuration values.

        Raises:
            ConfigurationError: on the first invalid setting
        """
        if self.default_batch_size < 1:
            raise ConfigurationError("default_batch_size must be at least 1")
        if self.feedback_interval < 1:
            raise ConfigurationError("feedback_interval must be at least 1")
        if isinstance(self.batch_size, int) and not isinstance(self.batch_size, bool) and self.batch_size < 1:
            raise ConfigurationError("batch_size must be at least 1")
        if self.model_from_field and self.update_incremental_model:
            logger.warning("Incremental update is not possible when models are loaded from a row field")
        if not is_empty(self.saved_model_file) and not self.update_incremental_model:
            logger.warning("saved_model_file is set but update_incremental_model is off; nothing will be saved")
        return True


def load_config(filepath: Optional[str] = None, **overrides) -> ScoringConfig:
    """
    Load configuration with environment and keyword overrides.

    Precedence, lowest first: defaults, YAML file, SCORING_* environment
    variables, keyword overrides.

    Args:
        filepath: Path to YAML config file
        **overrides: ScoringConfig attributes to force

    Returns:
        Validated ScoringConfig
    """
    if filepath and Path(filepath).exists():
        config = ScoringConfig.from_yaml(filepath)
    else:
        if filepath:
            logger.warning(f"Configuration file {filepath} not found, using defaults")
        config = ScoringConfig()

    config.apply_environment_overrides()

    for key, value in overrides.items():
        if value is None:
            continue
        if not hasattr(config, key):
            raise ConfigurationError(f"Unknown configuration option: {key}")
        setattr(config, key, value)

    config.validate()
    return config


def save_config(config: ScoringConfig, filepath: str) -> None:
    """Save configuration to file."""
    config.to_yaml(filepath)
    logger.info(f"Configuration saved to {filepath}")
