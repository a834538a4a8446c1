"""
Model files for the scoring step.

A model file is a joblib dump of either a ``ScoringModel`` or a raw fitted
estimator. Raw estimators need a header, read from a ``.meta.json`` sidecar
(``model.joblib`` -> ``model.meta.json``) or from a ``{"model", "header"}``
dict stored in the dump itself.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union
from urllib.parse import unquote, urlparse

import joblib

from .config import resolve_variables
from .exceptions import ModelLoadError
from .models import ScoringModel, SklearnClustererModel, create_scorer
from .schema import ModelSchema

logger = logging.getLogger(__name__)


def resolve_model_path(filepath: Union[str, Path]) -> Path:
    """Substitute environment variables and accept ``file:`` URIs."""
    name = resolve_variables(str(filepath))
    if name.startswith("file:"):
        return Path(unquote(urlparse(name).path))
    return Path(name)


def metadata_path(filepath: Union[str, Path]) -> Path:
    return Path(filepath).with_suffix('.meta.json')


def model_file_exists(filepath: Union[str, Path]) -> bool:
    return resolve_model_path(filepath).exists()


def _scorer_from_parts(estimator: Any, metadata: Dict[str, Any]) -> ScoringModel:
    if "header" not in metadata:
        raise ModelLoadError("Model metadata does not contain a header")
    header = ModelSchema.from_dict(metadata["header"])
    kwargs = {
        "batch_capable": metadata.get("batch_capable", True),
        "preferred_batch_size": metadata.get("preferred_batch_size"),
    }
    if metadata.get("ignored_attributes"):
        kwargs["ignored_attributes"] = metadata["ignored_attributes"]
    return create_scorer(estimator, header, **kwargs)


def load_model(filepath: Union[str, Path]) -> ScoringModel:
    """
    Load a scoring model from disk.

    Args:
        filepath: Path to the model file (``${VAR}`` references are resolved)

    Returns:
        ScoringModel ready for scoring

    Raises:
        ModelLoadError: if the file does not exist or cannot be deserialized
    """
    path = resolve_model_path(filepath)
    if not path.exists():
        raise ModelLoadError(f"Model file does not exist: {path}", str(path))

    try:
        obj = joblib.load(path)
    except Exception as e:
        raise ModelLoadError(f"Problem deserializing model file {path}: {e}", str(path)) from e

    if isinstance(obj, ScoringModel):
        logger.info(f"Model loaded from {path}: {obj!r}")
        return obj

    meta_path = metadata_path(path)
    try:
        if isinstance(obj, dict) and "model" in obj:
            model = _scorer_from_parts(obj["model"], obj)
        elif meta_path.exists():
            with open(meta_path, 'r') as f:
                metadata = json.load(f)
            model = _scorer_from_parts(obj, metadata)
        else:
            raise ModelLoadError(f"No header found for model {path} (expected {meta_path.name})", str(path))
    except ModelLoadError:
        raise
    except (KeyError, TypeError, ValueError) as e:
        raise ModelLoadError(f"Invalid model metadata for {path}: {e}", str(path)) from e

    logger.info(f"Model loaded from {path}: {model!r}")
    return model


def save_model(model: ScoringModel, filepath: Union[str, Path]) -> Path:
    """
    Save the estimator of ``model`` with its header in a ``.meta.json`` sidecar.

    Returns:
        Path the model was written to
    """
    path = resolve_model_path(filepath)
    path.parent.mkdir(parents=True, exist_ok=True)

    joblib.dump(model.model, path)

    metadata = {
        "kind": "classifier" if model.is_supervised else "clusterer",
        "header": model.header.to_dict(),
        "batch_capable": model.is_batch_capable,
        "preferred_batch_size": model.preferred_batch_size,
    }
    if isinstance(model, SklearnClustererModel) and model.ignored_attributes:
        metadata["ignored_attributes"] = list(model.ignored_attributes)

    with open(metadata_path(path), 'w') as f:
        json.dump(metadata, f, indent=2)

    logger.info(f"Model saved to {path}")
    return path


class ModelCache:
    """Models loaded from row fields, keyed by resolved path. Owned by one stream."""

    def __init__(self):
        self._models: Dict[str, ScoringModel] = {}

    def __len__(self) -> int:
        return len(self._models)

    def __contains__(self, path: str) -> bool:
        return path in self._models

    def get(self, path: str) -> Optional[ScoringModel]:
        return self._models.get(path)

    def put(self, path: str, model: ScoringModel) -> None:
        self._models[path] = model

    def clear(self) -> None:
        self._models.clear()
