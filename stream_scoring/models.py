"""
Model capability used by the scoring engine.

The engine never inspects model types; it only consults the capability
flags and prediction methods of ``ScoringModel``. Adapters wrap fitted
scikit-learn estimators:

- ``SklearnClassifierModel``: supervised models (classifiers and regressors)
- ``SklearnClustererModel``: unsupervised clusterers
"""

import logging
import numbers
from abc import ABC, abstractmethod
from typing import Any, Iterable, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from .exceptions import ScoringError
from .instance import Instance
from .schema import AttributeKind, ModelSchema

logger = logging.getLogger(__name__)


class ScoringModel(ABC):
    """Base class for a model consumed as an opaque prediction capability."""

    def __init__(self, model: Any, header: ModelSchema, batch_capable: bool = True,
                 preferred_batch_size: Optional[str] = None):
        self.model = model
        self.header = header
        self._batch_capable = batch_capable
        self.preferred_batch_size = preferred_batch_size

    @property
    @abstractmethod
    def is_supervised(self) -> bool:
        """Whether the model predicts a target attribute."""

    @property
    def is_updateable(self) -> bool:
        return hasattr(self.model, "partial_fit")

    @property
    def is_batch_capable(self) -> bool:
        return self._batch_capable

    @property
    def can_produce_probabilities(self) -> bool:
        return True

    @property
    def feature_indices(self) -> List[int]:
        """Header indices of the attributes fed to the underlying model."""
        return self.header.input_indices

    @property
    def feature_names(self) -> List[str]:
        return [self.header[i].name for i in self.feature_indices]

    @abstractmethod
    def _distributions(self, X: Union[np.ndarray, pd.DataFrame]) -> np.ndarray:
        """Return one distribution row per row of ``X``."""

    def _matrix(self, instances: Sequence[Instance]) -> Union[np.ndarray, pd.DataFrame]:
        indices = self.feature_indices
        X = np.vstack([instance.values[indices] for instance in instances])
        text_columns = [i for i in indices if self.header[i].kind is AttributeKind.STRING]
        if not text_columns and not hasattr(self.model, "feature_names_in_"):
            return X

        frame = pd.DataFrame(X, columns=self.feature_names)
        # string attributes hold a placeholder in the vector; the raw text rides in Instance.strings
        for i in text_columns:
            frame[self.header[i].name] = pd.Series(
                [instance.strings.get(i, np.nan) for instance in instances], dtype=object
            )
        return frame

    def distribution_for(self, instance: Instance) -> np.ndarray:
        """Prediction for one instance as a distribution (length 1 for numeric targets)."""
        return self._distributions(self._matrix([instance]))[0]

    def distributions_for_batch(self, instances: Sequence[Instance]) -> np.ndarray:
        """
        Predictions for a batch of instances in one model call.

        Raises:
            ScoringError: if the model cannot produce batch predictions
        """
        if not self.is_batch_capable:
            raise ScoringError("Model cannot produce batch predictions")
        if len(instances) == 0:
            return np.empty((0, 0))
        return self._distributions(self._matrix(instances))

    def classify(self, instance: Instance) -> float:
        """Index of the most probable class/cluster, or NaN when nothing can be predicted."""
        distribution = self.distribution_for(instance)
        if distribution.sum() <= 0:
            return np.nan
        return float(np.argmax(distribution))

    def update(self, instance: Instance) -> bool:
        """Refine the model with one instance. Returns False if the model is not updateable."""
        return False

    def number_of_clusters(self) -> int:
        raise ScoringError(f"{type(self).__name__} is not a clustering model")

    def done(self) -> None:
        """Release anything held for the duration of a stream."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.model!r})"


class SklearnClassifierModel(ScoringModel):
    """
    Supervised scikit-learn estimator (classifier or regressor).

    Unmapped, null and unseen nominal values reach the estimator as NaN, so
    the wrapped estimator must accept NaN input (e.g. HistGradientBoosting*
    or a Pipeline starting with an imputer). String attributes arrive as
    their raw text in a DataFrame column of the same name.
    """

    def __init__(self, model: Any, header: ModelSchema, batch_capable: bool = True,
                 preferred_batch_size: Optional[str] = None):
        if header.target is None:
            raise ValueError("Supervised models need a header with a target attribute")
        super().__init__(model, header, batch_capable, preferred_batch_size)
        self._domain_positions: Optional[np.ndarray] = None

    @property
    def is_supervised(self) -> bool:
        return True

    @property
    def numeric_target(self) -> bool:
        return self.header.target.is_numeric

    def _class_position(self, label: Any) -> int:
        target = self.header.target
        if isinstance(label, (str, np.str_)):
            return target.index_of_value(str(label))
        if isinstance(label, (numbers.Integral, np.integer)) and not isinstance(label, (bool, np.bool_)):
            return int(label) if 0 <= int(label) < len(target.values) else -1
        return target.index_of_value(str(label))

    def _positions(self) -> np.ndarray:
        # estimator class order -> target domain order
        if self._domain_positions is None:
            self._domain_positions = np.array(
                [self._class_position(c) for c in self.model.classes_], dtype=int
            )
            unknown = [c for c, p in zip(self.model.classes_, self._domain_positions) if p < 0]
            if unknown:
                logger.warning(f"Model classes {unknown} are not in the domain of "
                               f"target '{self.header.target.name}' and will be ignored")
        return self._domain_positions

    def _distributions(self, X):
        if self.numeric_target:
            predictions = np.asarray(self.model.predict(X), dtype=float)
            return predictions.reshape(-1, 1)

        domain_size = len(self.header.target.values)
        if not hasattr(self.model, "predict_proba"):
            # hard classifier: all mass on the predicted label
            result = np.zeros((len(X), domain_size))
            for row, label in enumerate(self.model.predict(X)):
                position = self._class_position(label)
                if position >= 0:
                    result[row, position] = 1.0
            return result

        proba = np.asarray(self.model.predict_proba(X), dtype=float)
        positions = self._positions()
        result = np.zeros((proba.shape[0], domain_size))
        for column, position in enumerate(positions):
            if position >= 0:
                result[:, position] += proba[:, column]
        return result

    def classify(self, instance: Instance) -> float:
        if self.numeric_target:
            return float(self.distribution_for(instance)[0])
        return super().classify(instance)

    def _encode_target(self, instance: Instance) -> Any:
        value = instance.values[self.header.target_index]
        if self.numeric_target:
            return float(value)
        index = int(value)
        classes = getattr(self.model, "classes_", None)
        if classes is not None and not any(isinstance(c, (str, np.str_)) for c in classes):
            return index
        return self.header.target.values[index]

    def update(self, instance: Instance) -> bool:
        if not self.is_updateable:
            return False

        X = self._matrix([instance])
        y = [self._encode_target(instance)]
        if self.numeric_target or hasattr(self.model, "classes_"):
            self.model.partial_fit(X, y)
        else:
            self.model.partial_fit(X, y, classes=list(self.header.target.values))
            self._domain_positions = None
        return True


class SklearnClustererModel(ScoringModel):
    """Unsupervised scikit-learn clusterer."""

    def __init__(self, model: Any, header: ModelSchema,
                 ignored_attributes: Iterable[Union[int, str]] = (),
                 batch_capable: bool = True, preferred_batch_size: Optional[str] = None):
        super().__init__(model, header, batch_capable, preferred_batch_size)
        ignored = set()
        for attribute in ignored_attributes:
            index = header.index_of(attribute) if isinstance(attribute, str) else int(attribute)
            if not 0 <= index < len(header):
                raise ValueError(f"Unknown attribute to ignore: {attribute!r}")
            ignored.add(index)
        self.ignored_attributes = tuple(sorted(ignored))
        if self.ignored_attributes:
            logger.info("Attributes ignored by clusterer: "
                        + ", ".join(header[i].name for i in self.ignored_attributes))

    @property
    def is_supervised(self) -> bool:
        return False

    @property
    def can_produce_probabilities(self) -> bool:
        return hasattr(self.model, "predict_proba")

    @property
    def feature_indices(self) -> List[int]:
        return [i for i in self.header.input_indices if i not in self.ignored_attributes]

    def number_of_clusters(self) -> int:
        for attr in ("n_components", "n_clusters"):
            value = getattr(self.model, attr, None)
            if isinstance(value, (numbers.Integral, np.integer)):
                return int(value)
        centers = getattr(self.model, "cluster_centers_", None)
        if centers is not None:
            return len(centers)
        raise ScoringError("Unable to get number of clusters from clustering model")

    def _distributions(self, X):
        if self.can_produce_probabilities:
            return np.asarray(self.model.predict_proba(X), dtype=float)

        labels = np.asarray(self.model.predict(X), dtype=int)
        result = np.zeros((len(labels), self.number_of_clusters()))
        assigned = labels >= 0
        result[np.nonzero(assigned)[0], labels[assigned]] = 1.0
        return result

    def update(self, instance: Instance) -> bool:
        if not self.is_updateable:
            return False
        self.model.partial_fit(self._matrix([instance]))
        return True


def create_scorer(model: Any, header: Optional[ModelSchema] = None, **kwargs) -> ScoringModel:
    """
    Wrap a fitted estimator in the matching adapter.

    Headers with a target produce a supervised adapter, headers without one a
    clusterer adapter. ``ScoringModel`` instances are returned unchanged.
    """
    if isinstance(model, ScoringModel):
        return model
    if header is None:
        raise ValueError("A model header is required to wrap a raw estimator")
    if header.target_index is None:
        return SklearnClustererModel(model, header, **kwargs)
    kwargs.pop("ignored_attributes", None)
    return SklearnClassifierModel(model, header, **kwargs)
