"""
Prediction dispatch and output formatting.

Invokes the model on one instance or a batch and turns each raw
distribution into the values appended to the row:

- probabilities requested and more than one class/cluster: one probability
  per target domain value (supervised) or per cluster (unsupervised)
- otherwise a single value: the regression value, the most probable label,
  or the most probable cluster index

When the most probable entry has probability 0 the model could not decide
and the configured "unable to predict" marker is emitted instead.
"""

import logging
from typing import Any, List, Optional, Sequence

import numpy as np

from .exceptions import ScoringError
from .instance import Instance
from .models import ScoringModel
from .schema import Field, FieldKind

logger = logging.getLogger(__name__)

# Markers used by earlier releases; pass them explicitly to restore string markers.
UNABLE_TO_PREDICT = "Unable to predict"
UNABLE_TO_ASSIGN_CLUSTER = "Unable to assign cluster"


def max_index(distribution: Sequence[float]) -> int:
    """First index attaining the maximum (NaN counts as 0)."""
    return int(np.argmax(np.nan_to_num(np.asarray(distribution, dtype=float), nan=0.0)))


def output_fields(model: ScoringModel, output_probabilities: bool) -> List[Field]:
    """
    Fields appended to every row for ``model``.

    Args:
        model: Scoring model
        output_probabilities: Whether a probability per class/cluster is requested

    Returns:
        List of appended fields, in output order
    """
    if model.is_supervised:
        target = model.header.target
        if target.is_numeric or not output_probabilities or len(target.values) <= 1:
            kind = FieldKind.NUMERIC if target.is_numeric else FieldKind.STRING
            return [Field(f"{target.name}_predicted", kind)]
        return [Field(f"{target.name}:{value}_predicted_prob", FieldKind.NUMERIC) for value in target.values]

    if output_probabilities:
        n_clusters = model.number_of_clusters()
        if n_clusters > 1:
            return [Field(f"cluster_{i}_predicted_prob", FieldKind.NUMERIC) for i in range(n_clusters)]
    return [Field("cluster#_predicted", FieldKind.NUMERIC)]


class PredictionDispatcher:
    """Scores instances with a model and formats the appended output values."""

    def __init__(self, model: ScoringModel, output_probabilities: bool = False,
                 unable_to_predict_marker: Optional[str] = None,
                 unable_to_assign_marker: Optional[str] = None):
        self.model = model
        self.output_probabilities = output_probabilities
        self.unable_to_predict_marker = unable_to_predict_marker
        self.unable_to_assign_marker = unable_to_assign_marker

    def format(self, distribution: Sequence[float]) -> List[Any]:
        """Convert one raw model distribution into output values."""
        prediction = np.asarray(distribution, dtype=float).ravel()

        if len(prediction) > 1 and self.output_probabilities:
            return [float(p) for p in prediction]

        if self.model.is_supervised:
            target = self.model.header.target
            if target.is_numeric:
                return [float(prediction[0])]
            if prediction.size == 0:
                return [self.unable_to_predict_marker]
            best = max_index(prediction)
            if prediction[best] > 0:
                return [target.values[best]]
            return [self.unable_to_predict_marker]

        if prediction.size == 0:
            return [self.unable_to_assign_marker]
        best = max_index(prediction)
        if prediction[best] > 0:
            return [float(best)]
        return [self.unable_to_assign_marker]

    def predict(self, instance: Instance) -> List[Any]:
        """Score a single instance. Model errors propagate to the caller."""
        return self.format(self.model.distribution_for(instance))

    def predict_batch(self, instances: Sequence[Instance]) -> List[List[Any]]:
        """Score a batch; results are in the order of ``instances``."""
        distributions = self.model.distributions_for_batch(instances)
        if len(distributions) != len(instances):
            raise ScoringError(
                f"Model returned {len(distributions)} predictions for a batch of {len(instances)} instances"
            )
        logger.debug(f"Predicted batch of {len(instances)} instances")
        return [self.format(d) for d in distributions]
