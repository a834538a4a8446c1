"""
Tests for dispatch module
=========================
Tests for output field naming and prediction formatting.
"""

import numpy as np
import pytest
import sys
import os

from hypothesis import given, strategies as st

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from stream_scoring.dispatch import (
    UNABLE_TO_ASSIGN_CLUSTER,
    UNABLE_TO_PREDICT,
    PredictionDispatcher,
    max_index,
    output_fields
)
from stream_scoring.exceptions import ScoringError
from stream_scoring.instance import InstanceBuilder
from stream_scoring.mapping import find_mappings
from stream_scoring.models import ScoringModel
from stream_scoring.schema import Attribute, AttributeKind, FieldKind, ModelSchema

probabilities = st.lists(st.floats(min_value=0.0, max_value=1.0), min_size=1, max_size=10)

LABEL_HEADER = ModelSchema((Attribute("x"), Attribute("y", AttributeKind.NOMINAL, ("a", "b", "c"))), 1)


class FixedModel(ScoringModel):
    """Supervised model stub; only its header is consulted when formatting."""
    is_supervised = True

    def _distributions(self, X):
        raise NotImplementedError


class TestOutputFields:
    """Tests for output_fields"""

    def test_nominal_label(self, iris_classifier):
        fields = output_fields(iris_classifier, output_probabilities=False)
        assert [(f.name, f.kind) for f in fields] == [("class_predicted", FieldKind.STRING)]

    def test_nominal_probabilities(self, iris_classifier):
        fields = output_fields(iris_classifier, output_probabilities=True)
        assert [f.name for f in fields] == [
            "class:Iris-setosa_predicted_prob",
            "class:Iris-versicolor_predicted_prob",
            "class:Iris-virginica_predicted_prob",
        ]
        assert all(f.kind is FieldKind.NUMERIC for f in fields)

    def test_numeric_target_ignores_probabilities(self, petal_regressor):
        fields = output_fields(petal_regressor, output_probabilities=True)
        assert [(f.name, f.kind) for f in fields] == [("petalwidth_predicted", FieldKind.NUMERIC)]

    def test_cluster_index(self, kmeans_model):
        assert [f.name for f in output_fields(kmeans_model, False)] == ["cluster#_predicted"]

    def test_cluster_probabilities(self, mixture_model):
        assert [f.name for f in output_fields(mixture_model, True)] == [
            "cluster_0_predicted_prob", "cluster_1_predicted_prob", "cluster_2_predicted_prob"
        ]


class TestMaxIndex:
    """Tests for max_index"""

    def test_first_maximum_wins(self):
        assert max_index([0.2, 0.4, 0.4]) == 1

    def test_nan_counts_as_zero(self):
        assert max_index([np.nan, 0.1]) == 1

    @given(probabilities)
    def test_maximum_attained(self, distribution):
        best = max_index(distribution)
        assert distribution[best] == max(distribution)
        assert all(p < distribution[best] for p in distribution[:best])


class TestPredictionDispatcher:
    """Tests for PredictionDispatcher"""

    def test_label(self, iris_classifier):
        dispatcher = PredictionDispatcher(iris_classifier)
        assert dispatcher.format([0.1, 0.7, 0.2]) == ["Iris-versicolor"]

    def test_probabilities(self, iris_classifier):
        dispatcher = PredictionDispatcher(iris_classifier, output_probabilities=True)
        assert dispatcher.format(np.array([0.1, 0.7, 0.2])) == [0.1, 0.7, 0.2]

    def test_zero_distribution_gives_marker(self, iris_classifier):
        assert PredictionDispatcher(iris_classifier).format([0.0, 0.0, 0.0]) == [None]
        dispatcher = PredictionDispatcher(iris_classifier, unable_to_predict_marker=UNABLE_TO_PREDICT)
        assert dispatcher.format([0.0, 0.0, 0.0]) == ["Unable to predict"]

    def test_regression_value(self, petal_regressor):
        dispatcher = PredictionDispatcher(petal_regressor, output_probabilities=True)
        assert dispatcher.format([1.25]) == [1.25]

    def test_cluster_index(self, kmeans_model):
        dispatcher = PredictionDispatcher(kmeans_model)
        assert dispatcher.format([0.0, 0.0, 1.0]) == [2.0]

    def test_cluster_marker(self, kmeans_model):
        dispatcher = PredictionDispatcher(kmeans_model, unable_to_assign_marker=UNABLE_TO_ASSIGN_CLUSTER)
        assert dispatcher.format([0.0, 0.0, 0.0]) == ["Unable to assign cluster"]
        assert dispatcher.format([]) == ["Unable to assign cluster"]

    @given(st.lists(st.floats(min_value=0.01, max_value=1.0), min_size=3, max_size=3))
    def test_label_is_argmax(self, distribution):
        dispatcher = PredictionDispatcher(FixedModel(None, LABEL_HEADER))
        assert dispatcher.format(distribution) == [("a", "b", "c")[max_index(distribution)]]

    def test_predict_batch(self, iris_classifier, iris_header, iris_schema, iris_rows):
        builder = InstanceBuilder(iris_header, iris_schema, find_mappings(iris_header, iris_schema))
        instances = [builder.build(row, fresh=True) for row in (iris_rows[0], iris_rows[149])]

        results = PredictionDispatcher(iris_classifier).predict_batch(instances)

        assert results == [["Iris-setosa"], ["Iris-virginica"]]

    def test_predict_batch_length_mismatch(self, iris_classifier, iris_header, iris_schema, iris_rows):
        builder = InstanceBuilder(iris_header, iris_schema, find_mappings(iris_header, iris_schema))
        instances = [builder.build(iris_rows[0], fresh=True)]

        class ShortModel:
            def distributions_for_batch(self, batch):
                return np.empty((0, 3))

        dispatcher = PredictionDispatcher(iris_classifier)
        dispatcher.model = ShortModel()
        with pytest.raises(ScoringError):
            dispatcher.predict_batch(instances)
