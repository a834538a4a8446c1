"""
Shared fixtures for stream scoring tests
========================================
Iris data, schemas and fitted scikit-learn models reused across test modules.
"""

import os
import sys

import pandas as pd
import pytest
from sklearn.cluster import KMeans
from sklearn.datasets import load_iris
from sklearn.linear_model import LinearRegression, LogisticRegression
from sklearn.mixture import GaussianMixture
from sklearn.naive_bayes import GaussianNB

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from stream_scoring.models import SklearnClassifierModel, SklearnClustererModel
from stream_scoring.schema import Attribute, AttributeKind, ModelSchema, SourceRowSchema

IRIS_FEATURES = ["sepallength", "sepalwidth", "petallength", "petalwidth"]
IRIS_CLASSES = ["Iris-setosa", "Iris-versicolor", "Iris-virginica"]


@pytest.fixture(scope="session")
def iris_df():
    """Iris as a frame with the ARFF-style column names and string labels."""
    iris = load_iris()
    df = pd.DataFrame(iris.data, columns=IRIS_FEATURES)
    df["class"] = [IRIS_CLASSES[i] for i in iris.target]
    return df


@pytest.fixture(scope="session")
def iris_header(iris_df):
    return ModelSchema.from_dataframe(iris_df, target="class")


@pytest.fixture(scope="session")
def iris_schema(iris_df):
    return SourceRowSchema.from_dataframe(iris_df)


@pytest.fixture
def iris_rows(iris_df):
    return [list(row) for row in iris_df.itertuples(index=False, name=None)]


@pytest.fixture(scope="session")
def logistic_estimator(iris_df):
    # fitted on a frame, so the estimator records feature names
    return LogisticRegression(max_iter=1000).fit(iris_df[IRIS_FEATURES], iris_df["class"])


@pytest.fixture
def iris_classifier(logistic_estimator, iris_header):
    return SklearnClassifierModel(logistic_estimator, iris_header)


@pytest.fixture
def naive_bayes_model(iris_df, iris_header):
    """Updateable classifier (GaussianNB supports partial_fit)."""
    estimator = GaussianNB().fit(iris_df[IRIS_FEATURES].to_numpy(), iris_df["class"])
    return SklearnClassifierModel(estimator, iris_header)


@pytest.fixture(scope="session")
def regression_header():
    attributes = [Attribute(name, AttributeKind.NUMERIC) for name in IRIS_FEATURES]
    return ModelSchema(tuple(attributes), target_index=3)


@pytest.fixture
def petal_regressor(iris_df, regression_header):
    estimator = LinearRegression().fit(iris_df[IRIS_FEATURES[:3]].to_numpy(), iris_df["petalwidth"])
    return SklearnClassifierModel(estimator, regression_header)


@pytest.fixture(scope="session")
def cluster_header():
    return ModelSchema(tuple(Attribute(name, AttributeKind.NUMERIC) for name in IRIS_FEATURES))


@pytest.fixture
def kmeans_model(iris_df, cluster_header):
    estimator = KMeans(n_clusters=3, n_init=10, random_state=0).fit(iris_df[IRIS_FEATURES].to_numpy())
    return SklearnClustererModel(estimator, cluster_header)


@pytest.fixture
def mixture_model(iris_df, cluster_header):
    estimator = GaussianMixture(n_components=3, random_state=0).fit(iris_df[IRIS_FEATURES].to_numpy())
    return SklearnClustererModel(estimator, cluster_header)
