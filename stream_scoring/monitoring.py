"""
Prometheus metrics for scoring streams.

Metrics live in a module-local registry so that importing the package
never touches the default global registry; expose ``scoring_registry``
from the host process to publish them.
"""

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

scoring_registry = CollectorRegistry()

scoring_rows_total = Counter(
    'scoring_rows_total',
    'Total number of rows scored',
    ['mode'],  # mode: row, batch
    registry=scoring_registry
)

scoring_failures_total = Counter(
    'scoring_failures_total',
    'Total number of scoring failures',
    ['kind'],  # kind: row, batch, update
    registry=scoring_registry
)

scoring_batch_size = Histogram(
    'scoring_batch_size',
    'Number of rows per batch flush',
    buckets=(1, 10, 50, 100, 500, 1000, 5000),
    registry=scoring_registry
)

scoring_incremental_updates_total = Counter(
    'scoring_incremental_updates_total',
    'Total number of incremental model updates',
    registry=scoring_registry
)

scoring_unmapped_attributes = Gauge(
    'scoring_unmapped_attributes',
    'Model attributes without a usable incoming field in the latest stream',
    registry=scoring_registry
)

__all__ = [
    'scoring_registry',
    'scoring_rows_total',
    'scoring_failures_total',
    'scoring_batch_size',
    'scoring_incremental_updates_total',
    'scoring_unmapped_attributes',
]
