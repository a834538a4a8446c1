"""
Stream Scoring - apply trained models to streams of rows

Scores every incoming row with a previously trained model and appends the
prediction to it:

- Name-based mapping of model attributes onto incoming fields
- Class labels, regression values or cluster indices, optionally as
  per-class or per-cluster probabilities
- Batch scoring for batch-capable models
- Incremental model updates while scoring, with the updated model saved at
  the end of the stream
- Per-row model selection from a field holding a model path, with caching
- YAML/environment configuration, Prometheus metrics and a command-line tool

Version: 1.0.0
"""

__version__ = "1.0.0"
__author__ = "Stream Scoring Team"


# Core imports for easy access
from .config import ScoringConfig, load_config, save_config
from .exceptions import (
    ScoringError,
    ConfigurationError,
    ModelLoadError,
    RowPredictionError,
    BatchPredictionError,
    IncrementalUpdateError
)

# Schemas and mapping
from .schema import (
    AttributeKind,
    FieldKind,
    Attribute,
    ModelSchema,
    Field,
    SourceRowSchema
)
from .mapping import (
    NO_MATCH,
    TYPE_MISMATCH,
    find_mappings,
    mapping_report
)
from .instance import Instance, InstanceBuilder, MISSING

# Models
from .models import (
    ScoringModel,
    SklearnClassifierModel,
    SklearnClustererModel,
    create_scorer
)
from .model_io import load_model, save_model, ModelCache

# Scoring
from .dispatch import PredictionDispatcher, output_fields, UNABLE_TO_PREDICT, UNABLE_TO_ASSIGN_CLUSTER
from .batching import BatchAccumulator, resolve_batch_size
from .incremental import IncrementalUpdater
from .step import ScoringStep
from .inference import score_dataframe, read_table, save_predictions

__all__ = [
    # Configuration
    'ScoringConfig',
    'load_config',
    'save_config',

    # Errors
    'ScoringError',
    'ConfigurationError',
    'ModelLoadError',
    'RowPredictionError',
    'BatchPredictionError',
    'IncrementalUpdateError',

    # Schemas and mapping
    'AttributeKind',
    'FieldKind',
    'Attribute',
    'ModelSchema',
    'Field',
    'SourceRowSchema',
    'NO_MATCH',
    'TYPE_MISMATCH',
    'find_mappings',
    'mapping_report',
    'Instance',
    'InstanceBuilder',
    'MISSING',

    # Models
    'ScoringModel',
    'SklearnClassifierModel',
    'SklearnClustererModel',
    'create_scorer',
    'load_model',
    'save_model',
    'ModelCache',

    # Scoring
    'PredictionDispatcher',
    'output_fields',
    'UNABLE_TO_PREDICT',
    'UNABLE_TO_ASSIGN_CLUSTER',
    'BatchAccumulator',
    'resolve_batch_size',
    'IncrementalUpdater',
    'ScoringStep',
    'score_dataframe',
    'read_table',
    'save_predictions',
]
