"""DataFrame utilities around the scoring step."""

import pandas as pd
import numpy as np
from pathlib import Path
from typing import Union, Optional, Dict, Any
import logging

from .config import ScoringConfig
from .instance import is_null
from .models import ScoringModel
from .schema import SourceRowSchema
from .step import ScoringStep

logger = logging.getLogger(__name__)


def read_table(filepath: Union[str, Path]) -> pd.DataFrame:
    """
    Load a data file, choosing the reader from the extension.

    Args:
        filepath: Path to a .csv, .parquet or .json file

    Returns:
        Loaded dataframe
    """
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"Data file not found: {filepath}")

    if filepath.suffix == '.parquet':
        df = pd.read_parquet(filepath)
    elif filepath.suffix == '.json':
        df = pd.read_json(filepath)
    else:
        # Default to CSV
        df = pd.read_csv(filepath)

    logger.info(f"Data loaded from {filepath}: {len(df)} rows, {len(df.columns)} columns")
    return df


def _row_values(df: pd.DataFrame):
    # NaN/NaT become None so that missing values look the same for every dtype
    for row in df.itertuples(index=False, name=None):
        yield [None if is_null(v) else v for v in row]


def score_dataframe(df: pd.DataFrame, model: Optional[ScoringModel] = None,
                    config: Optional[ScoringConfig] = None,
                    step: Optional[ScoringStep] = None) -> pd.DataFrame:
    """
    Score every row of a dataframe.

    Args:
        df: Incoming rows; column dtypes determine the field kinds
        model: Model to score with (``config.model_file`` or
            ``config.model_field`` are used when omitted)
        config: Scoring configuration
        step: Existing step to run (``model`` and ``config`` are then ignored)

    Returns:
        Dataframe with the input columns followed by the prediction columns
    """
    if step is None:
        step = ScoringStep(config, model=model)

    input_schema = SourceRowSchema.from_dataframe(df)
    rows = list(step.process(_row_values(df), input_schema))

    if step.output_fields:
        columns = input_schema.extend(step.output_fields).names
    else:
        columns = step.output_schema(input_schema).names

    result = pd.DataFrame(rows, columns=columns)
    logger.info(f"Scored {len(result)} rows")
    return result


def prediction_summary(scored: pd.DataFrame, prediction_columns) -> Dict[str, Any]:
    """
    Summarize appended prediction columns.

    Numeric columns get mean/std/min/max, label columns get value counts.
    """
    summary = {}
    for column in prediction_columns:
        values = scored[column]
        numeric = pd.to_numeric(values, errors='coerce')
        if numeric.notna().sum() == values.notna().sum() and values.notna().any():
            summary[column] = {
                'mean': float(np.mean(numeric)),
                'std': float(np.std(numeric)),
                'min': float(np.min(numeric)),
                'max': float(np.max(numeric)),
            }
        else:
            summary[column] = {str(k): int(v) for k, v in values.value_counts(dropna=False).items()}
    return summary


def save_predictions(scored: pd.DataFrame, filepath: Union[str, Path]) -> None:
    """
    Save scored rows to file.

    Args:
        scored: Output of ``score_dataframe``
        filepath: Output file path (.csv, .parquet or .json)
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    # Save based on extension
    if filepath.suffix == '.parquet':
        scored.to_parquet(filepath, index=False)
    elif filepath.suffix == '.json':
        scored.to_json(filepath, orient='records', indent=2)
    else:
        scored.to_csv(filepath, index=False)

    logger.info(f"Predictions saved to {filepath}")
