"""
Batch accumulation for batch-capable models.

Rows are buffered until the batch size is reached or the stream ends; the
caller then scores the whole buffer with a single model call. When batch
mode is off the accumulator is idle and rows pass straight through.
"""

import logging
from enum import Enum
from typing import Any, List, Optional, Sequence, Tuple, Union

from .config import DEFAULT_BATCH_SCORING_SIZE, is_empty, resolve_variables
from .models import ScoringModel

logger = logging.getLogger(__name__)

BufferedRow = Tuple[int, Sequence[Any]]


class BatchState(str, Enum):
    IDLE = "idle"
    ACCUMULATING = "accumulating"


def _parse_size(value: Any) -> Optional[int]:
    if is_empty(value):
        return None
    try:
        size = int(str(resolve_variables(str(value))).strip())
    except ValueError:
        return None
    return size if size > 0 else None


def resolve_batch_size(configured: Optional[Union[str, int]], model_preferred: Optional[Union[str, int]] = None,
                       default: int = DEFAULT_BATCH_SCORING_SIZE) -> int:
    """
    Determine the batch size for a stream.

    The configured value (after ``${VAR}`` substitution) wins; if it is unset
    or unparsable the model's preferred batch size is used, then ``default``.
    """
    size = _parse_size(configured)
    if size is not None:
        return size

    if not is_empty(configured):
        logger.info(f"Unable to parse batch scoring size '{configured}', trying the model's preferred batch size")
    preferred = _parse_size(model_preferred)
    if preferred is not None:
        return preferred

    if not is_empty(configured):
        logger.info(f"Unable to parse batch scoring size, using default of {default}")
    return default


def batch_mode_enabled(model: ScoringModel, model_from_field: bool, batch_scoring: bool = True) -> bool:
    """Batch scoring needs a batch-capable model that stays fixed for the whole stream."""
    return batch_scoring and model.is_batch_capable and not model_from_field


class BatchAccumulator:
    """Bounded row buffer owned by a single stream."""

    def __init__(self, batch_size: int, enabled: bool = True):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.batch_size = batch_size
        self.enabled = enabled
        self._buffer: List[BufferedRow] = []

    @property
    def state(self) -> BatchState:
        return BatchState.ACCUMULATING if self.enabled else BatchState.IDLE

    def __len__(self) -> int:
        return len(self._buffer)

    def add(self, row_number: int, row: Sequence[Any]) -> Optional[List[BufferedRow]]:
        """
        Buffer a row.

        Returns:
            The rows to score now (the full buffer, or just this row when
            idle), or None while the batch is still filling
        """
        if not self.enabled:
            return [(row_number, row)]

        self._buffer.append((row_number, row))
        if len(self._buffer) >= self.batch_size:
            return self.drain()
        return None

    def drain(self) -> List[BufferedRow]:
        """Return and clear whatever is buffered (the end-of-stream partial batch)."""
        batch, self._buffer = self._buffer, []
        return batch
