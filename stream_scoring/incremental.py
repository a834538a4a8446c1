"""
Incremental model updates during scoring.

Supervised, updateable models can be refined with every scored row whose
target value is present. Eligibility is decided once per stream, right
after the schema mapping is computed; once disabled it stays disabled.
"""

import copy
import logging
from typing import Optional, Sequence

from .exceptions import IncrementalUpdateError
from .instance import Instance
from .mapping import is_mapped
from .models import ScoringModel

logger = logging.getLogger(__name__)


def private_copy(model: ScoringModel) -> ScoringModel:
    """Deep copy a model so that only one stream ever writes to it."""
    return copy.deepcopy(model)


class IncrementalUpdater:
    """Per-stream decision and execution of incremental model updates."""

    def __init__(self, model: Optional[ScoringModel], enabled: bool, reason: Optional[str] = None):
        self.model = model
        self.enabled = enabled
        self.reason = reason
        self.n_updates = 0

    @classmethod
    def disabled(cls, reason: Optional[str] = None) -> "IncrementalUpdater":
        return cls(None, False, reason)

    @classmethod
    def decide(cls, model: ScoringModel, mapping: Sequence[int], requested: bool,
               batch_mode: bool = False, model_from_field: bool = False) -> "IncrementalUpdater":
        """
        Decide whether ``model`` may be updated for the rest of the stream.

        Args:
            model: Model that will score the stream
            mapping: Attribute-to-field mapping for the stream
            requested: Whether incremental update was configured
            batch_mode: Whether rows are scored in batches
            model_from_field: Whether the model can change from row to row

        Returns:
            IncrementalUpdater, disabled with a reason when not eligible
        """
        if not requested:
            return cls.disabled()

        reason = None
        if model_from_field:
            reason = "models are loaded from an incoming field"
        elif batch_mode:
            reason = "rows are scored in batches"
        elif not model.is_supervised:
            reason = "only supervised models can be updated"
        elif not model.is_updateable:
            reason = "model is not updateable"
        elif not is_mapped(mapping[model.header.target_index]):
            reason = f"no incoming field matches target attribute '{model.header.target.name}'"

        if reason is not None:
            logger.error(f"Incremental model update disabled: {reason}")
            return cls.disabled(reason)

        logger.info(f"Model will be updated incrementally on target '{model.header.target.name}'")
        return cls(model, True)

    def apply(self, instance: Instance, row_number: int) -> bool:
        """
        Update the model with ``instance`` when its target value is present.

        Raises:
            IncrementalUpdateError: if the model update fails
        """
        if not self.enabled or instance.target_missing:
            return False

        try:
            updated = self.model.update(instance)
        except Exception as e:
            raise IncrementalUpdateError(row_number) from e

        if updated:
            self.n_updates += 1
        return updated
