"""
Instance construction.

Converts one incoming row into a fixed-length vector aligned with the model
header. Numeric and boolean values become doubles, nominal values become the
index of the value in the attribute domain, and anything that cannot be
mapped or converted becomes a missing value (NaN). A single bad field never
aborts the row.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence

import numpy as np
import pandas as pd

from .mapping import Mapping, is_mapped
from .schema import AttributeKind, FieldKind, ModelSchema, SourceRowSchema

logger = logging.getLogger(__name__)

MISSING = np.nan

_TRUE_STRINGS = {"y", "yes", "true", "t", "1", "on"}
_FALSE_STRINGS = {"n", "no", "false", "f", "0", "off"}


@dataclass
class Instance:
    """One model-input vector built from a source row."""
    values: np.ndarray
    header: ModelSchema
    strings: Dict[int, str] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.values)

    def is_missing(self, index: int) -> bool:
        return bool(np.isnan(self.values[index]))

    @property
    def target_missing(self) -> bool:
        """True when there is no target or the target slot is missing."""
        if self.header.target_index is None:
            return True
        return self.is_missing(self.header.target_index)

    def copy(self) -> "Instance":
        return Instance(self.values.copy(), self.header, dict(self.strings))


def is_null(value: Any) -> bool:
    """Null semantics of incoming values: None, NaN/NA/NaT and the empty string."""
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    try:
        result = pd.isna(value)
    except (TypeError, ValueError):
        return False
    return isinstance(result, (bool, np.bool_)) and bool(result)


def to_bool(value: Any) -> bool:
    if isinstance(value, (bool, np.bool_)):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
        raise ValueError(f"Cannot interpret '{value}' as a boolean")
    return float(value) != 0.0


def to_string(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def to_number(value: Any, field_kind: FieldKind) -> float:
    """Numeric encoding of a non-null value coming from a numeric, integer or boolean field."""
    if field_kind is FieldKind.BOOLEAN:
        return 1.0 if to_bool(value) else 0.0
    if field_kind is FieldKind.INTEGER:
        return float(int(value))
    return float(value)


class InstanceBuilder:
    """
    Builds instances for one stream using a precomputed mapping.

    Row-at-a-time scoring reuses a single scratch vector; callers that need
    several instances alive at once (batch scoring) must ask for fresh ones.
    """

    def __init__(self, header: ModelSchema, row_schema: SourceRowSchema, mapping: Mapping):
        if len(mapping) != len(header):
            raise ValueError(f"Mapping has {len(mapping)} entries but the header has {len(header)} attributes")
        self.header = header
        self.row_schema = row_schema
        self.mapping = tuple(mapping)
        self._scratch: Optional[np.ndarray] = None

    def build(self, row: Sequence[Any], fresh: bool = False) -> Instance:
        """
        Construct an instance for ``row``.

        Args:
            row: Values aligned with the source row schema
            fresh: Allocate a new vector instead of reusing the scratch buffer

        Returns:
            Instance with one slot per model attribute
        """
        if self._scratch is None or fresh:
            values = np.empty(len(self.header), dtype=float)
            if not fresh:
                self._scratch = values
        else:
            values = self._scratch

        strings: Dict[int, str] = {}
        for i, attribute in enumerate(self.header):
            entry = self.mapping[i]
            if not is_mapped(entry):
                values[i] = MISSING
                continue

            try:
                raw = row[entry]
                if is_null(raw):
                    values[i] = MISSING
                    continue

                if attribute.kind is AttributeKind.NUMERIC:
                    values[i] = to_number(raw, self.row_schema[entry].kind)
                elif attribute.kind is AttributeKind.NOMINAL:
                    index = attribute.index_of_value(to_string(raw))
                    values[i] = MISSING if index < 0 else float(index)
                elif attribute.kind is AttributeKind.STRING:
                    strings[i] = to_string(raw)
                    values[i] = 0.0
                else:
                    values[i] = MISSING
            except Exception as e:
                logger.debug(f"Could not convert value for attribute '{attribute.name}': {e}")
                values[i] = MISSING

        return Instance(values, self.header, strings)
