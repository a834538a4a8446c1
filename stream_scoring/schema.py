"""
Schema descriptors for the scoring engine.

Two independently evolved schemas meet at run time:

- ``ModelSchema``: the ordered attributes a model was trained with
  (numeric, nominal with a fixed domain, or free-text string), with at most
  one attribute designated as the target.
- ``SourceRowSchema``: the ordered fields of the live row stream, each with a
  primitive kind.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple
import logging

import pandas as pd
from pandas.api import types as ptypes

logger = logging.getLogger(__name__)


class AttributeKind(str, Enum):
    """Kinds of model attributes."""
    NUMERIC = "numeric"
    NOMINAL = "nominal"
    STRING = "string"


class FieldKind(str, Enum):
    """Primitive kinds of incoming row fields."""
    NUMERIC = "numeric"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    STRING = "string"
    DATE = "date"


@dataclass(frozen=True)
class Attribute:
    """A single model input attribute."""
    name: str
    kind: AttributeKind = AttributeKind.NUMERIC
    values: Tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "kind", AttributeKind(self.kind))
        object.__setattr__(self, "values", tuple(str(v) for v in self.values))
        if self.values and self.kind is not AttributeKind.NOMINAL:
            raise ValueError(f"Attribute '{self.name}' is {self.kind.value} but declares a value domain")

    @property
    def is_numeric(self) -> bool:
        return self.kind is AttributeKind.NUMERIC

    @property
    def is_nominal(self) -> bool:
        return self.kind is AttributeKind.NOMINAL

    @property
    def is_string(self) -> bool:
        return self.kind is AttributeKind.STRING

    def index_of_value(self, value: str) -> int:
        """Index of ``value`` in the nominal domain, or -1 if it is not a legal value."""
        try:
            return self.values.index(value)
        except ValueError:
            return -1

    def to_dict(self) -> Dict[str, Any]:
        data = {"name": self.name, "kind": self.kind.value}
        if self.values:
            data["values"] = list(self.values)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Attribute":
        return cls(name=data["name"], kind=AttributeKind(data.get("kind", "numeric")),
                   values=tuple(data.get("values", ())))


@dataclass(frozen=True)
class ModelSchema:
    """Ordered, immutable attribute header produced by a trained model."""
    attributes: Tuple[Attribute, ...]
    target_index: Optional[int] = None

    def __post_init__(self):
        object.__setattr__(self, "attributes", tuple(self.attributes))
        names = [a.name for a in self.attributes]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate attribute names in model schema: {names}")
        if self.target_index is not None and not 0 <= self.target_index < len(self.attributes):
            raise ValueError(f"Target index {self.target_index} out of range for {len(names)} attributes")

    def __len__(self) -> int:
        return len(self.attributes)

    def __iter__(self) -> Iterator[Attribute]:
        return iter(self.attributes)

    def __getitem__(self, index: int) -> Attribute:
        return self.attributes[index]

    @property
    def names(self) -> List[str]:
        return [a.name for a in self.attributes]

    @property
    def target(self) -> Optional[Attribute]:
        if self.target_index is None:
            return None
        return self.attributes[self.target_index]

    @property
    def input_indices(self) -> List[int]:
        """Indices of all attributes other than the target."""
        return [i for i in range(len(self.attributes)) if i != self.target_index]

    def index_of(self, name: str) -> int:
        for i, attribute in enumerate(self.attributes):
            if attribute.name == name:
                return i
        return -1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attributes": [a.to_dict() for a in self.attributes],
            "target_index": self.target_index,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ModelSchema":
        return cls(
            attributes=tuple(Attribute.from_dict(a) for a in data["attributes"]),
            target_index=data.get("target_index"),
        )

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame, target: Optional[str] = None) -> "ModelSchema":
        """
        Infer a model header from a training frame.

        Numeric and boolean columns become numeric attributes; any other column
        becomes a nominal attribute whose domain is the sorted set of observed
        values.

        Args:
            df: Training data
            target: Name of the target column (None for unsupervised models)

        Returns:
            ModelSchema with attributes in column order
        """
        attributes = []
        for column in df.columns:
            series = df[column]
            if ptypes.is_bool_dtype(series) or ptypes.is_numeric_dtype(series):
                attributes.append(Attribute(str(column), AttributeKind.NUMERIC))
            else:
                domain = sorted({str(v) for v in series.dropna().unique()})
                attributes.append(Attribute(str(column), AttributeKind.NOMINAL, tuple(domain)))

        target_index = None
        if target is not None:
            if target not in df.columns:
                raise ValueError(f"Target column '{target}' not found in training frame")
            target_index = list(df.columns).index(target)

        return cls(tuple(attributes), target_index)


@dataclass(frozen=True)
class Field:
    """A single field of the incoming row stream."""
    name: str
    kind: FieldKind = FieldKind.STRING

    def __post_init__(self):
        object.__setattr__(self, "kind", FieldKind(self.kind))

    @property
    def is_numeric(self) -> bool:
        return self.kind in (FieldKind.NUMERIC, FieldKind.INTEGER)


@dataclass(frozen=True)
class SourceRowSchema:
    """Ordered field descriptors of a row stream."""
    fields: Tuple[Field, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "fields", tuple(self.fields))

    def __len__(self) -> int:
        return len(self.fields)

    def __iter__(self) -> Iterator[Field]:
        return iter(self.fields)

    def __getitem__(self, index: int) -> Field:
        return self.fields[index]

    @property
    def names(self) -> List[str]:
        return [f.name for f in self.fields]

    def index_of(self, name: str) -> int:
        """Index of the first field called ``name``, or -1."""
        for i, f in enumerate(self.fields):
            if f.name == name:
                return i
        return -1

    def extend(self, extra: Iterable[Field]) -> "SourceRowSchema":
        """Return a new schema with ``extra`` fields appended."""
        return SourceRowSchema(self.fields + tuple(extra))

    @classmethod
    def of(cls, *fields: Sequence) -> "SourceRowSchema":
        """Build a schema from ``(name, kind)`` pairs."""
        return cls(tuple(Field(name, FieldKind(kind)) for name, kind in fields))

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame) -> "SourceRowSchema":
        """Derive field kinds from pandas dtypes."""
        fields = []
        for column in df.columns:
            dtype = df[column].dtype
            if ptypes.is_bool_dtype(dtype):
                kind = FieldKind.BOOLEAN
            elif ptypes.is_integer_dtype(dtype):
                kind = FieldKind.INTEGER
            elif ptypes.is_float_dtype(dtype):
                kind = FieldKind.NUMERIC
            elif ptypes.is_datetime64_any_dtype(dtype):
                kind = FieldKind.DATE
            else:
                kind = FieldKind.STRING
            fields.append(Field(str(column), kind))
        return cls(tuple(fields))
