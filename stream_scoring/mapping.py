"""
Schema mapping between a model header and an incoming row schema.

The mapping holds, for every model attribute, either the index of the
matching source field or one of two sentinels:

- ``NO_MATCH``: no field with the attribute's name exists
- ``TYPE_MISMATCH``: a field exists but its kind cannot feed the attribute

Legal nominal values are not checked here; incoming strings are only known
as rows arrive, so domain lookups happen per row in the instance builder.
"""

import logging
from typing import Dict, List, Sequence, Tuple

from .schema import AttributeKind, FieldKind, ModelSchema, SourceRowSchema

logger = logging.getLogger(__name__)

NO_MATCH = -1
TYPE_MISMATCH = -2

Mapping = Tuple[int, ...]

_COMPATIBLE_KINDS: Dict[AttributeKind, frozenset] = {
    AttributeKind.NUMERIC: frozenset({FieldKind.NUMERIC, FieldKind.INTEGER, FieldKind.BOOLEAN}),
    AttributeKind.NOMINAL: frozenset({FieldKind.STRING}),
    AttributeKind.STRING: frozenset({FieldKind.STRING}),
}


def is_compatible(attribute_kind: AttributeKind, field_kind: FieldKind) -> bool:
    """Whether a field of ``field_kind`` can supply values for an attribute of ``attribute_kind``."""
    return FieldKind(field_kind) in _COMPATIBLE_KINDS.get(AttributeKind(attribute_kind), frozenset())


def is_mapped(entry: int) -> bool:
    return entry >= 0


def find_mappings(header: ModelSchema, row_schema: SourceRowSchema) -> Mapping:
    """
    Map each model attribute to an incoming field by exact, case-sensitive name.

    Args:
        header: Model attribute header
        row_schema: Schema of the incoming rows

    Returns:
        Tuple with one entry per attribute: a field index, NO_MATCH or TYPE_MISMATCH
    """
    lookup: Dict[str, int] = {}
    for i, f in enumerate(row_schema):
        # the last of several fields with the same name wins
        lookup[f.name] = i

    mapping: List[int] = []
    for attribute in header:
        index = lookup.get(attribute.name)
        if index is None:
            mapping.append(NO_MATCH)
        elif is_compatible(attribute.kind, row_schema[index].kind):
            mapping.append(index)
        else:
            mapping.append(TYPE_MISMATCH)

    return tuple(mapping)


def mapping_status(entry: int) -> str:
    if entry == NO_MATCH:
        return "missing"
    if entry == TYPE_MISMATCH:
        return "type mismatch"
    return "ok"


def mapping_report(header: ModelSchema, row_schema: SourceRowSchema,
                   mapping: Sequence[int]) -> List[Dict[str, str]]:
    """
    Describe a mapping, one record per model attribute.

    Returns:
        List of dicts with attribute, attribute kind, field, field kind and status
    """
    records = []
    for i, attribute in enumerate(header):
        entry = mapping[i]
        kind = attribute.kind.value
        if attribute.is_nominal:
            kind = "nominal{" + ",".join(attribute.values) + "}"
        if i == header.target_index:
            kind += " (target)"

        field_index = entry if is_mapped(entry) else row_schema.index_of(attribute.name)
        records.append({
            "attribute": attribute.name,
            "attribute_kind": kind,
            "field": row_schema[field_index].name if field_index >= 0 else "-",
            "field_kind": row_schema[field_index].kind.value if field_index >= 0 else "-",
            "status": mapping_status(entry),
        })
    return records


def log_mapping(header: ModelSchema, row_schema: SourceRowSchema, mapping: Sequence[int]) -> None:
    """Log a one-line mapping summary plus a warning per unusable attribute."""
    mapped = sum(1 for entry in mapping if is_mapped(entry))
    logger.info(f"Mapped {mapped}/{len(header)} model attributes to incoming fields")

    for record in mapping_report(header, row_schema, mapping):
        if record["status"] != "ok":
            logger.warning(
                f"Attribute '{record['attribute']}' ({record['attribute_kind']}) is {record['status']}; "
                "it will be treated as missing"
            )
