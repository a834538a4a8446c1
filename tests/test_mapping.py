"""
Tests for mapping module
========================
Tests for attribute-to-field mapping, compatibility rules and reports.
"""

import logging
import pytest
import sys
import os

from hypothesis import given, strategies as st

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from stream_scoring.mapping import (
    NO_MATCH,
    TYPE_MISMATCH,
    find_mappings,
    is_compatible,
    is_mapped,
    log_mapping,
    mapping_report,
    mapping_status
)
from stream_scoring.schema import (
    Attribute,
    AttributeKind,
    Field,
    FieldKind,
    ModelSchema,
    SourceRowSchema
)

attribute_kinds = st.sampled_from(list(AttributeKind))
field_kinds = st.sampled_from(list(FieldKind))
names = st.sampled_from(["a", "b", "c", "d", "e"])


@st.composite
def headers(draw):
    attribute_names = draw(st.lists(names, unique=True, max_size=5))
    attributes = []
    for name in attribute_names:
        kind = draw(attribute_kinds)
        values = ("x", "y") if kind is AttributeKind.NOMINAL else ()
        attributes.append(Attribute(name, kind, values))
    return ModelSchema(tuple(attributes))


@st.composite
def row_schemas(draw):
    fields = draw(st.lists(st.tuples(names, field_kinds), max_size=8))
    return SourceRowSchema(tuple(Field(name, kind) for name, kind in fields))


class TestCompatibility:
    """Tests for is_compatible"""

    @pytest.mark.parametrize("field_kind", [FieldKind.NUMERIC, FieldKind.INTEGER, FieldKind.BOOLEAN])
    def test_numeric_attribute_accepts_numbers(self, field_kind):
        assert is_compatible(AttributeKind.NUMERIC, field_kind)

    @pytest.mark.parametrize("field_kind", [FieldKind.STRING, FieldKind.DATE])
    def test_numeric_attribute_rejects_others(self, field_kind):
        assert not is_compatible(AttributeKind.NUMERIC, field_kind)

    @pytest.mark.parametrize("attribute_kind", [AttributeKind.NOMINAL, AttributeKind.STRING])
    def test_textual_attributes_need_string_fields(self, attribute_kind):
        assert is_compatible(attribute_kind, FieldKind.STRING)
        assert not is_compatible(attribute_kind, FieldKind.NUMERIC)
        assert not is_compatible(attribute_kind, FieldKind.INTEGER)


class TestFindMappings:
    """Tests for find_mappings"""

    def test_iris_identity(self, iris_header, iris_schema):
        assert find_mappings(iris_header, iris_schema) == (0, 1, 2, 3, 4)

    def test_reordered_fields(self, iris_header):
        schema = SourceRowSchema.of(
            ("class", "string"), ("petalwidth", "numeric"), ("petallength", "numeric"),
            ("sepalwidth", "numeric"), ("sepallength", "numeric"),
        )
        assert find_mappings(iris_header, schema) == (4, 3, 2, 1, 0)

    def test_missing_field(self, iris_header):
        schema = SourceRowSchema.of(
            ("sepallength", "numeric"), ("sepalwidth", "numeric"), ("petallength", "numeric"),
            ("class", "string"),
        )
        assert find_mappings(iris_header, schema) == (0, 1, 2, NO_MATCH, 3)

    def test_type_mismatch(self, iris_header):
        schema = SourceRowSchema.of(
            ("sepallength", "string"), ("sepalwidth", "numeric"), ("petallength", "numeric"),
            ("petalwidth", "integer"), ("class", "numeric"),
        )
        assert find_mappings(iris_header, schema) == (TYPE_MISMATCH, 1, 2, 3, TYPE_MISMATCH)

    def test_names_are_case_sensitive(self):
        header = ModelSchema((Attribute("Amount"),))
        schema = SourceRowSchema.of(("amount", "numeric"))
        assert find_mappings(header, schema) == (NO_MATCH,)

    def test_last_duplicate_wins(self):
        header = ModelSchema((Attribute("a"),))
        schema = SourceRowSchema.of(("a", "numeric"), ("a", "numeric"))
        assert find_mappings(header, schema) == (1,)

    def test_last_duplicate_kind_decides(self):
        header = ModelSchema((Attribute("a"),))
        schema = SourceRowSchema.of(("a", "numeric"), ("a", "string"))
        assert find_mappings(header, schema) == (TYPE_MISMATCH,)

    @given(headers(), row_schemas())
    def test_mapping_invariants(self, header, schema):
        mapping = find_mappings(header, schema)
        assert len(mapping) == len(header)
        for attribute, entry in zip(header, mapping):
            if is_mapped(entry):
                assert schema[entry].name == attribute.name
                assert is_compatible(attribute.kind, schema[entry].kind)
            elif entry == TYPE_MISMATCH:
                index = max(i for i, f in enumerate(schema) if f.name == attribute.name)
                assert not is_compatible(attribute.kind, schema[index].kind)
            else:
                assert entry == NO_MATCH
                assert attribute.name not in schema.names

    @given(headers(), row_schemas())
    def test_mapping_is_deterministic(self, header, schema):
        assert find_mappings(header, schema) == find_mappings(header, schema)


class TestMappingReport:
    """Tests for mapping_report and log_mapping"""

    def test_status_names(self):
        assert mapping_status(NO_MATCH) == "missing"
        assert mapping_status(TYPE_MISMATCH) == "type mismatch"
        assert mapping_status(3) == "ok"

    def test_report_entries(self, iris_header):
        schema = SourceRowSchema.of(
            ("sepallength", "numeric"), ("sepalwidth", "numeric"), ("petallength", "string"),
            ("class", "string"),
        )
        report = mapping_report(iris_header, schema, find_mappings(iris_header, schema))

        assert [r["status"] for r in report] == ["ok", "ok", "type mismatch", "missing", "ok"]
        assert report[2]["field_kind"] == "string"
        assert report[3]["field"] == "-"
        assert report[4]["attribute_kind"].startswith("nominal{Iris-setosa")
        assert report[4]["attribute_kind"].endswith("(target)")

    def test_log_warns_per_unusable_attribute(self, iris_header, caplog):
        schema = SourceRowSchema.of(("sepallength", "numeric"), ("class", "string"))
        with caplog.at_level(logging.INFO, logger="stream_scoring.mapping"):
            log_mapping(iris_header, schema, find_mappings(iris_header, schema))

        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 3
        assert "Mapped 2/5" in caplog.text
