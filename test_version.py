"""
Unit tests for schema document version normalization.
"""

import copy
import logging
import pytest

from schema_builder.version import (
    SchemaVersion, combine_ui_schema, detect_version, normalize_version,
    split_document, split_form_props, to_legacy,
)
from test_fixtures import SchemaFixtures


class TestDetectVersion:
    """Test cases for detect_version."""

    def test_legacy(self):
        """Test the propsSchema marker."""
        assert detect_version(SchemaFixtures.get_legacy_document()) is SchemaVersion.LEGACY

    def test_wrapped(self):
        """Test the schema wrapper marker."""
        assert detect_version(SchemaFixtures.get_wrapped_document()) is SchemaVersion.WRAPPED

    def test_current(self):
        """Test bare schema trees."""
        assert detect_version(SchemaFixtures.get_nested_schema()) is SchemaVersion.CURRENT

    def test_schema_keyword_on_typed_node_is_not_a_wrapper(self):
        """Test that a 'schema' keyword next to 'type' is ordinary."""
        assert detect_version({'type': 'object', 'schema': {'type': 'string'}}) is SchemaVersion.CURRENT

    @pytest.mark.parametrize("document", [None, [], 'schema', 42])
    def test_unknown(self, document):
        """Test non-mapping documents."""
        assert detect_version(document) is SchemaVersion.UNKNOWN


class TestNormalizeLegacy:
    """Test cases for the legacy convention."""

    def test_legacy_combined(self):
        """Test uiSchema folding and form props."""
        result = normalize_version(SchemaFixtures.get_legacy_document())

        assert result == {
            'type': 'object',
            'properties': {
                'name': {
                    'type': 'string',
                    'width': '50%',
                    'widget': 'textarea',
                    'props': {'rows': 3},
                },
                'list': {
                    'type': 'array',
                    'items': {
                        'type': 'object',
                        'properties': {'label': {'type': 'string', 'hidden': True}},
                    },
                },
            },
            'displayType': 'row',
        }

    def test_ui_schema_wins_over_inline(self):
        """Test precedence of uiSchema entries."""
        result = combine_ui_schema({'type': 'string', 'ui:widget': 'input'}, {'ui:widget': 'textarea'})

        assert result == {'type': 'string', 'widget': 'textarea'}

    def test_split_document(self):
        """Test the parts of a legacy document."""
        normalized = split_document(SchemaFixtures.get_legacy_document())

        assert normalized.version is SchemaVersion.LEGACY
        assert normalized.form_props == {'displayType': 'row'}
        assert normalized.form_data == {'name': 'Ada', 'list': [{'label': 'first'}]}
        assert 'displayType' not in normalized.schema

    def test_split_form_props(self):
        """Test schema/form props separation."""
        schema, form_props = split_form_props(SchemaFixtures.get_legacy_document())

        assert schema['type'] == 'object'
        assert form_props == {'displayType': 'row'}

    def test_malformed_legacy_passed_through(self, caplog):
        """Test that an unusable propsSchema is returned unchanged."""
        document = {'propsSchema': ['not', 'a', 'schema']}

        with caplog.at_level(logging.WARNING, logger='schema_builder.version'):
            result = normalize_version(document)

        assert result == document
        assert "malformed" in caplog.text

    def test_input_not_mutated(self):
        """Test that normalization copies the document."""
        document = SchemaFixtures.get_legacy_document()
        before = copy.deepcopy(document)

        result = normalize_version(document)
        result['properties']['name']['props']['rows'] = 10

        assert document == before


class TestNormalizeOther:
    """Test cases for wrapped, current and unknown documents."""

    def test_wrapped(self):
        """Test that the wrapper is removed and form props merged onto the root."""
        result = normalize_version(SchemaFixtures.get_wrapped_document())

        assert result == {
            'type': 'object',
            'properties': {'name': {'type': 'string'}},
            'displayType': 'column',
            'labelWidth': 120,
        }

    def test_wrapped_form_data(self):
        """Test that embedded form data is split off."""
        normalized = split_document(SchemaFixtures.get_wrapped_document())

        assert normalized.form_data == {'name': 'Ada'}
        assert normalized.form_props == {'displayType': 'column', 'labelWidth': 120}

    def test_current_unchanged(self):
        """Test that current schemas are returned as they are."""
        schema = SchemaFixtures.get_nested_schema()

        assert normalize_version(schema) is schema

    def test_unknown_passed_through(self, caplog):
        """Test that unrecognised input never raises."""
        with caplog.at_level(logging.WARNING, logger='schema_builder.version'):
            assert normalize_version(['x']) == ['x']

        assert "Unrecognized" in caplog.text


class TestToLegacy:
    """Test cases for legacy export."""

    def test_form_props_lifted(self):
        """Test that form props move back to the document level."""
        schema = {'type': 'object', 'properties': {}, 'displayType': 'row'}

        result = to_legacy(schema, {'displayType': 'column'})

        assert result == {
            'propsSchema': {'type': 'object', 'properties': {}},
            'displayType': 'row',
        }

    def test_without_form_props(self):
        """Test plain wrapping."""
        schema = SchemaFixtures.get_simple_schema()

        assert to_legacy(schema) == {'propsSchema': schema}
