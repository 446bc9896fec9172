"""
Unit tests for settings validation.
"""

import pytest

from schema_builder.settings_validation import EntrySettings, collect_error_fields, validate_settings


class TestEntrySettings:
    """Test cases for the EntrySettings model."""

    def test_valid_settings(self):
        """Test a typical settings value."""
        value = {
            '$id': '#/name',
            'type': 'string',
            'title': 'Name',
            'widget': 'textarea',
            'props': {'rows': 3},
        }

        settings = EntrySettings.model_validate(value)

        assert settings.id == '#/name'
        assert settings.props == {'rows': 3}
        assert validate_settings(value) == []

    def test_unknown_keywords_allowed(self):
        """Test that custom keywords pass through."""
        settings = EntrySettings.model_validate({'type': 'string', 'x-color': 'red'})

        assert settings.model_extra == {'x-color': 'red'}

    def test_type_list(self):
        """Test union types."""
        assert validate_settings({'type': ['string', 'null']}) == []

    @pytest.mark.parametrize("value,field", [
        ({'title': 5}, 'title'),
        ({'$id': 'name'}, '$id'),
        ({'enum': ['a', 'b'], 'enumNames': ['A']}, 'enumNames'),
        ({'min': 5, 'max': 1}, 'max'),
        ({'props': 'rows=3'}, 'props'),
    ])
    def test_invalid_settings(self, value, field):
        """Test the rejected keyword values."""
        errors = validate_settings(value)

        assert errors
        assert errors[0].startswith(field)


class TestCollectErrorFields:
    """Test cases for collect_error_fields."""

    def test_valid(self):
        """Test that a valid value has no error fields."""
        assert collect_error_fields({'type': 'number', 'min': 0, 'max': 10}) == []

    def test_errors_grouped_per_field(self):
        """Test that errors are grouped by their field name."""
        fields = collect_error_fields({'title': 5, 'description': [], 'type': 'string'})

        assert [f['name'] for f in fields] == ['title', 'description']
        assert all(len(f['errors']) == 1 for f in fields)

    def test_non_mapping(self):
        """Test that a non-object value is reported under the root."""
        fields = collect_error_fields(['string'])

        assert fields[0]['name'] == '#'
        assert "list" in fields[0]['errors'][0]
