"""
Unit tests for structural edits: insert, remove, move and copy.
"""

import pytest

from schema_builder.data_binder import extract_data, merge_data
from schema_builder.errors import (
    BrokenReferenceError, DuplicateIdentifierError, InvalidPatchError,
)
from schema_builder.flattener import flatten
from schema_builder.models import UNSET
from schema_builder.structure import copy_entry, insert_entry, move_entry, remove_entry
from schema_builder.unflattener import unflatten
from test_fixtures import SchemaFixtures


def _bound_profile():
    return merge_data(flatten(SchemaFixtures.get_nested_schema()), SchemaFixtures.get_nested_data())


def _keys(flat_map, entry_id='#'):
    return [flat_map[child].key for child in flat_map[entry_id].children]


class TestInsertEntry:
    """Test cases for insert_entry."""

    def test_insert_with_derived_key(self):
        """Test that keys derive from the node type."""
        flat_map = flatten(SchemaFixtures.get_simple_schema())

        flat_map, first = insert_entry(flat_map, '#', {'type': 'string'})
        flat_map, second = insert_entry(flat_map, '#', {'type': 'string'})

        assert (first, second) == ('#/string', '#/string_1')
        assert _keys(flat_map) == ['name', 'string', 'string_1']

    def test_untyped_insert_key(self):
        """Test the key of a node without a type."""
        flat_map, new_id = insert_entry(flatten(SchemaFixtures.get_simple_schema()), '#', {'title': 'Note'})

        assert new_id == '#/field'

    def test_insert_at_index(self):
        """Test positional insertion."""
        flat_map, new_id = insert_entry(flatten(SchemaFixtures.get_ordered_schema()), '#',
                                        {'type': 'boolean'}, key='flag', index=0)

        assert new_id == '#/flag'
        assert list(unflatten(flat_map)['properties']) == ['flag', 'b', 'a']

    def test_insert_nested_schema(self):
        """Test that nested fragments become whole subtrees."""
        flat_map, new_id = insert_entry(
            flatten(SchemaFixtures.get_simple_schema()), '#',
            {'type': 'object', 'properties': {'x': {'type': 'number'}}}, key='box'
        )

        assert new_id == '#/box'
        assert flat_map['#/box'].children == ('#/box/x',)
        assert unflatten(flat_map)['properties']['box'] == {
            'type': 'object', 'properties': {'x': {'type': 'number'}}
        }

    def test_input_map_untouched(self):
        """Test that inserting returns a new map."""
        flat_map = flatten(SchemaFixtures.get_simple_schema())

        insert_entry(flat_map, '#', {'type': 'string'}, key='email')

        assert '#/email' not in flat_map
        assert flat_map['#'].children == ('#/name',)

    def test_insert_into_leaf_rejected(self):
        """Test that only objects accept properties."""
        with pytest.raises(InvalidPatchError):
            insert_entry(flatten(SchemaFixtures.get_simple_schema()), '#/name', {'type': 'string'})

    def test_insert_duplicate_key(self):
        """Test explicit key collisions."""
        with pytest.raises(DuplicateIdentifierError):
            insert_entry(flatten(SchemaFixtures.get_simple_schema()), '#', {'type': 'string'}, key='name')

    def test_insert_into_placeholder_items_promotes_it(self):
        """Test that hidden items become visible once they get properties."""
        flat_map, new_id = insert_entry(
            flatten(SchemaFixtures.get_free_form_schema()), '#/list/[]', {'type': 'string'}, key='label'
        )

        assert new_id == '#/list/[]/label'
        assert not flat_map['#/list/[]'].placeholder
        assert unflatten(flat_map)['properties']['list']['items'] == {
            'type': 'object', 'properties': {'label': {'type': 'string'}}
        }

    def test_insert_into_free_form_object_spreads_data(self):
        """Test that a free-form value is re-bound to the new structure."""
        flat_map = merge_data(flatten(SchemaFixtures.get_free_form_schema()), {'meta': {'a': 'x', 'b': 'y'}})

        flat_map, new_id = insert_entry(flat_map, '#/meta', {'type': 'string'}, key='a')

        assert flat_map[new_id].value == 'x'
        assert extract_data(flat_map) == {'meta': {'a': 'x'}}
        assert unflatten(flat_map)['properties']['meta'] == {
            'type': 'object', 'properties': {'a': {'type': 'string'}}
        }


class TestRemoveEntry:
    """Test cases for remove_entry."""

    def test_remove_subtree(self):
        """Test that a removed entry takes its descendants along."""
        flat_map = remove_entry(_bound_profile(), '#/address')

        assert not any(entry_id.startswith('#/address') for entry_id in flat_map)
        assert 'address' not in unflatten(flat_map)['properties']
        assert 'address' not in extract_data(flat_map)
        flat_map.check_integrity()

    @pytest.mark.parametrize("entry_id", ['#', '#/tags/[]'])
    def test_remove_protected(self, entry_id):
        """Test that the root and items entries cannot be removed."""
        with pytest.raises(InvalidPatchError):
            remove_entry(_bound_profile(), entry_id)

    def test_remove_unknown(self):
        """Test removing an unknown id."""
        with pytest.raises(BrokenReferenceError):
            remove_entry(_bound_profile(), '#/nope')


class TestMoveEntry:
    """Test cases for move_entry."""

    def test_reorder_within_parent(self):
        """Test drag-and-drop reordering."""
        flat_map = move_entry(_bound_profile(), '#/age', '#', 0)

        assert _keys(flat_map)[:2] == ['age', 'name']
        assert list(extract_data(flat_map))[:2] == ['age', 'name']

    def test_reorder_to_end(self):
        """Test moving to the end when no index is given."""
        flat_map = move_entry(_bound_profile(), '#/name', '#')

        assert _keys(flat_map) == ['age', 'address', 'tags', 'contacts', 'name']

    def test_move_into_other_object_keeps_id_and_value(self):
        """Test re-parenting."""
        flat_map = move_entry(_bound_profile(), '#/name', '#/address')

        assert flat_map['#/name'].parent == '#/address'
        assert flat_map['#'].children[0] == '#/age'
        assert extract_data(flat_map)['address'] == {'city': 'London', 'zip': 'N1 1AA', 'name': 'Ada'}
        assert 'name' not in extract_data(flat_map)
        flat_map.check_integrity()

    def test_move_into_items_clears_values(self):
        """Test that entries moved below items become schema only."""
        flat_map = move_entry(_bound_profile(), '#/name', '#/contacts/[]')

        assert flat_map['#/name'].value is UNSET
        assert 'name' not in extract_data(flat_map)
        assert _keys(flat_map, '#/contacts/[]') == ['kind', 'value', 'name']

    def test_move_into_free_form_object_spreads_data(self):
        """Test that a free-form value is re-bound to the new structure."""
        schema = {'type': 'object', 'properties': {'meta': {'type': 'object'}, 'name': {'type': 'string'}}}
        flat_map = merge_data(flatten(schema), {'meta': {'name': 'Grace', 'city': 'Paris'}})

        flat_map = move_entry(flat_map, '#/name', '#/meta')

        assert flat_map['#/name'].value == 'Grace'
        assert extract_data(flat_map) == {'meta': {'name': 'Grace'}}
        assert unflatten(flat_map)['properties']['meta'] == {
            'type': 'object', 'properties': {'name': {'type': 'string'}}
        }

    def test_moved_value_wins_over_free_form_data(self):
        """Test that the moved entry keeps its own value."""
        schema = {'type': 'object', 'properties': {'meta': {'type': 'object'}, 'name': {'type': 'string'}}}
        flat_map = merge_data(flatten(schema), {'meta': {'name': 'Grace'}, 'name': 'Ada'})

        flat_map = move_entry(flat_map, '#/name', '#/meta')

        assert extract_data(flat_map) == {'meta': {'name': 'Ada'}}

    def test_move_into_own_subtree_rejected(self):
        """Test that an entry cannot become its own descendant."""
        flat_map = _bound_profile()

        with pytest.raises(InvalidPatchError):
            move_entry(flat_map, '#/address', '#/address')
        with pytest.raises(InvalidPatchError):
            move_entry(flat_map, '#/contacts', '#/contacts/[]')

    def test_move_into_leaf_rejected(self):
        """Test that the target must be an object."""
        with pytest.raises(InvalidPatchError):
            move_entry(_bound_profile(), '#/age', '#/name')

    def test_move_key_collision(self):
        """Test that the target must not already have the key."""
        flat_map, _ = insert_entry(_bound_profile(), '#', {'type': 'string'}, key='zip')

        with pytest.raises(DuplicateIdentifierError):
            move_entry(flat_map, '#/address/zip', '#')

    def test_move_root_rejected(self):
        """Test that the root cannot move."""
        with pytest.raises(InvalidPatchError):
            move_entry(_bound_profile(), '#', '#/address')


class TestCopyEntry:
    """Test cases for copy_entry."""

    def test_copy_subtree(self):
        """Test that a copy gets fresh ids, a new key and the same data."""
        flat_map, new_id = copy_entry(_bound_profile(), '#/address')

        assert new_id == '#/address_copy'
        assert flat_map[new_id].children == ('#/address_copy/city', '#/address_copy/zip')
        assert _keys(flat_map)[:4] == ['name', 'age', 'address', 'address_copy']
        data = extract_data(flat_map)
        assert data['address_copy'] == data['address']
        flat_map.check_integrity()

    def test_copy_twice(self):
        """Test that repeated copies get distinct keys."""
        flat_map, _ = copy_entry(_bound_profile(), '#/age')
        flat_map, second = copy_entry(flat_map, '#/age')

        assert second == '#/age_copy_1'
        assert _keys(flat_map)[1:4] == ['age', 'age_copy_1', 'age_copy']

    def test_copy_array_with_items(self):
        """Test copying an array keeps its items definition."""
        flat_map, new_id = copy_entry(_bound_profile(), '#/contacts')

        assert flat_map['#/contacts_copy/[]'].internal
        assert flat_map['#/contacts_copy/[]'].key is None
        assert unflatten(flat_map)['properties']['contacts_copy'] == \
            SchemaFixtures.get_nested_schema()['properties']['contacts']

    def test_copy_is_independent(self):
        """Test that editing the copy does not touch the original."""
        flat_map, new_id = copy_entry(_bound_profile(), '#/tags')

        assert flat_map[new_id].value == flat_map['#/tags'].value
        assert flat_map[new_id].value is not flat_map['#/tags'].value

    def test_copy_root_rejected(self):
        """Test that the root cannot be copied."""
        with pytest.raises(InvalidPatchError):
            copy_entry(_bound_profile(), '#')
