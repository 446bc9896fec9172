"""
Incremental mutator: replaces a single flat map entry.

A mutation never changes ids and never reorders siblings. The only cascade is
a change of node kind, which discards the old subtree and materialises the
default children of the new kind.
"""

from copy import deepcopy
from typing import Any, Dict, List, Mapping, Optional
import logging

from .data_binder import bind_subtree, extract_value
from .errors import DuplicateIdentifierError, InvalidPatchError
from .flattener import placeholder_items_entry
from .identifiers import IdAllocator, ITEMS_SEGMENT
from .models import (
    FlatEntry, FlatMap, NodeKind, ID_KEYWORD, UNSET, node_kind,
)

logger = logging.getLogger(__name__)

_KEEP = object()

PATCH_FIELDS = ('schema', 'value', 'key')


def mutate_entry(flat_map: FlatMap, entry_id: str, patch: Mapping[str, Any]) -> FlatMap:
    """
    Apply a patch to one entry and return the new map.

    Args:
        flat_map: Current map (left untouched)
        entry_id: Id of the entry to change
        patch: Any of 'schema' (replacement own keywords), 'value' and 'key'
            (new property name)

    Returns:
        New FlatMap sharing every unaffected entry with `flat_map`

    Raises:
        BrokenReferenceError: If `entry_id` is not in the map
        InvalidPatchError: If the patch is malformed or not applicable
        DuplicateIdentifierError: If the new key is used by a sibling
    """
    entry = flat_map.get_entry(entry_id)
    if not isinstance(patch, Mapping):
        raise InvalidPatchError(entry_id, f"patch must be a mapping, got {type(patch).__name__}")
    unknown = sorted(set(patch) - set(PATCH_FIELDS))
    if unknown:
        raise InvalidPatchError(entry_id, f"unknown patch fields {unknown}")

    updated = entry
    updates: Dict[str, FlatEntry] = {}
    removals: List[str] = []
    rebind: Any = _KEEP

    if 'key' in patch:
        updated = _renamed(flat_map, entry, patch['key'])

    if 'schema' in patch:
        new_schema = _own_schema(entry, patch['schema'])
        new_kind = node_kind(new_schema)
        if new_kind is entry.kind:
            updated = updated.evolve(schema=new_schema)
        else:
            logger.info(f"Entry {entry_id} changes kind {entry.kind.value} -> {new_kind.value}")
            if not is_inside_items(flat_map, entry_id):
                rebind = extract_value(flat_map, entry_id)
            removals = list(flat_map.descendants(entry_id))
            children = _default_children(flat_map, entry_id, new_kind, removals, updates)
            updated = updated.evolve(
                kind=new_kind,
                schema=new_schema,
                children=children,
                declared_properties=new_kind is NodeKind.OBJECT,
                value=UNSET,
            )
        if updated.placeholder:
            updated = updated.evolve(placeholder=False)
            promote_placeholders(flat_map, updated.parent, updates)

    if 'value' in patch:
        if is_inside_items(flat_map, entry_id):
            raise InvalidPatchError(entry_id, "entries inside array items hold no values")
        rebind = patch['value']

    updates[entry_id] = updated
    result = flat_map.evolve(updates, removals)

    if rebind is not _KEEP:
        value_updates, mismatches = bind_subtree(result, entry_id, rebind)
        for mismatch in mismatches:
            logger.warning(f"[MUTATOR] {mismatch}")
        if value_updates:
            result = result.evolve(value_updates)

    logger.debug(f"Mutated {entry_id}: fields {sorted(patch)}, removed {len(removals)} descendants")
    return result


def is_inside_items(flat_map: Mapping[str, FlatEntry], entry_id: str) -> bool:
    """True for entries at or below an array items entry (schema only)."""
    current: Optional[str] = entry_id
    while current is not None:
        entry = flat_map[current]
        if entry.internal:
            return True
        current = entry.parent
    return False


def promote_placeholders(flat_map: Mapping[str, FlatEntry], entry_id: Optional[str],
                         updates: Dict[str, FlatEntry]) -> None:
    """Turn placeholder items at or above `entry_id` into real items."""
    current = entry_id
    while current is not None:
        entry = updates.get(current) or flat_map[current]
        if entry.placeholder:
            updates[current] = entry.evolve(placeholder=False)
        current = entry.parent


def _renamed(flat_map: FlatMap, entry: FlatEntry, key: Any) -> FlatEntry:
    if entry.parent is None or entry.internal:
        raise InvalidPatchError(entry.id, "only object properties can be renamed")
    if not isinstance(key, str) or not key:
        raise InvalidPatchError(entry.id, f"property name must be a non-empty string, got {key!r}")
    if key == entry.key:
        return entry

    parent = flat_map.get_entry(entry.parent, entry.id)
    for sibling_id in parent.children:
        if sibling_id != entry.id and flat_map.get_entry(sibling_id, parent.id).key == key:
            raise DuplicateIdentifierError(key, scope=f"properties of '{parent.id}'")
    return entry.evolve(key=key)


def _own_schema(entry: FlatEntry, schema: Any) -> Dict[str, Any]:
    if not isinstance(schema, Mapping):
        raise InvalidPatchError(entry.id, f"schema must be a mapping, got {type(schema).__name__}")

    kind = node_kind(schema)
    structural = {NodeKind.OBJECT: 'properties', NodeKind.ARRAY: 'items'}.get(kind)
    if structural is not None and structural in schema:
        raise InvalidPatchError(
            entry.id, f"'{structural}' is edited through child entries, not the entry's own schema"
        )

    identifier = schema.get(ID_KEYWORD)
    if isinstance(identifier, str) and identifier.startswith('#'):
        if identifier != entry.id:
            raise InvalidPatchError(entry.id, f"ids cannot change (got '$id' {identifier!r})")
        return {name: deepcopy(value) for name, value in schema.items() if name != ID_KEYWORD}
    return deepcopy(dict(schema))


def _default_children(flat_map: FlatMap, entry_id: str, kind: NodeKind,
                      removals: List[str], updates: Dict[str, FlatEntry]) -> tuple:
    if kind is NodeKind.ARRAY:
        allocator = IdAllocator(taken=set(flat_map) - set(removals))
        items_id = allocator.allocate(entry_id, ITEMS_SEGMENT)
        updates[items_id] = placeholder_items_entry(items_id, entry_id)
        return (items_id,)
    if kind is NodeKind.OBJECT or kind is NodeKind.LEAF:
        return ()
    raise AssertionError(f"Unhandled node kind: {kind}")
