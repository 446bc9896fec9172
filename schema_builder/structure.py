"""
Structural edits on a flat map: insert, remove, move and copy entries.

These are the operations behind adding a field from the widget palette,
deleting it, drag-and-drop reordering and duplicating. Like the mutator they
return a new map and leave the input untouched; unlike it they are allowed to
reorder siblings.
"""

from copy import deepcopy
from typing import Any, Dict, List, Mapping, Optional, Tuple
import logging

from .data_binder import bind_subtree, extract_data, is_free_form
from .errors import DuplicateIdentifierError, InvalidPatchError
from .flattener import flatten_subtree
from .identifiers import IdAllocator, GetId, ITEMS_SEGMENT, escape_segment, unique_key
from .models import FlatEntry, FlatMap, NodeKind, UNSET
from .mutator import is_inside_items, promote_placeholders

logger = logging.getLogger(__name__)


def insert_entry(flat_map: FlatMap, parent_id: str, schema: Mapping[str, Any],
                 key: Optional[str] = None, index: Optional[int] = None,
                 get_id: Optional[GetId] = None) -> Tuple[FlatMap, str]:
    """
    Add a new property (with its whole subtree) to an object entry.

    Args:
        flat_map: Current map
        parent_id: Object entry receiving the property
        schema: Schema of the new property, may be nested
        key: Property name; derived from the schema type when omitted
        index: Position among the siblings, appended when omitted
        get_id: Optional custom id strategy

    Returns:
        Tuple of (new map, id of the inserted entry)
    """
    parent = flat_map.get_entry(parent_id)
    if parent.kind is not NodeKind.OBJECT:
        raise InvalidPatchError(parent_id, "properties can only be added to object entries")

    keys = _child_keys(flat_map, parent)
    if key is None:
        base = schema.get('type') if isinstance(schema, Mapping) else None
        key = unique_key(keys, base if isinstance(base, str) else 'field')
    elif key in keys:
        raise DuplicateIdentifierError(key, scope=f"properties of '{parent_id}'")

    new_id, updates = flatten_subtree(schema, parent_id, key, taken=set(flat_map), get_id=get_id)

    updates[parent_id] = parent.evolve(
        children=_inserted(parent.children, new_id, index),
        declared_properties=True,
    )
    promote_placeholders(flat_map, parent_id, updates)
    result = flat_map.evolve(updates)

    # A free-form object kept its data as one mapping; spread it over the new structure
    if is_free_form(parent) and parent.has_value and not is_inside_items(flat_map, parent_id):
        value_updates, _ = bind_subtree(result, parent_id, parent.value)
        result = result.evolve(value_updates)

    logger.info(f"Inserted {new_id} under {parent_id} as '{key}'")
    return result, new_id


def remove_entry(flat_map: FlatMap, entry_id: str) -> FlatMap:
    """
    Remove an entry and all of its descendants.

    Raises:
        InvalidPatchError: For the root or an array items entry
    """
    entry = _movable(flat_map, entry_id, "removed")
    parent = flat_map.get_entry(entry.parent, entry_id)

    removals = [entry_id] + list(flat_map.descendants(entry_id))
    updated_parent = parent.evolve(children=tuple(c for c in parent.children if c != entry_id))

    logger.info(f"Removed {entry_id} and {len(removals) - 1} descendants")
    return flat_map.evolve({parent.id: updated_parent}, removals)


def move_entry(flat_map: FlatMap, entry_id: str, new_parent_id: str,
               index: Optional[int] = None) -> FlatMap:
    """
    Reorder an entry among its siblings or move it under another object.

    Ids never change. `index` is the final position among the new siblings;
    the entry is appended when it is omitted.

    Raises:
        InvalidPatchError: For root/items entries, non-object targets, or a
            target inside the moved subtree
        DuplicateIdentifierError: If the target object already has the key
    """
    entry = _movable(flat_map, entry_id, "moved")
    new_parent = flat_map.get_entry(new_parent_id)
    if new_parent.kind is not NodeKind.OBJECT:
        raise InvalidPatchError(entry_id, f"target '{new_parent_id}' is not an object entry")
    if new_parent_id == entry_id or new_parent_id in set(flat_map.descendants(entry_id)):
        raise InvalidPatchError(entry_id, "an entry cannot be moved into its own subtree")

    updates: Dict[str, FlatEntry] = {}
    if new_parent_id == entry.parent:
        siblings = tuple(c for c in new_parent.children if c != entry_id)
        updates[new_parent_id] = new_parent.evolve(children=_inserted(siblings, entry_id, index))
    else:
        if entry.key in _child_keys(flat_map, new_parent):
            raise DuplicateIdentifierError(entry.key, scope=f"properties of '{new_parent_id}'")
        old_parent = flat_map.get_entry(entry.parent, entry_id)
        updates[old_parent.id] = old_parent.evolve(
            children=tuple(c for c in old_parent.children if c != entry_id)
        )
        updates[new_parent_id] = new_parent.evolve(
            children=_inserted(new_parent.children, entry_id, index),
            declared_properties=True,
        )
        updates[entry_id] = entry.evolve(parent=new_parent_id)
        promote_placeholders(flat_map, new_parent_id, updates)

    result = flat_map.evolve(updates)

    # Same spreading as insert_entry; the moved entry's own data wins over the mapping
    if is_free_form(new_parent) and new_parent.has_value and not is_inside_items(flat_map, new_parent_id):
        spread = dict(new_parent.value)
        if entry.has_value:
            spread[entry.key] = extract_data(flat_map, entry_id)
        value_updates, _ = bind_subtree(result, new_parent_id, spread)
        result = result.evolve(value_updates)

    if is_inside_items(result, entry_id) and not is_inside_items(flat_map, entry_id):
        # Item schemas hold no values
        value_updates, _ = bind_subtree(result, entry_id, UNSET)
        result = result.evolve(value_updates)

    logger.info(f"Moved {entry_id} to {new_parent_id} at position {index}")
    return result


def copy_entry(flat_map: FlatMap, entry_id: str,
               get_id: Optional[GetId] = None) -> Tuple[FlatMap, str]:
    """
    Duplicate an entry's subtree right after the original.

    The copy gets fresh ids, the key '<key>_copy' (or '<key>_copy_1', ...)
    and the same bound values.

    Returns:
        Tuple of (new map, id of the copy)
    """
    entry = _movable(flat_map, entry_id, "copied")
    parent = flat_map.get_entry(entry.parent, entry_id)

    new_key = unique_key(_child_keys(flat_map, parent), f"{entry.key}_copy")
    allocator = IdAllocator(taken=set(flat_map), get_id=get_id)
    updates: Dict[str, FlatEntry] = {}
    new_id = _clone(flat_map, entry, parent.id, new_key, allocator, updates)

    position = parent.children.index(entry_id) + 1
    updates[parent.id] = parent.evolve(children=_inserted(parent.children, new_id, position))

    logger.info(f"Copied {entry_id} to {new_id}")
    return flat_map.evolve(updates), new_id


def _movable(flat_map: FlatMap, entry_id: str, action: str) -> FlatEntry:
    entry = flat_map.get_entry(entry_id)
    if entry.parent is None:
        raise InvalidPatchError(entry_id, f"the root entry cannot be {action}")
    if entry.internal:
        raise InvalidPatchError(entry_id, f"array items cannot be {action}; change the array's type instead")
    return entry


def _child_keys(flat_map: FlatMap, parent: FlatEntry) -> List[str]:
    return [flat_map.get_entry(child_id, parent.id).key for child_id in parent.children]


def _inserted(children: Tuple[str, ...], child_id: str, index: Optional[int]) -> Tuple[str, ...]:
    result = list(children)
    if index is None or index >= len(result):
        result.append(child_id)
    else:
        result.insert(max(index, 0), child_id)
    return tuple(result)


def _clone(flat_map: FlatMap, source: FlatEntry, parent_id: str, key: Optional[str],
           allocator: IdAllocator, out: Dict[str, FlatEntry]) -> str:
    segment = ITEMS_SEGMENT if source.internal else escape_segment(key)
    new_id = allocator.allocate(parent_id, segment)
    out[new_id] = None
    children = tuple(
        _clone(flat_map, child, new_id, child.key, allocator, out)
        for child in (flat_map.get_entry(c, source.id) for c in source.children)
    )
    out[new_id] = source.evolve(
        id=new_id,
        parent=parent_id,
        key=None if source.internal else key,
        children=children,
        schema=deepcopy(source.schema),
        value=deepcopy(source.value),
    )
    return new_id
