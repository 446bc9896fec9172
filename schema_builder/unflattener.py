"""
Unflattener: FlatMap -> nested schema tree.
"""

from copy import deepcopy
from typing import Any, Dict, Mapping
import logging

from .errors import BrokenReferenceError
from .models import FlatEntry, NodeKind, ID_KEYWORD, ROOT_ID

logger = logging.getLogger(__name__)


def unflatten(flat_map: Mapping[str, FlatEntry], root_id: str = ROOT_ID,
              include_hidden: bool = False, keep_ids: bool = False) -> Dict[str, Any]:
    """
    Rebuild the schema tree below `root_id`.

    Args:
        flat_map: Flat map to read
        root_id: Entry to start from (the root '#' by default)
        include_hidden: Also emit placeholder array items
        keep_ids: Write each entry's id as '$id' so that flattening the
            result again reuses the same ids

    Returns:
        Nested schema dictionary sharing no objects with the map

    Raises:
        BrokenReferenceError: If `root_id` or any recorded child is missing
    """
    if root_id not in flat_map:
        raise BrokenReferenceError(root_id)
    return _build(flat_map, flat_map[root_id], include_hidden, keep_ids)


def _build(flat_map: Mapping[str, FlatEntry], entry: FlatEntry,
           include_hidden: bool, keep_ids: bool) -> Dict[str, Any]:
    node = deepcopy(entry.schema)
    if keep_ids:
        node[ID_KEYWORD] = entry.id

    if entry.kind is NodeKind.OBJECT:
        if entry.declared_properties or entry.children:
            properties = {}
            for child_id in entry.children:
                child = _child(flat_map, child_id, entry.id)
                properties[child.key] = _build(flat_map, child, include_hidden, keep_ids)
            node['properties'] = properties

    elif entry.kind is NodeKind.ARRAY:
        for child_id in entry.children:
            child = _child(flat_map, child_id, entry.id)
            if child.placeholder and not include_hidden:
                continue
            node['items'] = _build(flat_map, child, include_hidden, keep_ids)

    elif entry.kind is NodeKind.LEAF:
        pass

    else:
        raise AssertionError(f"Unhandled node kind: {entry.kind}")

    return node


def _child(flat_map: Mapping[str, FlatEntry], child_id: str, parent_id: str) -> FlatEntry:
    try:
        return flat_map[child_id]
    except KeyError:
        logger.error(f"Entry {parent_id} lists missing child {child_id}")
        raise BrokenReferenceError(child_id, parent_id) from None
