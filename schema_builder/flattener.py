"""
Flattener: nested schema tree -> FlatMap.

Walks the tree depth-first, properties in declared order. Each node becomes one
FlatEntry holding its own keywords; `properties` and `items` are represented
by child entries instead of being embedded. An array always gets exactly one
items entry: the declared `items` schema, or a placeholder object when the
array declared none.
"""

from copy import deepcopy
from typing import Any, Dict, Mapping, Optional, Set, Tuple
import logging

from .errors import MalformedSchemaError
from .identifiers import IdAllocator, GetId, ITEMS_SEGMENT, escape_segment
from .models import (
    FlatEntry, FlatMap, NodeKind, ID_KEYWORD, ROOT_ID, node_kind,
)

logger = logging.getLogger(__name__)

PLACEHOLDER_ITEMS_SCHEMA = {'type': 'object'}


def flatten(schema: Mapping[str, Any], get_id: Optional[GetId] = None) -> FlatMap:
    """
    Flatten a schema tree into a FlatMap.

    Args:
        schema: Root schema node
        get_id: Optional custom id strategy, called with the default candidate

    Returns:
        New FlatMap rooted at '#'

    Raises:
        MalformedSchemaError: On cycles or non-mapping properties/items/nodes
        DuplicateIdentifierError: On colliding explicit or custom ids
    """
    if not isinstance(schema, Mapping):
        raise MalformedSchemaError(ROOT_ID, f"root schema must be an object, got {type(schema).__name__}")

    flattener = _Flattener(IdAllocator(get_id=get_id), honor_ids=True)
    flattener.reserve_explicit_ids(schema, is_root=True)
    flattener.visit(schema, parent_id=None, key=None, path=ROOT_ID)

    flat_map = FlatMap(flattener.entries)
    logger.debug(f"Flattened schema into {len(flat_map)} entries")
    return flat_map


def flatten_subtree(schema: Mapping[str, Any], parent_id: str, key: Optional[str],
                    taken, get_id: Optional[GetId] = None,
                    internal: bool = False) -> Tuple[str, Dict[str, FlatEntry]]:
    """
    Flatten a sub-schema that will live under an existing entry.

    Ids carried by the sub-schema are ignored so that a pasted fragment never
    clashes with the entries it was copied from.

    Args:
        schema: Sub-schema to flatten
        parent_id: Id of the entry that will own the new subtree
        key: Property name of the new subtree root (None for items)
        taken: Ids already present in the target map
        get_id: Optional custom id strategy
        internal: Whether the subtree root is an array items entry

    Returns:
        Tuple of (subtree root id, new entries keyed by id)
    """
    flattener = _Flattener(IdAllocator(taken=taken, get_id=get_id), honor_ids=False)
    root_id = flattener.visit(schema, parent_id=parent_id, key=key,
                              path=f"{parent_id}/{ITEMS_SEGMENT if internal else key}",
                              internal=internal)
    return root_id, flattener.entries


def placeholder_items_entry(entry_id: str, parent_id: str) -> FlatEntry:
    """Items entry for an array that declares no `items`."""
    return FlatEntry(
        id=entry_id,
        kind=NodeKind.OBJECT,
        schema=dict(PLACEHOLDER_ITEMS_SCHEMA),
        parent=parent_id,
        internal=True,
        placeholder=True,
    )


def explicit_id(node: Mapping[str, Any], is_root: bool = False) -> Optional[str]:
    """
    Return the identity '$id' of a node, if it carries one.

    Only fragment ids (starting with '#') identify entries; any other '$id'
    (a schema URI, for instance) is an ordinary keyword. The root is always
    '#', so its fragment id is consumed but never reused.
    """
    value = node.get(ID_KEYWORD)
    if isinstance(value, str) and value.startswith('#'):
        return ROOT_ID if is_root else value
    return None


class _Flattener:
    """Depth-first walker accumulating entries."""

    def __init__(self, allocator: IdAllocator, honor_ids: bool):
        self.allocator = allocator
        self.honor_ids = honor_ids
        self.entries: Dict[str, FlatEntry] = {}
        self._ancestors: Set[int] = set()

    def reserve_explicit_ids(self, node: Any, is_root: bool = False,
                             ancestors: Optional[Set[int]] = None) -> None:
        """
        Claim every explicit id up front so generated ids avoid them.

        Malformed parts are skipped here; `visit` reports them.
        """
        if not isinstance(node, Mapping):
            return
        ancestors = ancestors if ancestors is not None else set()
        if id(node) in ancestors:
            return
        ancestors.add(id(node))

        identifier = explicit_id(node, is_root)
        if identifier is not None and not is_root:
            self.allocator.reserve(identifier)

        kind = node_kind(node)
        if kind is NodeKind.OBJECT and isinstance(node.get('properties'), Mapping):
            for child in node['properties'].values():
                self.reserve_explicit_ids(child, ancestors=ancestors)
        elif kind is NodeKind.ARRAY and isinstance(node.get('items'), Mapping):
            self.reserve_explicit_ids(node['items'], ancestors=ancestors)

        ancestors.discard(id(node))

    def visit(self, node: Any, parent_id: Optional[str], key: Optional[str],
              path: str, internal: bool = False) -> str:
        if not isinstance(node, Mapping):
            raise MalformedSchemaError(path, f"expected a schema object, got {type(node).__name__}")

        marker = id(node)
        if marker in self._ancestors:
            raise MalformedSchemaError(path, "node references one of its own ancestors")
        self._ancestors.add(marker)

        try:
            return self._visit(node, parent_id, key, path, internal)
        finally:
            self._ancestors.discard(marker)

    def _visit(self, node: Mapping[str, Any], parent_id: Optional[str],
               key: Optional[str], path: str, internal: bool) -> str:
        kind = node_kind(node)
        identifier = explicit_id(node, is_root=parent_id is None)

        if parent_id is None:
            entry_id = self.allocator.allocate(None)
        elif identifier is not None and self.honor_ids:
            # Already reserved by reserve_explicit_ids
            entry_id = identifier
        else:
            segment = ITEMS_SEGMENT if internal else escape_segment(key)
            entry_id = self.allocator.allocate(parent_id, segment)

        structural = {
            NodeKind.OBJECT: 'properties',
            NodeKind.ARRAY: 'items',
        }.get(kind)
        own_schema = {
            name: deepcopy(value) for name, value in node.items()
            if name != structural and not (name == ID_KEYWORD and identifier is not None)
        }

        # Keep parents ahead of their children in the map's iteration order
        self.entries[entry_id] = None
        children = []
        declared_properties = False

        if kind is NodeKind.OBJECT:
            if 'properties' in node:
                properties = node['properties']
                if not isinstance(properties, Mapping):
                    raise MalformedSchemaError(
                        path, f"'properties' must be an object, got {type(properties).__name__}"
                    )
                declared_properties = True
                for name, child in properties.items():
                    children.append(self.visit(child, entry_id, name, f"{path}/{name}"))

        elif kind is NodeKind.ARRAY:
            if 'items' in node:
                items = node['items']
                if not isinstance(items, Mapping):
                    raise MalformedSchemaError(
                        path, f"'items' must be a single schema object, got {type(items).__name__}"
                    )
                children.append(self.visit(items, entry_id, None, f"{path}/{ITEMS_SEGMENT}", internal=True))
            else:
                items_id = self.allocator.allocate(entry_id, ITEMS_SEGMENT)
                self.entries[items_id] = placeholder_items_entry(items_id, entry_id)
                children.append(items_id)

        elif kind is NodeKind.LEAF:
            pass

        else:
            raise AssertionError(f"Unhandled node kind: {kind}")

        self.entries[entry_id] = FlatEntry(
            id=entry_id,
            kind=kind,
            schema=own_schema,
            parent=parent_id,
            key=None if internal or parent_id is None else key,
            children=tuple(children),
            internal=internal,
            declared_properties=declared_properties,
        )
        return entry_id
