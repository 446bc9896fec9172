"""
Data models for the flattened schema representation.

A schema tree is flattened into a FlatMap: an immutable mapping of entry id to
FlatEntry. Entries never embed their children; they reference them by id, so a
single entry can be replaced without touching the rest of the map.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, Mapping, Optional, Tuple
import logging

from .errors import BrokenReferenceError

logger = logging.getLogger(__name__)

ROOT_ID = "#"

# Keywords that are represented structurally rather than stored on an entry
STRUCTURAL_KEYWORDS = ('properties', 'items')
ID_KEYWORD = '$id'


class _Unset:
    """Marker for "no value bound", distinct from a JSON null."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return 'UNSET'

    def __bool__(self) -> bool:
        return False

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self

    def __reduce__(self):
        return (_Unset, ())


UNSET = _Unset()


class NodeKind(str, Enum):
    """Tagged variant of a schema node."""
    LEAF = "leaf"
    OBJECT = "object"
    ARRAY = "array"


def node_kind(schema: Mapping[str, Any]) -> NodeKind:
    """
    Classify a schema node by its `type` keyword.

    Only the exact strings "object" and "array" make a container; a missing
    type, a list of types or any other value is a leaf.
    """
    node_type = schema.get('type')
    if node_type == 'object':
        return NodeKind.OBJECT
    if node_type == 'array':
        return NodeKind.ARRAY
    return NodeKind.LEAF


@dataclass(frozen=True)
class FlatEntry:
    """
    One schema node in the flat map.

    Attributes:
        id: Identifier, equal to the entry's key in the map
        kind: Node variant (leaf, object or array)
        schema: The node's own keywords without properties/items/$id
        parent: Parent id, None for the root
        key: Property name under an object parent, None for root and items entries
        children: Ordered child ids
        internal: True for the synthetic items entry of an array
        placeholder: True for items synthesised for an array that declared none
        declared_properties: Whether an object node carries a `properties` mapping
        value: Bound form data, or UNSET
    """
    id: str
    kind: NodeKind
    schema: Dict[str, Any] = field(default_factory=dict)
    parent: Optional[str] = None
    key: Optional[str] = None
    children: Tuple[str, ...] = ()
    internal: bool = False
    placeholder: bool = False
    declared_properties: bool = False
    value: Any = UNSET

    @property
    def has_value(self) -> bool:
        return self.value is not UNSET

    @property
    def is_container(self) -> bool:
        return self.kind is not NodeKind.LEAF

    def evolve(self, **changes: Any) -> 'FlatEntry':
        """Return a copy of this entry with the given fields replaced."""
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary (value omitted when unset)."""
        result = {
            'id': self.id,
            'kind': self.kind.value,
            'schema': self.schema,
            'parent': self.parent,
            'key': self.key,
            'children': list(self.children),
            'internal': self.internal,
            'placeholder': self.placeholder,
            'declared_properties': self.declared_properties,
        }
        if self.has_value:
            result['value'] = self.value
        return result

    @classmethod
    def from_dict(cls, entry_id: str, data: Mapping[str, Any]) -> 'FlatEntry':
        schema = dict(data.get('schema', {}))
        kind = data.get('kind')
        return cls(
            id=entry_id,
            kind=NodeKind(kind) if kind is not None else node_kind(schema),
            schema=schema,
            parent=data.get('parent'),
            key=data.get('key'),
            children=tuple(data.get('children', ())),
            internal=bool(data.get('internal', False)),
            placeholder=bool(data.get('placeholder', False)),
            declared_properties=bool(data.get('declared_properties', False)),
            value=data.get('value', UNSET),
        )


class FlatMap(Mapping):
    """
    Immutable id -> FlatEntry mapping with copy-on-write updates.

    `evolve` returns a new map that shares every untouched entry with this
    one, so holders of an older reference keep seeing a consistent snapshot.
    """

    __slots__ = ('_entries',)

    def __init__(self, entries: Mapping[str, FlatEntry]):
        self._entries = dict(entries)
        self._check_parents()

    @classmethod
    def _trusted(cls, entries: Dict[str, FlatEntry]) -> 'FlatMap':
        flat_map = cls.__new__(cls)
        flat_map._entries = entries
        return flat_map

    def __getitem__(self, entry_id: str) -> FlatEntry:
        return self._entries[entry_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"FlatMap({list(self._entries)})"

    @property
    def root(self) -> FlatEntry:
        return self._entries[ROOT_ID]

    def get_entry(self, entry_id: str, referenced_by: Optional[str] = None) -> FlatEntry:
        """Look up an entry, raising BrokenReferenceError when it is missing."""
        try:
            return self._entries[entry_id]
        except KeyError:
            raise BrokenReferenceError(entry_id, referenced_by) from None

    def evolve(self, updates: Optional[Mapping[str, FlatEntry]] = None,
               removals: Iterable[str] = ()) -> 'FlatMap':
        """
        Create a new map with some entries replaced, added or removed.

        Args:
            updates: Entries to put into the new map, keyed by id
            removals: Ids to drop from the new map

        Returns:
            New FlatMap; this map is left untouched
        """
        entries = dict(self._entries)
        for entry_id in removals:
            entries.pop(entry_id, None)
        if updates:
            entries.update(updates)
        return FlatMap._trusted(entries)

    def descendants(self, entry_id: str) -> Iterator[str]:
        """Yield the ids below an entry, depth-first in child order."""
        stack = list(reversed(self.get_entry(entry_id).children))
        while stack:
            child_id = stack.pop()
            yield child_id
            stack.extend(reversed(self.get_entry(child_id, entry_id).children))

    def path_of(self, entry_id: str) -> Tuple[Any, ...]:
        """Property-name path from the root; items entries contribute '[]'."""
        parts = []
        entry = self.get_entry(entry_id)
        while entry.parent is not None:
            parts.append('[]' if entry.internal else entry.key)
            entry = self.get_entry(entry.parent, entry.id)
        return tuple(reversed(parts))

    def check_integrity(self) -> None:
        """
        Verify parent and child references in both directions.

        Raises:
            BrokenReferenceError: If any reference is missing or inconsistent
        """
        self._check_parents()
        for entry_id, entry in self._entries.items():
            for child_id in entry.children:
                child = self.get_entry(child_id, entry_id)
                if child.parent != entry_id:
                    raise BrokenReferenceError(
                        child_id, entry_id,
                        message=f"Entry '{child_id}' is listed under '{entry_id}' "
                                f"but its parent is '{child.parent}'"
                    )
            if entry.parent is not None and entry_id not in self._entries[entry.parent].children:
                raise BrokenReferenceError(
                    entry_id, entry.parent,
                    message=f"Entry '{entry_id}' is not listed among the children of '{entry.parent}'"
                )

    def _check_parents(self) -> None:
        if ROOT_ID not in self._entries:
            raise BrokenReferenceError(ROOT_ID, message="Flat map has no root entry '#'")
        if self._entries[ROOT_ID].parent is not None:
            raise BrokenReferenceError(
                self._entries[ROOT_ID].parent, ROOT_ID,
                message="Root entry '#' must not have a parent"
            )
        for entry_id, entry in self._entries.items():
            if entry_id != ROOT_ID and entry.parent not in self._entries:
                raise BrokenReferenceError(str(entry.parent), entry_id)

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        """Convert the whole map to a JSON-friendly dictionary."""
        return {entry_id: entry.to_dict() for entry_id, entry in self._entries.items()}

    @classmethod
    def from_dict(cls, data: Mapping[str, Mapping[str, Any]]) -> 'FlatMap':
        """
        Build a map from its dictionary form.

        Raises:
            BrokenReferenceError: If the root is missing or a parent dangles
        """
        return cls({entry_id: FlatEntry.from_dict(entry_id, raw) for entry_id, raw in data.items()})
