"""
Identifier allocation for flat map entries.

Ids are path based: the root is '#', a property 'name' of '#' is '#/name', and
the items entry of an array '#/list' is '#/list/[]'. Property names are escaped
with JSON pointer rules so that distinct paths never produce the same id.
"""

from typing import Callable, Collection, Optional
import logging

from .errors import DuplicateIdentifierError
from .models import ROOT_ID

logger = logging.getLogger(__name__)

ITEMS_SEGMENT = '[]'

GetId = Callable[[str], str]


def escape_segment(segment: str) -> str:
    """Escape a property name for use as one id segment."""
    if not isinstance(segment, str):
        segment = str(segment)
    return segment.replace('~', '~0').replace('/', '~1')


def unescape_segment(segment: str) -> str:
    return segment.replace('~1', '/').replace('~0', '~')


def child_path(parent_id: str, segment: str) -> str:
    """Default id for a child of `parent_id` (segment must already be escaped)."""
    return f"{parent_id}/{segment}"


def unique_key(existing_keys: Collection[str], base: str) -> str:
    """
    Pick a property name that no sibling uses yet.

    Returns `base` when free, otherwise `base_1`, `base_2`, ...
    """
    if base not in existing_keys:
        return base
    counter = 1
    while f"{base}_{counter}" in existing_keys:
        counter += 1
    return f"{base}_{counter}"


class IdAllocator:
    """
    Hands out ids that are not yet taken.

    The default strategy never fails: a colliding path id gets a numeric
    suffix. A custom `get_id` takes the default candidate and returns the id
    to use; it (like an explicit '$id' on a node) must be unique.
    """

    def __init__(self, taken: Optional[Collection[str]] = None,
                 get_id: Optional[GetId] = None):
        self._taken = set(taken or ())
        self._get_id = get_id

    @property
    def taken(self) -> Collection[str]:
        return self._taken

    def reserve(self, identifier: str) -> str:
        """
        Claim an explicit id.

        Raises:
            DuplicateIdentifierError: If the id is already in use
        """
        if identifier in self._taken:
            raise DuplicateIdentifierError(identifier)
        self._taken.add(identifier)
        return identifier

    def allocate(self, parent_id: Optional[str], segment: Optional[str] = None,
                 explicit: Optional[str] = None) -> str:
        """
        Allocate the id of a new entry.

        Args:
            parent_id: Id of the owning entry, None for the root
            segment: Escaped path segment (property name or '[]')
            explicit: Id already carried by the node, reused verbatim

        Returns:
            The allocated id
        """
        if parent_id is None:
            return self.reserve(ROOT_ID)
        if explicit is not None:
            return self.reserve(explicit)

        candidate = child_path(parent_id, segment)
        if self._get_id is not None:
            custom = self._get_id(candidate)
            if not isinstance(custom, str) or not custom:
                raise DuplicateIdentifierError(
                    str(custom), message=f"Custom get_id returned an invalid id: {custom!r}"
                )
            return self.reserve(custom)

        if candidate in self._taken:
            fallback = unique_key(self._taken, candidate)
            logger.debug(f"Id {candidate} already taken, using {fallback}")
            candidate = fallback
        return self.reserve(candidate)
