"""
Data binder: attaches form data to a flat map and extracts it back.

Leaf entries hold their own value. Array entries hold the whole element list,
each element conformed to the array's single items definition; the entries
below an items entry are schema only. Object entries hold no content of their
own, just an empty-dict marker recording that the object was present, except
free-form objects (no declared properties), which keep the mapping verbatim.
"""

from copy import deepcopy
from typing import Any, Dict, List, Mapping, Tuple
import logging

from .errors import BrokenReferenceError, ValueMismatchError
from .models import FlatEntry, FlatMap, NodeKind, ROOT_ID, UNSET

logger = logging.getLogger(__name__)


def merge_data(flat_map: FlatMap, data: Any) -> FlatMap:
    """
    Bind a nested data tree onto the flat map.

    Values whose container shape disagrees with the schema are dropped and
    logged; keys the schema does not know are ignored.

    Args:
        flat_map: Map to bind onto (left untouched)
        data: Nested form data

    Returns:
        New FlatMap with values attached
    """
    bound, mismatches = bind_values(flat_map, data)
    for mismatch in mismatches:
        logger.warning(f"[DATA BINDER] {mismatch}")
    return bound


def bind_values(flat_map: FlatMap, data: Any) -> Tuple[FlatMap, List[ValueMismatchError]]:
    """
    Like merge_data, but also return the recovered value mismatches.
    """
    updates, mismatches = bind_subtree(flat_map, ROOT_ID, data)
    logger.debug(f"[DATA BINDER] Bound data onto {len(updates)} entries, {len(mismatches)} mismatches")
    return flat_map.evolve(updates), mismatches


def bind_subtree(flat_map: Mapping[str, FlatEntry], entry_id: str,
                 value: Any) -> Tuple[Dict[str, FlatEntry], List[ValueMismatchError]]:
    """
    Compute the entries that change when `value` is bound at `entry_id`.

    Every value-holding entry of the subtree is rebound, so parts missing
    from `value` end up UNSET.

    Returns:
        Tuple of (updated entries keyed by id, recovered mismatches)
    """
    updates: Dict[str, FlatEntry] = {}
    mismatches: List[ValueMismatchError] = []
    _bind(flat_map, flat_map[entry_id], deepcopy(value), updates, mismatches)
    return updates, mismatches


def conform_value(flat_map: Mapping[str, FlatEntry], entry_id: str, value: Any) -> Any:
    """
    Project a value onto the schema subtree of one entry.

    Unknown keys are dropped and mismatched nested parts are removed.

    Raises:
        ValueMismatchError: If `value` itself has the wrong container shape
    """
    return _conform(flat_map, flat_map[entry_id], deepcopy(value), [])


def extract_data(flat_map: Mapping[str, FlatEntry], root_id: str = ROOT_ID) -> Any:
    """
    Build the nested data tree from the values stored in the map.

    Args:
        flat_map: Map to read
        root_id: Entry whose data to extract

    Returns:
        Nested data; an absent root yields {} for objects, [] for arrays and
        None for leaves
    """
    root = flat_map[root_id]
    result = _extract(flat_map, root)
    if result is not UNSET:
        return result
    if root.kind is NodeKind.OBJECT:
        return {}
    if root.kind is NodeKind.ARRAY:
        return []
    return None


def is_free_form(entry: FlatEntry) -> bool:
    """An object without declared properties accepts any mapping."""
    return entry.kind is NodeKind.OBJECT and not entry.declared_properties and not entry.children


def _bind(flat_map: Mapping[str, FlatEntry], entry: FlatEntry, value: Any,
          updates: Dict[str, FlatEntry], mismatches: List[ValueMismatchError]) -> None:
    if entry.kind is NodeKind.LEAF:
        new_value = value

    elif entry.kind is NodeKind.ARRAY:
        new_value = UNSET
        if value is not UNSET:
            try:
                new_value = _conform(flat_map, entry, value, mismatches)
            except ValueMismatchError as error:
                mismatches.append(error)

    elif entry.kind is NodeKind.OBJECT:
        if value is not UNSET and not isinstance(value, Mapping):
            mismatches.append(ValueMismatchError(entry.id, 'an object', value))
            value = UNSET

        if is_free_form(entry):
            new_value = dict(value) if value is not UNSET else UNSET
        else:
            new_value = {} if value is not UNSET else UNSET
            for child_id in entry.children:
                child = _entry(flat_map, child_id, entry.id)
                child_value = UNSET if value is UNSET else value.get(child.key, UNSET)
                _bind(flat_map, child, child_value, updates, mismatches)

    else:
        raise AssertionError(f"Unhandled node kind: {entry.kind}")

    if entry.value is not new_value:
        updates[entry.id] = entry.evolve(value=new_value)


def _conform(flat_map: Mapping[str, FlatEntry], entry: FlatEntry, value: Any,
             mismatches: List[ValueMismatchError]) -> Any:
    if entry.kind is NodeKind.LEAF:
        return value

    if entry.kind is NodeKind.OBJECT:
        if not isinstance(value, Mapping):
            raise ValueMismatchError(entry.id, 'an object', value)
        if is_free_form(entry):
            return dict(value)
        result = {}
        for child_id in entry.children:
            child = _entry(flat_map, child_id, entry.id)
            if child.key not in value:
                continue
            try:
                result[child.key] = _conform(flat_map, child, value[child.key], mismatches)
            except ValueMismatchError as error:
                mismatches.append(error)
        return result

    if entry.kind is NodeKind.ARRAY:
        if not isinstance(value, (list, tuple)):
            raise ValueMismatchError(entry.id, 'an array', value)
        items = _entry(flat_map, entry.children[0], entry.id) if entry.children else None
        if items is None or items.placeholder:
            return list(value)
        result = []
        for element in value:
            try:
                result.append(_conform(flat_map, items, element, mismatches))
            except ValueMismatchError as error:
                # Dropped elements close the gap
                mismatches.append(error)
        return result

    raise AssertionError(f"Unhandled node kind: {entry.kind}")


def _extract(flat_map: Mapping[str, FlatEntry], entry: FlatEntry) -> Any:
    if entry.kind is NodeKind.LEAF or entry.kind is NodeKind.ARRAY:
        return deepcopy(entry.value)

    if entry.kind is NodeKind.OBJECT:
        if is_free_form(entry):
            return deepcopy(entry.value)
        result = {}
        for child_id in entry.children:
            child = _entry(flat_map, child_id, entry.id)
            child_value = _extract(flat_map, child)
            if child_value is not UNSET:
                result[child.key] = child_value
        if result or entry.has_value:
            return result
        return UNSET

    raise AssertionError(f"Unhandled node kind: {entry.kind}")


def _entry(flat_map: Mapping[str, FlatEntry], entry_id: str, parent_id: str) -> FlatEntry:
    try:
        return flat_map[entry_id]
    except KeyError:
        raise BrokenReferenceError(entry_id, parent_id) from None


def extract_value(flat_map: Mapping[str, FlatEntry], entry_id: str) -> Any:
    """Data stored at or below one entry, UNSET when nothing is bound."""
    return _extract(flat_map, flat_map[entry_id])
