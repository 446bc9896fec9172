"""
Diff utilities for schema trees and flat maps.

Built on DeepDiff. Plain dict comparison ignores key order, but property
order is meaningful in a schema, so schema diffs additionally report the
`properties` mappings whose order changed.
"""

from typing import Any, Dict, List, Mapping
from deepdiff import DeepDiff
import logging

from .models import FlatEntry

logger = logging.getLogger(__name__)

CHANGE_TYPES = (
    'values_changed',
    'dictionary_item_added',
    'dictionary_item_removed',
    'iterable_item_added',
    'iterable_item_removed',
    'type_changes',
    'order_changed',
)


def calculate_diff(original: Any, modified: Any) -> Dict[str, Any]:
    """
    Calculate differences between two JSON-like trees.

    Args:
        original: Tree before the change
        modified: Tree after the change

    Returns:
        Dict keyed by DeepDiff report type ('values_changed',
        'dictionary_item_added', ...), each holding path -> detail
    """
    try:
        diff = DeepDiff(original, modified, verbose_level=2)
        diff_dict = diff.to_dict() if hasattr(diff, 'to_dict') else dict(diff)

        processed_diff: Dict[str, Any] = {}
        for change_type, changes in diff_dict.items():
            if isinstance(changes, Mapping):
                processed_diff[change_type] = dict(changes)
            else:
                # Report types without details come back as ordered sets of paths
                processed_diff[change_type] = {str(path): None for path in changes}
        return processed_diff

    except Exception as e:
        logger.error(f"Error calculating diff: {e}", exc_info=True)
        raise


def diff_schemas(old_schema: Any, new_schema: Any) -> Dict[str, Any]:
    """
    Diff two schema trees, property order included.

    Returns:
        calculate_diff output, plus 'order_changed' (path -> old/new key
        order) when some `properties` mapping was reordered
    """
    diff = calculate_diff(old_schema, new_schema)
    reordered = _order_changes(old_schema, new_schema, 'root')
    if reordered:
        diff['order_changed'] = reordered
    return diff


def schemas_equivalent(old_schema: Any, new_schema: Any) -> bool:
    """True when two schema trees are equal, property order included."""
    return not has_changes(diff_schemas(old_schema, new_schema))


def diff_flat_maps(old_map: Mapping[str, FlatEntry], new_map: Mapping[str, FlatEntry]) -> Dict[str, List[str]]:
    """
    Compare two flat maps entry by entry.

    Entries shared between the maps (the same object) are skipped without
    being compared.

    Returns:
        Dict with the 'added', 'removed' and 'changed' entry ids
    """
    added = [entry_id for entry_id in new_map if entry_id not in old_map]
    removed = [entry_id for entry_id in old_map if entry_id not in new_map]
    changed = []
    for entry_id, new_entry in new_map.items():
        old_entry = old_map.get(entry_id)
        if old_entry is None or old_entry is new_entry:
            continue
        if has_changes(calculate_diff(old_entry.to_dict(), new_entry.to_dict())):
            changed.append(entry_id)

    logger.debug(f"Flat map diff: {len(added)} added, {len(removed)} removed, {len(changed)} changed")
    return {'added': added, 'removed': removed, 'changed': changed}


def has_changes(diff: Dict[str, Any]) -> bool:
    """
    Check if there are any changes in the diff.

    Args:
        diff: Diff dictionary from calculate_diff, diff_schemas or diff_flat_maps

    Returns:
        True if there are changes, False otherwise
    """
    if not diff:
        return False
    return any(bool(changes) for changes in diff.values())


def _order_changes(old: Any, new: Any, path: str) -> Dict[str, Dict[str, List[str]]]:
    result: Dict[str, Dict[str, List[str]]] = {}
    if isinstance(old, Mapping) and isinstance(new, Mapping):
        if path.endswith("['properties']"):
            old_order = [key for key in old if key in new]
            new_order = [key for key in new if key in old]
            if old_order != new_order:
                result[path] = {'old': list(old), 'new': list(new)}
        for key in old:
            if key in new:
                result.update(_order_changes(old[key], new[key], f"{path}['{key}']"))
    elif isinstance(old, list) and isinstance(new, list):
        for index, (old_item, new_item) in enumerate(zip(old, new)):
            result.update(_order_changes(old_item, new_item, f"{path}[{index}]"))
    return result
