"""
Editor session state for the schema builder.
Holds the current flat map, selection, settings errors and undo history, and
notifies the editor shell about schema and data changes.
"""

import json
from typing import Any, Callable, Dict, List, Optional
import logging

from .config_loader import get_config_value
from .data_binder import bind_values, extract_data
from .diff_utils import diff_flat_maps, schemas_equivalent
from .error_handler import ErrorHandler, ErrorType
from .errors import InvalidPatchError, SchemaEngineError
from .flattener import flatten
from .identifiers import GetId
from .models import FlatMap, ROOT_ID
from .mutator import mutate_entry
from .scheduler import DeferredQueue
from .schema_loader import load_schema_file
from .settings_validation import collect_error_fields
from .structure import copy_entry, insert_entry, move_entry, remove_entry
from .transformer import merge_transformer
from .unflattener import unflatten
from .version import NormalizedDocument, SchemaVersion, split_document, to_legacy

logger = logging.getLogger(__name__)

# Default values
DEFAULT_SCHEMA = {"type": "object", "properties": {}}
DEFAULT_HISTORY_LIMIT = 50
ERROR_LOG_LIMIT = 100

SCHEMA_NOTIFICATION = 'schema'
DATA_NOTIFICATION = 'data'


class EditorSession:
    """
    State holder behind a visual schema editor.

    Every edit produces a new FlatMap; the previous one goes onto the undo
    stack unchanged. Rejected edits are logged and recorded in `error_log`
    and leave the state as it was. Change notifications are deferred and
    coalesced until `flush()`.
    """

    def __init__(self, transformer: Any = None, get_id: Optional[GetId] = None,
                 on_schema_change: Optional[Callable[[Any], None]] = None,
                 on_change: Optional[Callable[[Any], None]] = None,
                 validation: bool = True, history_limit: int = DEFAULT_HISTORY_LIMIT,
                 hide_id: bool = False, include_hidden_in_settings: bool = True):
        self.transformer = merge_transformer(transformer)
        self.get_id = get_id
        self.on_schema_change = on_schema_change
        self.on_change = on_change
        self.validation = validation
        self.history_limit = max(0, history_limit)
        self.hide_id = hide_id
        self.include_hidden_in_settings = include_hidden_in_settings

        self.error_log: List[Dict[str, Any]] = []
        self.queue = DeferredQueue(on_error=self._record)

        self._flat_map = flatten(DEFAULT_SCHEMA)
        self._version = SchemaVersion.CURRENT
        self._form_props: Dict[str, Any] = {}
        self._selected: Optional[str] = None
        self._error_fields: List[Dict[str, Any]] = []
        self._undo: List[FlatMap] = []
        self._redo: List[FlatMap] = []
        self._last_change: Dict[str, List[str]] = {'added': [], 'removed': [], 'changed': []}

    @classmethod
    def from_config(cls, config: Dict[str, Any], **hooks: Any) -> 'EditorSession':
        """
        Create a session from the 'editor' and 'schema' configuration sections.

        Args:
            config: Configuration dictionary (see config_loader)
            **hooks: transformer, get_id, on_schema_change, on_change

        Returns:
            New session, with the configured default schema loaded if any
        """
        options = {
            'validation': get_config_value(config, 'editor', 'validation', True),
            'history_limit': get_config_value(config, 'editor', 'history_limit', DEFAULT_HISTORY_LIMIT),
            'hide_id': get_config_value(config, 'editor', 'hide_id', False),
            'include_hidden_in_settings': get_config_value(config, 'editor', 'include_hidden_in_settings', True),
        }
        options.update(hooks)
        session = cls(**options)

        default_schema = get_config_value(config, 'schema', 'default_schema')
        if default_schema:
            document = load_schema_file(default_schema)
            if document is not None:
                session.load(document)
            else:
                logger.warning(f"Default schema {default_schema} could not be loaded, starting empty")
        return session

    # --- state -------------------------------------------------------------

    @property
    def flat_map(self) -> FlatMap:
        return self._flat_map

    @property
    def form_data(self) -> Any:
        return extract_data(self._flat_map)

    @property
    def selected(self) -> Optional[str]:
        return self._selected

    @property
    def version(self) -> SchemaVersion:
        return self._version

    @property
    def last_change(self) -> Dict[str, List[str]]:
        """Entry ids added, removed and changed by the latest edit, undo or redo."""
        return {kind: list(ids) for kind, ids in self._last_change.items()}

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    def select(self, entry_id: Optional[str]) -> bool:
        """Select an entry (None clears the selection)."""
        if entry_id is not None and entry_id not in self._flat_map:
            logger.warning(f"Cannot select unknown entry {entry_id}")
            return False
        if entry_id != self._selected:
            self._error_fields = []
        self._selected = entry_id
        return True

    # --- loading and export ------------------------------------------------

    def load(self, document: Any, form_data: Any = None) -> bool:
        """
        Replace the whole state with a schema document.

        The document goes through the transformer's `from_external` hook
        before its convention is detected.

        Args:
            document: Schema document as the caller stores it
            form_data: Data to bind; defaults to the document's own formData

        Returns:
            True on success; False if the document was rejected and the
            empty default schema was loaded instead
        """
        try:
            normalized = split_document(self.transformer.from_external(document))
            flat_map = flatten(normalized.merged_schema(), get_id=self.get_id)
            success = True
        except Exception as e:
            # Import hooks may raise anything
            self._record(ErrorHandler.handle_error(e, "load", ErrorType.SCHEMA))
            normalized = NormalizedDocument(schema=DEFAULT_SCHEMA)
            flat_map = flatten(DEFAULT_SCHEMA)
            success = False

        data = form_data if form_data is not None else normalized.form_data
        if data is not None:
            flat_map = self._bind(flat_map, data, "load")

        self._flat_map = flat_map
        self._version = normalized.version
        self._form_props = normalized.form_props
        self._undo.clear()
        self._redo.clear()
        self._last_change = {'added': list(flat_map), 'removed': [], 'changed': []}
        if self._selected is not None and self._selected not in flat_map:
            self._selected = None
        self._error_fields = []

        logger.info(f"Loaded {normalized.version.value} schema document with {len(flat_map)} entries")
        return success

    def set_value(self, document: Any) -> bool:
        """Load a document and clear the selection."""
        self._selected = None
        return self.load(document)

    def get_value(self) -> Any:
        """
        Public schema: nested, exported through the transformer and written
        back in the legacy convention when it was loaded that way.
        """
        exported = self.transformer.to_external(unflatten(self._flat_map))
        if self._version is SchemaVersion.LEGACY and isinstance(exported, dict):
            exported = to_legacy(exported, self._form_props)
        return exported

    def get_value_string(self) -> str:
        return json.dumps(self.get_value(), indent=2, ensure_ascii=False, default=str)

    def inspect_schema(self) -> Dict[str, Any]:
        """Nested schema with '$id' on every node, for the settings side panel."""
        return unflatten(self._flat_map, include_hidden=self.include_hidden_in_settings, keep_ids=True)

    # --- edits -------------------------------------------------------------

    def update_entry(self, entry_id: str, patch: Dict[str, Any], change_source: str = "schema") -> bool:
        """
        Apply a patch to one entry.

        Args:
            entry_id: Entry to change
            patch: 'schema', 'value' and/or 'key'
            change_source: 'schema' for editor edits, 'data' for form input;
                only schema-sourced changes notify on_schema_change

        Returns:
            True if the change was applied
        """
        try:
            new_map = mutate_entry(self._flat_map, entry_id, patch)
        except SchemaEngineError as e:
            self._record(ErrorHandler.handle_error(e, f"update_entry({entry_id})", ErrorType.MUTATION))
            return False
        self._commit(new_map, change_source)
        return True

    def insert(self, parent_id: str, schema: Dict[str, Any], key: Optional[str] = None,
               index: Optional[int] = None) -> Optional[str]:
        """Add a property under an object entry. Returns the new id, None if rejected."""
        try:
            new_map, new_id = insert_entry(self._flat_map, parent_id, schema, key=key,
                                           index=index, get_id=self.get_id)
        except SchemaEngineError as e:
            self._record(ErrorHandler.handle_error(e, f"insert({parent_id})", ErrorType.MUTATION))
            return None
        self._commit(new_map, SCHEMA_NOTIFICATION)
        return new_id

    def remove(self, entry_id: str) -> bool:
        """Remove an entry with its subtree."""
        try:
            new_map = remove_entry(self._flat_map, entry_id)
        except SchemaEngineError as e:
            self._record(ErrorHandler.handle_error(e, f"remove({entry_id})", ErrorType.MUTATION))
            return False
        if self._selected is not None and self._selected not in new_map:
            self._selected = None
            self._error_fields = []
        self._commit(new_map, SCHEMA_NOTIFICATION)
        return True

    def move(self, entry_id: str, new_parent_id: str, index: Optional[int] = None) -> bool:
        """Reorder or re-parent an entry."""
        try:
            new_map = move_entry(self._flat_map, entry_id, new_parent_id, index)
        except SchemaEngineError as e:
            self._record(ErrorHandler.handle_error(e, f"move({entry_id})", ErrorType.MUTATION))
            return False
        self._commit(new_map, SCHEMA_NOTIFICATION)
        return True

    def copy(self, entry_id: str) -> Optional[str]:
        """Duplicate an entry next to itself. Returns the copy's id, None if rejected."""
        try:
            new_map, new_id = copy_entry(self._flat_map, entry_id, get_id=self.get_id)
        except SchemaEngineError as e:
            self._record(ErrorHandler.handle_error(e, f"copy({entry_id})", ErrorType.MUTATION))
            return None
        self._commit(new_map, SCHEMA_NOTIFICATION)
        return new_id

    def set_form_data(self, data: Any) -> None:
        """Rebind the whole form data tree."""
        self._commit(self._bind(self._flat_map, data, "set_form_data"), DATA_NOTIFICATION)

    # --- settings panel ----------------------------------------------------

    def get_settings(self, entry_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """
        Settings-panel value of an entry (the selected one by default).

        Returns:
            The entry's own schema through `to_setting`, with '$id' unless ids
            are hidden; None for the root, unknown entries and, unless
            configured otherwise, placeholder items
        """
        entry_id = entry_id if entry_id is not None else self._selected
        if entry_id is None or entry_id == ROOT_ID:
            return None
        entry = self._flat_map.get(entry_id)
        if entry is None:
            logger.warning(f"No settings for unknown entry {entry_id}")
            return None
        if entry.placeholder and not self.include_hidden_in_settings:
            return None

        value = self.transformer.to_setting(entry.schema)
        if not self.hide_id:
            value['$id'] = entry_id
        return value

    def apply_settings(self, entry_id: str, value: Dict[str, Any]) -> bool:
        """
        Apply an edited settings-panel value to an entry's own schema.

        With validation on, a value that fails validation is not applied and
        its errors are kept for `get_error_fields()`.

        Returns:
            True if the entry was updated
        """
        if entry_id == ROOT_ID:
            logger.warning("Root settings are edited through form props, not the settings panel")
            return False
        if entry_id not in self._flat_map:
            error = InvalidPatchError(entry_id, "entry does not exist")
            self._record(ErrorHandler.handle_error(error, f"apply_settings({entry_id})", ErrorType.MUTATION))
            return False
        if not isinstance(value, dict):
            error = InvalidPatchError(entry_id, f"settings must be an object, got {type(value).__name__}")
            self._record(ErrorHandler.handle_error(error, f"apply_settings({entry_id})", ErrorType.VALIDATION))
            return False

        if self.validation:
            self._error_fields = collect_error_fields(value)
            if self._error_fields:
                logger.warning(f"Settings for {entry_id} rejected: {[f['name'] for f in self._error_fields]}")
                return False

        return self.update_entry(entry_id, {'schema': self.transformer.from_setting(value)})

    def get_error_fields(self) -> List[Dict[str, Any]]:
        return list(self._error_fields)

    # --- history -----------------------------------------------------------

    def undo(self) -> bool:
        """Restore the flat map before the last committed edit."""
        if not self._undo:
            return False
        self._redo.append(self._flat_map)
        self._restore(self._undo.pop())
        logger.info(f"Undo ({len(self._undo)} steps left)")
        return True

    def redo(self) -> bool:
        """Re-apply the last undone edit."""
        if not self._redo:
            return False
        self._undo.append(self._flat_map)
        self._restore(self._redo.pop())
        logger.info(f"Redo ({len(self._redo)} steps left)")
        return True

    # --- notifications -----------------------------------------------------

    def flush(self) -> int:
        """Deliver pending change notifications. Returns how many ran."""
        return self.queue.drain()

    def _commit(self, new_map: FlatMap, change_source: str) -> None:
        if self.history_limit:
            self._undo.append(self._flat_map)
            del self._undo[:-self.history_limit]
        self._redo.clear()
        self._replace(new_map, change_source)

    def _restore(self, flat_map: FlatMap) -> None:
        if self._selected is not None and self._selected not in flat_map:
            self._selected = None
        self._replace(flat_map, SCHEMA_NOTIFICATION)

    def _replace(self, new_map: FlatMap, change_source: str) -> None:
        old_map, self._flat_map = self._flat_map, new_map
        self._last_change = diff_flat_maps(old_map, new_map)

        if change_source == SCHEMA_NOTIFICATION and self.on_schema_change is not None:
            old_schema = unflatten(old_map)
            if not schemas_equivalent(old_schema, unflatten(new_map)):
                self.queue.schedule(SCHEMA_NOTIFICATION, self._notify_schema)

        if self.on_change is not None:
            self.queue.schedule(DATA_NOTIFICATION, self._notify_data)

    def _notify_schema(self) -> None:
        self.on_schema_change(self.get_value())

    def _notify_data(self) -> None:
        self.on_change(self.form_data)

    def _bind(self, flat_map: FlatMap, data: Any, context: str) -> FlatMap:
        bound, mismatches = bind_values(flat_map, data)
        for mismatch in mismatches:
            self._record(ErrorHandler.handle_error(mismatch, context, ErrorType.DATA))
        return bound

    def _record(self, record: Dict[str, Any]) -> None:
        self.error_log.append(record)
        del self.error_log[:-ERROR_LOG_LIMIT]
