"""
Schema version normalizer.

Two document conventions exist besides a bare schema tree:

- legacy: ``{"propsSchema": {...}, "uiSchema": {...}, "formData": {...}, ...}``
  where presentation hints live in a parallel ``uiSchema`` tree under
  ``ui:``-prefixed keys;
- wrapped: ``{"schema": {...}, "formData": {...}, "displayType": ...}``, the
  current nested convention inside a form document.

Both are rewritten into one nested schema tree. Remaining top-level keys are
form-level props and are merged onto the root node. Anything that cannot be
recognised is passed through unchanged: a malformed legacy document must not
crash the editor here; the flattener reports it later if it is unusable.
"""

from copy import deepcopy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple
import logging

logger = logging.getLogger(__name__)

LEGACY_MARKER = 'propsSchema'
UI_SCHEMA_KEY = 'uiSchema'
WRAPPED_MARKER = 'schema'
FORM_DATA_KEY = 'formData'
UI_PREFIX = 'ui:'

# 'ui:options' carried widget props in the legacy convention
RENAMED_UI_KEYS = {'options': 'props'}


class SchemaVersion(str, Enum):
    """Convention a schema document is written in."""
    LEGACY = "legacy"
    WRAPPED = "wrapped"
    CURRENT = "current"
    UNKNOWN = "unknown"


@dataclass
class NormalizedDocument:
    """
    A schema document split into its parts.

    Attributes:
        schema: Nested schema tree in the current convention
        form_props: Top-level form props found next to the schema
        form_data: Form data embedded in the document, if any
        version: Convention the document was written in
    """
    schema: Any
    form_props: Dict[str, Any] = field(default_factory=dict)
    form_data: Any = None
    version: SchemaVersion = SchemaVersion.CURRENT

    def merged_schema(self) -> Any:
        """Schema tree with the form props merged onto its root."""
        if not self.form_props or not isinstance(self.schema, Mapping):
            return self.schema
        return {**self.schema, **deepcopy(self.form_props)}


def detect_version(document: Any) -> SchemaVersion:
    """
    Detect the convention of a document from its top-level marker fields.
    """
    if not isinstance(document, Mapping):
        return SchemaVersion.UNKNOWN
    if LEGACY_MARKER in document:
        return SchemaVersion.LEGACY
    if ('type' not in document and 'properties' not in document
            and isinstance(document.get(WRAPPED_MARKER), Mapping)):
        return SchemaVersion.WRAPPED
    return SchemaVersion.CURRENT


def split_document(document: Any) -> NormalizedDocument:
    """
    Split a document into schema, form props and embedded form data.

    Never raises: unrecognised input is returned as the schema unchanged.
    """
    version = detect_version(document)

    if version is SchemaVersion.LEGACY:
        props_schema = document[LEGACY_MARKER]
        ui_schema = document.get(UI_SCHEMA_KEY) or {}
        if not isinstance(props_schema, Mapping) or not isinstance(ui_schema, Mapping):
            logger.warning("Legacy schema document is malformed, leaving it unnormalized")
            return NormalizedDocument(schema=document, version=SchemaVersion.UNKNOWN)

        form_props = {
            k: deepcopy(v) for k, v in document.items()
            if k not in (LEGACY_MARKER, UI_SCHEMA_KEY, FORM_DATA_KEY)
        }
        logger.info(f"Normalizing legacy schema document ({len(form_props)} form props)")
        return NormalizedDocument(
            schema=combine_ui_schema(props_schema, ui_schema),
            form_props=form_props,
            form_data=deepcopy(document.get(FORM_DATA_KEY)),
            version=version,
        )

    if version is SchemaVersion.WRAPPED:
        form_props = {
            k: deepcopy(v) for k, v in document.items()
            if k not in (WRAPPED_MARKER, FORM_DATA_KEY)
        }
        return NormalizedDocument(
            schema=deepcopy(document[WRAPPED_MARKER]),
            form_props=form_props,
            form_data=deepcopy(document.get(FORM_DATA_KEY)),
            version=version,
        )

    if version is SchemaVersion.UNKNOWN:
        logger.warning(f"Unrecognized schema document of type {type(document).__name__}, passing it through")
    return NormalizedDocument(schema=document, version=version)


def normalize_version(document: Any) -> Any:
    """
    Rewrite a schema document into the current nested convention.

    Args:
        document: Legacy, wrapped or current schema document

    Returns:
        Nested schema tree (the input itself when nothing needed rewriting)
    """
    return split_document(document).merged_schema()


def combine_ui_schema(node: Mapping[str, Any], ui_schema: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Fold a legacy uiSchema tree into the matching schema nodes.

    `ui:`-prefixed keys lose their prefix, both in the uiSchema and inline in
    the schema itself; uiSchema entries win over inline ones.
    """
    result: Dict[str, Any] = {}
    for key, value in node.items():
        if key == 'properties' and isinstance(value, Mapping):
            result[key] = {
                name: _combine_child(child, ui_schema.get(name))
                for name, child in value.items()
            }
        elif key == 'items' and isinstance(value, Mapping):
            result[key] = _combine_child(value, ui_schema.get('items'))
        else:
            result[_strip_ui_prefix(key)] = deepcopy(value)

    for key, value in ui_schema.items():
        if isinstance(key, str) and key.startswith(UI_PREFIX):
            result[_strip_ui_prefix(key)] = deepcopy(value)
    return result


def to_legacy(schema: Mapping[str, Any], form_props: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    """
    Export a schema tree in the legacy document convention.

    Args:
        schema: Nested schema tree
        form_props: Keys to lift from the root node to the document level

    Returns:
        Legacy document with the schema under 'propsSchema'
    """
    form_props = dict(form_props or {})
    props_schema = {k: deepcopy(v) for k, v in schema.items() if k not in form_props}
    lifted = {k: deepcopy(schema.get(k, v)) for k, v in form_props.items()}
    return {LEGACY_MARKER: props_schema, **lifted}


def _combine_child(child: Any, ui_schema: Any) -> Any:
    if not isinstance(child, Mapping):
        return deepcopy(child)
    return combine_ui_schema(child, ui_schema if isinstance(ui_schema, Mapping) else {})


def _strip_ui_prefix(key: Any) -> Any:
    if isinstance(key, str) and key.startswith(UI_PREFIX):
        name = key[len(UI_PREFIX):]
        return RENAMED_UI_KEYS.get(name, name)
    return key


def split_form_props(document: Any) -> Tuple[Any, Dict[str, Any]]:
    """Return (schema tree, form props) of a document, without merging them."""
    normalized = split_document(document)
    return normalized.schema, normalized.form_props
