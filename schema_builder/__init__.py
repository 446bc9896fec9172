"""
Schema flattening engine for visual form-schema editors.
"""

from .data_binder import extract_data, merge_data
from .errors import (
    BrokenReferenceError, DuplicateIdentifierError, InvalidPatchError,
    MalformedSchemaError, SchemaEngineError, ValueMismatchError,
)
from .flattener import flatten
from .models import FlatEntry, FlatMap, NodeKind, ROOT_ID, UNSET
from .mutator import mutate_entry
from .session import EditorSession
from .structure import copy_entry, insert_entry, move_entry, remove_entry
from .transformer import SchemaTransformer, merge_transformer
from .unflattener import unflatten
from .version import SchemaVersion, detect_version, normalize_version

__version__ = "1.0.0"

__all__ = [
    'flatten', 'unflatten', 'merge_data', 'extract_data', 'mutate_entry',
    'normalize_version', 'detect_version', 'SchemaVersion',
    'insert_entry', 'remove_entry', 'move_entry', 'copy_entry',
    'FlatEntry', 'FlatMap', 'NodeKind', 'ROOT_ID', 'UNSET',
    'SchemaTransformer', 'merge_transformer', 'EditorSession',
    'SchemaEngineError', 'MalformedSchemaError', 'BrokenReferenceError',
    'DuplicateIdentifierError', 'ValueMismatchError', 'InvalidPatchError',
]
