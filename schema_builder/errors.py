"""
Custom exception classes for the schema flattening engine.

This module provides specialized exception classes for the different ways a
schema tree, a flat map or a patch can be rejected, with the same
message/context/recovery-suggestion shape across all of them.
"""

import logging
from typing import Optional, Dict, Any, List

logger = logging.getLogger(__name__)


class SchemaEngineError(Exception):
    """
    Base exception for schema engine errors.

    Attributes:
        message: Error message
        context: Additional context information
        recovery_suggestions: List of suggested recovery actions
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None,
                 recovery_suggestions: Optional[List[str]] = None):
        self.message = message
        self.context = context or {}
        self.recovery_suggestions = recovery_suggestions or []
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message

    def get_full_details(self) -> Dict[str, Any]:
        """Get complete error details including context and suggestions."""
        return {
            'error_type': self.__class__.__name__,
            'message': self.message,
            'context': self.context,
            'recovery_suggestions': self.recovery_suggestions
        }


class MalformedSchemaError(SchemaEngineError):
    """
    Exception raised when a schema tree cannot be flattened.

    This includes cyclic node references, non-mapping `properties` or
    `items`, and nodes that are not mappings at all.
    """

    def __init__(self, path: str, issue: str, message: Optional[str] = None):
        self.path = path
        self.issue = issue

        if message is None:
            message = f"Malformed schema at {path}: {issue}"

        context = {
            'path': path,
            'issue': issue
        }

        recovery_suggestions = [
            "Check that every 'properties' value is an object keyed by field name",
            "Check that every 'items' value is a single schema object",
            "Remove self-referencing nodes from the schema tree"
        ]

        super().__init__(message, context, recovery_suggestions)


class BrokenReferenceError(SchemaEngineError):
    """
    Exception raised when the flat map references an id it does not contain.

    A broken reference means an earlier edit left the map inconsistent; it is
    a programming error and is never recovered silently.
    """

    def __init__(self, missing_id: str, referenced_by: Optional[str] = None,
                 message: Optional[str] = None):
        self.missing_id = missing_id
        self.referenced_by = referenced_by

        if message is None:
            if referenced_by is None:
                message = f"Entry '{missing_id}' does not exist in the flat map"
            else:
                message = f"Entry '{referenced_by}' references missing entry '{missing_id}'"

        context = {
            'missing_id': missing_id,
            'referenced_by': referenced_by
        }

        recovery_suggestions = [
            "Reload the schema to rebuild the flat map",
            "Check the last structural edit applied to the map"
        ]

        super().__init__(message, context, recovery_suggestions)


class DuplicateIdentifierError(SchemaEngineError):
    """
    Exception raised when an identifier or property name is already in use.
    """

    def __init__(self, identifier: str, scope: str = "flat map",
                 message: Optional[str] = None):
        self.identifier = identifier
        self.scope = scope

        if message is None:
            message = f"Duplicate identifier '{identifier}' in {scope}"

        context = {
            'identifier': identifier,
            'scope': scope
        }

        recovery_suggestions = [
            "Make sure a custom get_id function returns unique strings",
            "Remove duplicated '$id' values from the schema",
            "Choose a property name not used by a sibling"
        ]

        super().__init__(message, context, recovery_suggestions)


class ValueMismatchError(SchemaEngineError):
    """
    Raised while binding data whose shape disagrees with the schema.

    Non-fatal: the data binder catches it, drops the offending value and
    continues with the rest of the data.
    """

    def __init__(self, entry_id: str, expected: str, actual: Any,
                 message: Optional[str] = None):
        self.entry_id = entry_id
        self.expected = expected
        self.actual_type = type(actual).__name__

        if message is None:
            message = (
                f"Value for '{entry_id}' expected {expected}, "
                f"got {self.actual_type}; value dropped"
            )

        context = {
            'entry_id': entry_id,
            'expected': expected,
            'actual_type': self.actual_type
        }

        super().__init__(message, context, ["Check the form data against the schema shape"])


class InvalidPatchError(SchemaEngineError):
    """
    Exception raised when a mutation or structural edit cannot be applied.
    """

    def __init__(self, entry_id: str, reason: str, message: Optional[str] = None):
        self.entry_id = entry_id
        self.reason = reason

        if message is None:
            message = f"Cannot apply change to '{entry_id}': {reason}"

        context = {
            'entry_id': entry_id,
            'reason': reason
        }

        super().__init__(message, context, ["The previous flat map is still valid and unchanged"])
