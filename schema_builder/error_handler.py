"""
Error handling utilities for the editor session boundary.

Engine functions raise; the session catches at its public entry points,
logs through here and keeps a record so the shell can show what went wrong.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from .errors import (
    BrokenReferenceError, DuplicateIdentifierError, InvalidPatchError,
    MalformedSchemaError, SchemaEngineError,
)

logger = logging.getLogger(__name__)


class ErrorType:
    """Error type constants."""
    SCHEMA = "schema"
    MUTATION = "mutation"
    VALIDATION = "validation"
    DATA = "data"
    FILE_SYSTEM = "file_system"
    CALLBACK = "callback"
    SYSTEM = "system"


class ErrorHandler:
    """Logs boundary errors and turns them into user-facing records."""

    _MESSAGES = {
        ErrorType.SCHEMA: {
            MalformedSchemaError: "The schema could not be loaded; an empty form is shown instead.",
            DuplicateIdentifierError: "The schema contains duplicated ids; an empty form is shown instead.",
            "default": "Schema error occurred. Please check the schema document.",
        },
        ErrorType.MUTATION: {
            InvalidPatchError: "That change cannot be applied; the form was left unchanged.",
            DuplicateIdentifierError: "That name is already used by another field.",
            BrokenReferenceError: "The selected field no longer exists.",
            "default": "The change failed; the form was left unchanged.",
        },
        ErrorType.VALIDATION: {
            ValueError: "Settings validation failed. Please review the highlighted fields.",
            "default": "Validation error occurred. Please review your input.",
        },
        ErrorType.DATA: {
            "default": "Form data does not match the schema; mismatched values were dropped.",
        },
        ErrorType.FILE_SYSTEM: {
            FileNotFoundError: "The requested file could not be found.",
            PermissionError: "Permission denied. Please check file permissions.",
            "default": "A file system error occurred. Please try again.",
        },
        ErrorType.CALLBACK: {
            "default": "A change listener failed; the editor state is unaffected.",
        },
        ErrorType.SYSTEM: {
            "default": "Unexpected error occurred.",
        },
    }

    @staticmethod
    def handle_error(
        error: Exception,
        context: str,
        error_type: str = ErrorType.SYSTEM,
        user_message: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Log an error and build a record describing it.

        Args:
            error: The exception that occurred
            context: Where the error occurred (operation and entry id)
            error_type: One of the ErrorType constants
            user_message: Custom user-friendly message

        Returns:
            Record with timestamp, types, context, messages and, for engine
            errors, their context and recovery suggestions
        """
        logger.error(f"Error in {context}: {error}", exc_info=error)

        if not user_message:
            user_message = ErrorHandler.get_user_friendly_message(error, error_type)

        record = {
            'timestamp': datetime.now().isoformat(),
            'error_type': error_type,
            'exception_type': type(error).__name__,
            'context': context,
            'message': str(error),
            'user_message': user_message,
        }
        if isinstance(error, SchemaEngineError):
            details = error.get_full_details()
            record['details'] = details['context']
            record['recovery_suggestions'] = details['recovery_suggestions']
        return record

    @staticmethod
    def get_user_friendly_message(error: Exception, error_type: str) -> str:
        """Pick the message registered for the error's class and type."""
        messages = ErrorHandler._MESSAGES.get(error_type, ErrorHandler._MESSAGES[ErrorType.SYSTEM])
        for exception_type, message in messages.items():
            if exception_type != "default" and isinstance(error, exception_type):
                return message
        return messages.get("default", "An unexpected error occurred.")

    @staticmethod
    def with_error_handling(
        func: Callable,
        context: str,
        error_type: str = ErrorType.SYSTEM,
        default_return: Any = None,
        error_log: Optional[List[Dict[str, Any]]] = None
    ) -> Any:
        """
        Run `func`, handling any exception it raises.

        Args:
            func: Zero-argument callable to execute
            context: Context description
            error_type: Type of error expected
            default_return: Value to return on error
            error_log: List that receives the error record, if given

        Returns:
            Function result or default_return on error
        """
        try:
            return func()
        except Exception as e:
            record = ErrorHandler.handle_error(e, context, error_type)
            if error_log is not None:
                error_log.append(record)
            return default_return
