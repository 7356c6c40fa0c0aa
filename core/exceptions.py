"""
Engine Exceptions - error taxonomy for the negotiation and settlement engine.

Every operation raises one of these synchronously to its caller:
- ValidationError: malformed input (milestone/total mismatch, empty title, ...)
- StateError: action illegal in the current state
- ConflictError: optimistic-concurrency collision on a stale head or submission
- NotFoundError: unknown id, or entity not reachable for the caller
- AuthorizationError: role or party mismatch

The API layer maps each class to an HTTP status (see api.exceptions).
"""

from typing import Any, Dict, Optional


class EngineError(Exception):
    """
    Base class for all engine errors.

    Attributes:
        message: Human-readable message.
        code: Machine-readable error code.
        errors: Optional per-field error details.
        extra: Additional context for logs and API responses.
    """

    default_message = 'The operation could not be completed.'
    default_code = 'ENGINE_ERROR'

    def __init__(
        self,
        message: Optional[str] = None,
        code: Optional[str] = None,
        errors: Optional[Dict[str, Any]] = None,
        extra: Optional[Dict[str, Any]] = None,
    ):
        self.message = message or self.default_message
        self.code = code or self.default_code
        self.errors = errors or {}
        self.extra = extra or {}
        super().__init__(self.message)

    def __str__(self):
        return self.message


class ValidationError(EngineError):
    """Raised when input is malformed."""

    default_message = 'Invalid input.'
    default_code = 'VALIDATION_ERROR'


class StateError(EngineError):
    """Raised when an action is illegal in the current state."""

    default_message = 'This action is not allowed in the current state.'
    default_code = 'INVALID_STATE'


class ConflictError(EngineError):
    """
    Raised when the record a caller acted on changed underneath it.

    The caller must re-read the current head (or latest submission)
    before retrying.
    """

    default_message = 'The record was modified by another request.'
    default_code = 'CONFLICT'


class NotFoundError(EngineError):
    """Raised for unknown ids or entities the caller cannot reach."""

    default_message = 'Not found.'
    default_code = 'NOT_FOUND'


class AuthorizationError(EngineError):
    """Raised when the caller's role or identity does not permit the action."""

    default_message = 'You do not have permission to perform this action.'
    default_code = 'FORBIDDEN'
