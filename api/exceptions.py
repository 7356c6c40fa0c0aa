"""
API Exceptions - error responses for the Networkk API

Engine errors (core.exceptions) are raised by the service layer and
rendered here with a status code per class:

    ValidationError     -> 400
    AuthorizationError  -> 403
    NotFoundError       -> 404
    StateError          -> 409
    ConflictError       -> 409

All errors follow a consistent format:
{
    "success": false,
    "message": "Human-readable message",
    "error_code": "MACHINE_READABLE_CODE",
    "errors": [...],
    "meta": {...}
}
"""

import logging

from django.utils import timezone
from rest_framework import status
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler

from core.exceptions import (
    AuthorizationError,
    ConflictError,
    EngineError,
    NotFoundError,
    StateError,
    ValidationError as EngineValidationError,
)

logger = logging.getLogger(__name__)

ENGINE_ERROR_STATUS = (
    (EngineValidationError, status.HTTP_400_BAD_REQUEST),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (StateError, status.HTTP_409_CONFLICT),
    (ConflictError, status.HTTP_409_CONFLICT),
)


def status_for(exc: EngineError) -> int:
    for error_class, status_code in ENGINE_ERROR_STATUS:
        if isinstance(exc, error_class):
            return status_code
    return status.HTTP_400_BAD_REQUEST


def _field_errors(detail):
    return [
        {"field": field, "messages": msgs if isinstance(msgs, list) else [str(msgs)]}
        for field, msgs in detail.items()
    ]


def networkk_exception_handler(exc, context):
    """
    Custom exception handler for standardized error responses.

    All errors are formatted as:
    {
        "success": false,
        "data": null,
        "message": "Error description",
        "error_code": "MACHINE_CODE",
        "errors": [...],
        "meta": {"timestamp": "ISO8601", ...}
    }
    """
    error_data = {
        "success": False,
        "data": None,
        "message": "",
        "error_code": "ERROR",
        "errors": [],
        "meta": {
            "timestamp": timezone.now().isoformat(),
        }
    }

    # Engine errors raised by the service layer
    if isinstance(exc, EngineError):
        status_code = status_for(exc)
        error_data["message"] = exc.message
        error_data["error_code"] = exc.code
        error_data["errors"] = _field_errors(exc.errors)
        error_data["meta"].update(exc.extra)
        if status_code >= status.HTTP_409_CONFLICT:
            logger.info(f"{exc.__class__.__name__} ({exc.code}): {exc.message}")
        return Response(error_data, status=status_code)

    # Get the standard DRF response
    response = exception_handler(exc, context)

    # Handle unhandled exceptions
    if response is None:
        logger.exception(f"Unhandled exception: {exc}")
        error_data["message"] = "An unexpected error occurred."
        error_data["error_code"] = "INTERNAL_ERROR"
        return Response(error_data, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    # Handle DRF ValidationError
    if isinstance(exc, ValidationError):
        error_data["error_code"] = "VALIDATION_ERROR"
        if isinstance(exc.detail, dict):
            error_data["errors"] = _field_errors(exc.detail)
            error_data["message"] = "Validation failed."
        elif isinstance(exc.detail, list):
            error_data["errors"] = [{"field": "non_field_errors", "messages": [str(e) for e in exc.detail]}]
            error_data["message"] = str(exc.detail[0]) if exc.detail else "Validation failed."
        else:
            error_data["message"] = str(exc.detail)

    # Handle other DRF exceptions
    else:
        error_data["message"] = str(exc.detail) if hasattr(exc, 'detail') else str(exc)
        error_data["error_code"] = getattr(exc, 'default_code', 'ERROR')

    response.data = error_data
    return response
