"""
Global exception handler for Slotwise.

This module provides a custom exception handler for DRF that handles
custom exceptions and provides consistent error responses.
"""

import logging
import traceback
from typing import Any, Dict, Optional

from django.core.exceptions import ObjectDoesNotExist, PermissionDenied
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db.utils import DatabaseError, IntegrityError
from django.http import Http404
from django.utils.translation import gettext_lazy as _
from rest_framework import status
from rest_framework.exceptions import NotAuthenticated, NotFound, ValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

from .custom_exceptions import APIException

logger = logging.getLogger(__name__)


def get_error_code(exception: Exception) -> str:
    """
    Get standardized error code from exception.

    Args:
        exception: The exception to get code for

    Returns:
        str: Standardized error code
    """
    if isinstance(exception, APIException):
        return exception.error_code
    elif isinstance(exception, ValidationError):
        return "validation_error"
    elif isinstance(exception, PermissionDenied):
        return "permission_denied"
    elif isinstance(exception, (Http404, NotFound, ObjectDoesNotExist)):
        return "not_found"
    elif isinstance(exception, IntegrityError):
        return "integrity_error"
    elif isinstance(exception, DatabaseError):
        return "database_error"
    elif isinstance(exception, NotAuthenticated):
        return "authentication_required"
    else:
        return (
            exception.__class__.__name__.lower()
            .replace("error", "")
            .replace("exception", "")
        )


def get_error_message(exception: Exception) -> str:
    """Get a user-facing message for an exception."""
    if isinstance(exception, APIException):
        return str(exception.message)

    if hasattr(exception, "detail") and isinstance(exception.detail, str):
        return exception.detail

    if isinstance(exception, ValidationError):
        return str(_("Validation failed."))
    elif isinstance(exception, IntegrityError):
        return str(_("A conflict occurred with existing data."))
    elif isinstance(exception, DatabaseError):
        return str(_("A database error occurred. Please try again later."))
    elif isinstance(exception, ObjectDoesNotExist):
        return str(_("The requested resource was not found."))

    return str(exception)


def get_error_details(exception: Exception) -> Optional[Dict[str, Any]]:
    """
    Get detailed error information from exception.

    Args:
        exception: The exception

    Returns:
        Optional[Dict]: Error details if available
    """
    if isinstance(exception, APIException):
        return exception.errors

    if (
        isinstance(exception, ValidationError)
        and hasattr(exception, "detail")
        and not isinstance(exception.detail, str)
    ):
        if isinstance(exception.detail, list):
            return {"validation_errors": exception.detail}
        return exception.detail

    if isinstance(exception, IntegrityError):
        error_str = str(exception)
        if "unique constraint" in error_str.lower():
            return {"type": "unique_constraint_violation"}

    return None


def exception_handler(exc: Exception, context: Dict[str, Any]) -> Response:
    """
    Custom exception handler for DRF views.

    Handles both DRF and custom exceptions, providing consistent response format.

    Args:
        exc: The exception
        context: The exception context

    Returns:
        Response: Consistent error response
    """
    if isinstance(exc, DjangoValidationError):
        if hasattr(exc, "message_dict"):
            exc = ValidationError(detail=exc.message_dict)
        else:
            exc = ValidationError(detail=exc.messages)

    error_code = get_error_code(exc)
    error_message = get_error_message(exc)
    error_details = get_error_details(exc)

    body = {
        "error": error_code,
        "message": error_message,
        **({"details": error_details} if error_details is not None else {}),
    }

    if isinstance(exc, APIException):
        if exc.status_code >= 500:
            logger.error(f"Exception: {error_code} - {error_message}\nContext: {context}")
        else:
            logger.warning(f"Exception: {error_code} - {error_message}")
        return Response(body, status=exc.status_code)

    response = drf_exception_handler(exc, context)

    if isinstance(exc, (ValidationError, Http404, NotFound, NotAuthenticated, PermissionDenied)):
        logger.warning(
            f"Exception: {error_code} - {error_message}\n"
            f"Context: {context}\n"
            f"Details: {error_details}"
        )
    else:
        logger.error(
            f"Exception: {error_code} - {error_message}\n"
            f"Context: {context}\n"
            f"Traceback: {traceback.format_exc()}"
        )

    if isinstance(exc, IntegrityError):
        return Response(body, status=status.HTTP_409_CONFLICT)

    if response is not None:
        response.data = body
        return response

    return Response(body, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
