"""
Custom exceptions for Slotwise.

Services raise these; the DRF exception handler turns them into responses
with a stable shape.
"""

from django.utils.translation import gettext_lazy as _
from rest_framework import status


class APIException(Exception):
    """Base exception for all API-related exceptions."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = _("An unexpected error occurred.")
    error_code = "error"

    def __init__(self, message=None, status_code=None, errors=None):
        self.message = message or self.default_message
        if status_code:
            self.status_code = status_code
        self.errors = errors
        super().__init__(self.message)

    def to_dict(self):
        """Convert exception to dictionary representation."""
        error_dict = {
            "error": self.error_code,
            "message": str(self.message),
        }

        if self.errors:
            error_dict["details"] = self.errors

        return error_dict


class ValidationException(APIException):
    """Malformed ranges, unknown ids or invalid timezones in a request."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = _("Validation failed.")
    error_code = "validation_error"


class ResourceNotFoundException(APIException):
    """Exception raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND
    default_message = _("The requested resource was not found.")
    error_code = "not_found"


class PermissionDeniedException(APIException):
    """Exception raised when user doesn't have permission for an action."""

    status_code = status.HTTP_403_FORBIDDEN
    default_message = _("You do not have permission to perform this action.")
    error_code = "permission_denied"


class SchedulingConflictException(APIException):
    """
    A rule write collides with an existing rule.

    ``conflicting_rule`` holds the rule that was hit so callers can name it.
    """

    status_code = status.HTTP_409_CONFLICT
    default_message = _("A scheduling conflict was detected.")
    error_code = "scheduling_conflict"

    def __init__(self, message=None, conflicting_rule=None, errors=None):
        self.conflicting_rule = conflicting_rule
        if errors is None and conflicting_rule is not None:
            errors = {"conflicting_rule_id": str(getattr(conflicting_rule, "id", ""))}
        super().__init__(message=message, errors=errors)


class ConcurrentModificationException(APIException):
    """Another write to the same organizer's rules holds the lock."""

    status_code = status.HTTP_409_CONFLICT
    default_message = _("The availability rules are being modified. Please retry.")
    error_code = "concurrent_modification"
