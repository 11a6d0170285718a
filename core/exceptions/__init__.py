"""
Slotwise centralised custom exceptions.

Import these from `core.exceptions` across the project instead of redefining
ad-hoc `Exception` subclasses in each app.
"""

from .custom_exceptions import (
    APIException,
    ConcurrentModificationException,
    PermissionDeniedException,
    ResourceNotFoundException,
    SchedulingConflictException,
    ValidationException,
)

__all__ = [
    "APIException",
    "ConcurrentModificationException",
    "PermissionDeniedException",
    "ResourceNotFoundException",
    "SchedulingConflictException",
    "ValidationException",
]
