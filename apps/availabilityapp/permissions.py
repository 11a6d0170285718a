from rest_framework import permissions

from apps.organizersapp.models import Organizer


def get_request_organizer(request):
    """Organizer profile of the authenticated user, or None"""
    user = request.user
    if not user or not user.is_authenticated:
        return None
    try:
        return user.organizer_profile
    except Organizer.DoesNotExist:
        return None


class IsOrganizer(permissions.BasePermission):
    """
    Only organizers manage availability.

    - The user must have an organizer profile
    - Objects must belong to that organizer
    """

    message = "An organizer profile is required."

    def has_permission(self, request, view):
        return get_request_organizer(request) is not None

    def has_object_permission(self, request, view, obj):
        organizer = get_request_organizer(request)
        return organizer is not None and obj.organizer_id == organizer.id
