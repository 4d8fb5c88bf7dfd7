"""
Custom permission classes for the DormDash marketplace API.
"""

from rest_framework import permissions


class IsServiceProvider(permissions.BasePermission):
    """
    Object-level permission: only the provider of a service may act on it.

    Accepts either a Service or a Bid (checked against the bid's service).

    Usage:
        permission = IsServiceProvider()
        if not permission.has_object_permission(request, self, bid): ...
    """

    message = 'Only the provider of this service can perform this action.'

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated)

    def has_object_permission(self, request, view, obj):
        """
        Check if the authenticated user provides the service.

        Args:
            request: HTTP request object
            view: View being accessed
            obj: Service or Bid instance

        Returns:
            bool: True if the user is the provider, False otherwise
        """
        if not request.user or not request.user.is_authenticated:
            return False

        service = getattr(obj, 'service', obj)
        return str(service.provider_id) == str(request.user.id)


class IsConversationParticipant(permissions.BasePermission):
    """
    Object-level permission: only the two participants may read or post.
    """

    message = 'You are not a participant in this conversation.'

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated)

    def has_object_permission(self, request, view, obj):
        if not request.user or not request.user.is_authenticated:
            return False
        return obj.has_participant(request.user.id)
