"""
Custom authentication backend for email-based authentication.
"""

from django.contrib.auth.backends import ModelBackend

from .identity import AuthFailure, IdentityService
from .store import EntityStore


class EmailBackend(ModelBackend):
    """
    Authentication backend that checks credentials through IdentityService.

    Used by the admin site and django.contrib.auth.authenticate(), so every
    login goes through the same digest comparison as the API.
    """

    def authenticate(self, request, username=None, password=None, **kwargs):
        """
        Authenticate user by email and password.

        Args:
            request: HTTP request object
            username: Email address (named username for compatibility)
            password: User password
            **kwargs: May carry 'email' instead of username

        Returns:
            User object if authentication successful, None otherwise
        """
        email = kwargs.get('email', username)

        if email is None or password is None:
            return None

        result = IdentityService(EntityStore()).verify_credentials(email, password)
        if isinstance(result, AuthFailure):
            return None

        if not self.user_can_authenticate(result):
            return None

        return result

    def get_user(self, user_id):
        """
        Get user by ID.

        Args:
            user_id: User primary key

        Returns:
            User object if found, None otherwise
        """
        user = EntityStore().get('users', user_id)
        if user is None or not self.user_can_authenticate(user):
            return None
        return user
