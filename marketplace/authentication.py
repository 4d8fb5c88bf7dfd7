"""
DRF authentication driven by the process-wide session pointer.
"""

from rest_framework.authentication import BaseAuthentication

from .identity import IdentityService
from .store import EntityStore


class CurrentSessionAuthentication(BaseAuthentication):
    """
    Authenticate every request as the marketplace's current user.

    The marketplace models a single-session deployment: logging in points the
    shared session at a user, logging out clears it. A pointer to a user that
    no longer resolves counts as anonymous.
    """

    def authenticate(self, request):
        user = IdentityService(EntityStore()).get_current_user()
        if user is None or not user.is_active:
            return None
        return (user, None)

    def authenticate_header(self, request):
        return 'Session'
