"""
Identity Provider Authentication

The hosted identity provider (sign-up, sign-in, password reset) sits in
front of this API and forwards the authenticated identity as headers:

    X-User-Id:    opaque uid          (required)
    X-User-Email: email               (optional)
    X-User-Name:  display name        (optional)

We trust these completely and never re-validate credentials. Every
authenticated request runs ensure_profile(), which is the system's only
registration step.
"""
import logging

from rest_framework import authentication

logger = logging.getLogger(__name__)


class IdentityHeaderAuthentication(authentication.BaseAuthentication):
    """Authenticates as the Profile named by the X-User-Id header."""

    def authenticate(self, request):
        uid = request.META.get('HTTP_X_USER_ID', '').strip()
        if not uid:
            # Anonymous: DRF falls back to AnonymousUser
            return None

        # Deferred: DRF loads this class while rest_framework.views initialises
        from .profiles import ensure_profile

        profile, _ = ensure_profile({
            'uid': uid,
            'email': request.META.get('HTTP_X_USER_EMAIL', '').strip(),
            'display_name': request.META.get('HTTP_X_USER_NAME', '').strip(),
        })
        return (profile, None)

    def authenticate_header(self, request):
        # Makes DRF answer 401 (not 403) for missing identity
        return 'X-User-Id'
