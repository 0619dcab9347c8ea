"""
Shared-secret authentication for the tracker hub.

The tracker firmware and the admin page both pass a single static
secret as the ``key`` query parameter. There is no user model behind it:
a matching key is the whole identity.
"""
import logging

from django.conf import settings
from django.contrib.auth.models import AnonymousUser
from rest_framework import authentication, exceptions, permissions
from rest_framework.request import Request
from rest_framework.views import APIView

logger = logging.getLogger(__name__)

KEY_PARAM = 'key'


def get_api_key() -> str:
    """
    Get the configured shared secret.

    Returns:
        The secret, or empty string if not configured.
    """
    return str(settings.TRACKER_API_KEY)


class SharedSecretAuthentication(authentication.BaseAuthentication):
    """
    Authenticate requests carrying ``?key=<secret>``.

    A request without a key is left unauthenticated so that permission
    classes decide; a request with a wrong key is rejected outright. When
    no secret is configured every supplied key is rejected.

    No ``WWW-Authenticate`` challenge is sent, so DRF answers failures
    with 403.
    """

    def authenticate(self, request: Request) -> tuple[object, str] | None:
        """
        Authenticate the request using the ``key`` query parameter.

        Args:
            request: The incoming DRF request

        Returns:
            Tuple of (user, key) if authenticated, None if no key supplied

        Raises:
            AuthenticationFailed: If a key is supplied but does not match
        """
        supplied = request.query_params.get(KEY_PARAM)
        if supplied is None:
            return None

        api_key = get_api_key()
        if not api_key:
            logger.warning("Rejected request to %s: API_KEY is not configured", request.path)
            raise exceptions.AuthenticationFailed("Shared secret is not configured on the server")

        if supplied != api_key:
            logger.warning("Invalid key attempt on %s", request.path)
            raise exceptions.AuthenticationFailed("Invalid key")

        return (AnonymousUser(), supplied)


class HasSharedSecret(permissions.BasePermission):
    """Allow only requests authenticated by ``SharedSecretAuthentication``."""

    message = "Expected 'key' query parameter with the shared secret, got none"

    def has_permission(self, request: Request, view: APIView) -> bool:
        return request.auth is not None


class HasSharedSecretForWrites(HasSharedSecret):
    """Allow reads to everyone; writes need the shared secret."""

    def has_permission(self, request: Request, view: APIView) -> bool:
        if request.method in permissions.SAFE_METHODS:
            return True
        return super().has_permission(request, view)
