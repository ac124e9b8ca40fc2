"""
Cookie-aware JWT authentication.

The access token is read from the ``accessToken`` cookie set at login and
falls back to a standard ``Authorization: Bearer`` header for API clients.
Users whose account is not active or pending are rejected even with a
valid token.
"""

from django.conf import settings
from rest_framework import exceptions
from rest_framework_simplejwt.authentication import JWTAuthentication


class CookieJWTAuthentication(JWTAuthentication):

    def authenticate(self, request):
        raw_token = request.COOKIES.get(settings.ACCESS_TOKEN_COOKIE)
        if not raw_token:
            header = self.get_header(request)
            if header is None:
                return None
            raw_token = self.get_raw_token(header)
            if raw_token is None:
                return None

        validated_token = self.get_validated_token(raw_token)
        user = self.get_user(validated_token)

        creator = getattr(user, 'creator', None)
        if creator is None:
            raise exceptions.AuthenticationFailed('User not found')
        if not creator.is_usable:
            raise exceptions.AuthenticationFailed(f'Account is {creator.status}. Please contact support')

        return user, validated_token


def authenticate_request(request):
    """
    Authenticate inside a view that disabled automatic authentication.

    Used where one URL serves a public method and an authenticated one, so
    a stale cookie cannot break the public method.

    Raises:
        NotAuthenticated: When no credentials were supplied
    """
    result = CookieJWTAuthentication().authenticate(request)
    if result is None:
        raise exceptions.NotAuthenticated()
    request.user, request.auth = result
    return request.user
