"""
Soltip Token Service

Issues, rotates and revokes the JWT pair used by the API, on top of
djangorestframework-simplejwt and its token blacklist app.

- Refresh tokens carry ``userId`` and ``email``.
- Access tokens additionally carry ``role`` and ``permissions``.
- Rotating a refresh token blacklists the old one, so each refresh token
  can be used exactly once.

Both tokens travel in httpOnly cookies; helpers to set and clear them live
here so every view uses the same cookie attributes.
"""

import logging

from django.conf import settings
from django.contrib.auth.models import User
from django.utils import timezone
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.settings import api_settings
from rest_framework_simplejwt.token_blacklist.models import OutstandingToken
from rest_framework_simplejwt.tokens import RefreshToken

logger = logging.getLogger(__name__)


def _format_lifetime(delta):
    """Render a lifetime the way clients expect it, e.g. ``30m`` or ``7d``."""
    seconds = int(delta.total_seconds())
    if seconds % 86400 == 0:
        return f"{seconds // 86400}d"
    if seconds % 3600 == 0:
        return f"{seconds // 3600}h"
    return f"{seconds // 60}m"


class TokenService:
    """Stateless helpers around simplejwt's RefreshToken."""

    @staticmethod
    def access_lifetime():
        return api_settings.ACCESS_TOKEN_LIFETIME

    @staticmethod
    def refresh_lifetime():
        return api_settings.REFRESH_TOKEN_LIFETIME

    @classmethod
    def expires_in(cls):
        return {
            'accessExpiresIn': _format_lifetime(cls.access_lifetime()),
            'refreshExpiresIn': _format_lifetime(cls.refresh_lifetime()),
        }

    @staticmethod
    def _build_refresh(user):
        refresh = RefreshToken.for_user(user)
        refresh['email'] = user.email
        return refresh

    @staticmethod
    def _build_access(refresh, user):
        access = refresh.access_token
        creator = user.creator
        access['role'] = creator.role
        access['permissions'] = list(creator.permissions or [])
        return access

    @classmethod
    def issue_tokens(cls, user):
        """
        Create a fresh token pair for ``user``.

        Returns:
            tuple: (access_token, refresh_token) as encoded strings
        """
        refresh = cls._build_refresh(user)
        access = cls._build_access(refresh, user)
        return str(access), str(refresh)

    @classmethod
    def rotate_refresh_token(cls, raw_token):
        """
        Exchange a refresh token for a new token pair.

        The presented token is verified (signature, expiry, type and
        blacklist) and blacklisted before the new pair is issued.

        Returns:
            tuple: (user, access_token, refresh_token), or None when the
            token is invalid or its user no longer exists
        """
        try:
            refresh = RefreshToken(raw_token)
        except TokenError as e:
            logger.info("Refresh token rejected: %s", e)
            return None

        user_id = refresh.payload.get(api_settings.USER_ID_CLAIM)
        user = User.objects.select_related('creator').filter(pk=user_id).first()
        if user is None:
            logger.info("Refresh token for missing user %s", user_id)
            return None

        try:
            refresh.blacklist()
        except TokenError as e:
            logger.warning("Could not blacklist refresh token for user %s: %s", user_id, e)
            return None

        access, new_refresh = cls.issue_tokens(user)
        return user, access, new_refresh

    @staticmethod
    def revoke_refresh_token(raw_token):
        """Blacklist a refresh token. Returns False if it was already unusable."""
        try:
            RefreshToken(raw_token).blacklist()
        except TokenError as e:
            logger.info("Refresh token not revoked: %s", e)
            return False
        return True

    @staticmethod
    def cleanup_expired_tokens(user=None):
        """
        Delete expired refresh tokens (their blacklist rows cascade).

        Returns:
            int: number of outstanding tokens removed
        """
        expired = OutstandingToken.objects.filter(expires_at__lte=timezone.now())
        if user is not None:
            expired = expired.filter(user=user)
        count = expired.count()
        expired.delete()
        return count


def set_auth_cookies(response, access_token, refresh_token):
    """Attach both auth cookies to ``response``."""
    response.set_cookie(
        settings.ACCESS_TOKEN_COOKIE,
        access_token,
        max_age=int(TokenService.access_lifetime().total_seconds()),
        httponly=True,
        secure=settings.AUTH_COOKIE_SECURE,
        samesite=settings.AUTH_COOKIE_SAMESITE,
        path='/',
    )
    response.set_cookie(
        settings.REFRESH_TOKEN_COOKIE,
        refresh_token,
        max_age=int(TokenService.refresh_lifetime().total_seconds()),
        httponly=True,
        secure=settings.AUTH_COOKIE_SECURE,
        samesite=settings.AUTH_COOKIE_SAMESITE,
        path=settings.REFRESH_TOKEN_COOKIE_PATH,
    )
    return response


def clear_auth_cookies(response):
    response.delete_cookie(settings.ACCESS_TOKEN_COOKIE, path='/', samesite=settings.AUTH_COOKIE_SAMESITE)
    response.delete_cookie(settings.REFRESH_TOKEN_COOKIE, path=settings.REFRESH_TOKEN_COOKIE_PATH,
                           samesite=settings.AUTH_COOKIE_SAMESITE)
    return response
