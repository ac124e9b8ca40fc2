"""
Soltip Permission Classes

DRF permission classes built from the permission slugs and roles stored on
each user's Creator profile. Checks always read the database profile, so
permission changes apply immediately instead of waiting for the access
token to expire.

Usage:
    @permission_classes([IsAuthenticated, require_permissions('users:manage')])
    @permission_classes([IsAuthenticated, require_roles('admin', 'super_admin')])
"""

from rest_framework.permissions import BasePermission

from .responses import ApiError


def _creator(request):
    user = getattr(request, 'user', None)
    if not user or not user.is_authenticated:
        return None
    return getattr(user, 'creator', None)


def require_permissions(*slugs):
    """Permission class granting access when the user holds any of ``slugs``."""

    class HasAnyPermission(BasePermission):
        message = 'You do not have permission to perform this action'

        def has_permission(self, request, view):
            creator = _creator(request)
            return bool(creator and any(creator.has_permission(slug) for slug in slugs))

    HasAnyPermission.__name__ = f"HasAnyPermission[{','.join(slugs)}]"
    return HasAnyPermission


def require_roles(*roles):
    """Permission class granting access to users whose role is in ``roles``."""

    class HasRole(BasePermission):
        message = 'You do not have permission to access this resource'

        def has_permission(self, request, view):
            creator = _creator(request)
            return bool(creator and creator.role in roles)

    HasRole.__name__ = f"HasRole[{','.join(roles)}]"
    return HasRole


def ensure_self_or_permission(request, user_id, slug):
    """
    Allow access to a per-user resource for its owner or holders of ``slug``.

    Raises:
        ApiError: 403 when neither applies
    """
    creator = _creator(request)
    if creator is None:
        raise ApiError('Authentication required', 401)
    if str(request.user.pk) == str(user_id) or creator.has_permission(slug):
        return
    raise ApiError('You do not have permission to access this resource', 403)
