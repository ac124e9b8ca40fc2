"""
Soltip Views: permissions and waitlist

Permission catalogue browsing and per-user permission management, plus
the pre-launch waitlist.
"""

import logging
from collections import defaultdict

from rest_framework import status
from rest_framework.decorators import api_view, authentication_classes, permission_classes, throttle_classes
from rest_framework.permissions import AllowAny, IsAuthenticated

from .authentication import authenticate_request
from .models import Permission, WaitlistEntry
from .permissions import ensure_self_or_permission, require_permissions, require_roles
from .responses import ApiError, api_success
from .seeds import DEFAULT_PERMISSION_SETS
from .serializers import (
    PermissionListSerializer,
    PermissionSerializer,
    PermissionSetSerializer,
    SetPermissionsSerializer,
    WaitlistEntrySerializer,
    WaitlistJoinSerializer,
)
from .throttles import AdminRateThrottle, GlobalRateThrottle
from .user_views import get_creator_or_404
from .utils import paginate

logger = logging.getLogger(__name__)

MANAGE_PERMISSIONS = [IsAuthenticated, require_permissions('permissions:manage')]


def _validate_slugs(slugs):
    """Raise a 400 listing any slug that is not an active permission."""
    known = set(Permission.objects.filter(slug__in=slugs, is_active=True).values_list('slug', flat=True))
    unknown = [slug for slug in slugs if slug not in known]
    if unknown:
        raise ApiError('One or more permissions are invalid', status.HTTP_400_BAD_REQUEST, error=unknown)


def _permissions_payload(creator):
    return {'userId': creator.user_id, 'permissions': creator.permissions}


@api_view(['GET'])
@permission_classes(MANAGE_PERMISSIONS)
@throttle_classes([GlobalRateThrottle, AdminRateThrottle])
def list_permissions(request):
    permissions = Permission.objects.filter(is_active=True)
    return api_success('Permissions retrieved successfully', {
        'permissions': PermissionSerializer(permissions, many=True).data,
    })


@api_view(['GET'])
@permission_classes(MANAGE_PERMISSIONS)
@throttle_classes([GlobalRateThrottle, AdminRateThrottle])
def permissions_by_module(request):
    grouped = defaultdict(list)
    for permission in Permission.objects.filter(is_active=True):
        grouped[permission.module].append(PermissionSerializer(permission).data)
    return api_success('Permissions retrieved successfully', {'modules': dict(grouped)})


@api_view(['GET'])
@permission_classes(MANAGE_PERMISSIONS)
@throttle_classes([GlobalRateThrottle, AdminRateThrottle])
def permission_sets(request):
    return api_success('Permission sets retrieved successfully', {'permissionSets': DEFAULT_PERMISSION_SETS})


@api_view(['GET', 'PUT'])
@permission_classes([IsAuthenticated])
def user_permissions(request, user_id):
    """
    GET: a user's permission slugs (``?detailed=true`` for full records).
    Users may read their own; everything else needs permissions:manage.

    PUT: replace the user's permissions with exactly the given list.
    """
    if request.method == 'GET':
        ensure_self_or_permission(request, user_id, 'permissions:manage')
        creator = get_creator_or_404(user_id)
        data = _permissions_payload(creator)
        if request.query_params.get('detailed') == 'true':
            records = Permission.objects.filter(slug__in=creator.permissions or [])
            data['permissions'] = PermissionSerializer(records, many=True).data
        return api_success('User permissions retrieved successfully', data)

    if not request.user.creator.has_permission('permissions:manage'):
        raise ApiError('You do not have permission to perform this action', status.HTTP_403_FORBIDDEN)
    serializer = SetPermissionsSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    slugs = list(dict.fromkeys(serializer.validated_data['permissions']))
    _validate_slugs(slugs)

    creator = get_creator_or_404(user_id)
    creator.permissions = slugs
    creator.save(update_fields=['permissions', 'updated_at'])
    logger.info("Permissions of user %s replaced by %s", user_id, request.user.pk)
    return api_success('User permissions updated successfully', _permissions_payload(creator))


@api_view(['POST'])
@permission_classes(MANAGE_PERMISSIONS)
@throttle_classes([GlobalRateThrottle, AdminRateThrottle])
def assign_permissions(request, user_id):
    serializer = PermissionListSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    slugs = serializer.validated_data['permissions']
    _validate_slugs(slugs)

    creator = get_creator_or_404(user_id)
    creator.permissions = list(dict.fromkeys(list(creator.permissions or []) + slugs))
    creator.save(update_fields=['permissions', 'updated_at'])
    return api_success('Permissions assigned successfully', _permissions_payload(creator))


@api_view(['POST'])
@permission_classes(MANAGE_PERMISSIONS)
@throttle_classes([GlobalRateThrottle, AdminRateThrottle])
def revoke_permissions(request, user_id):
    serializer = PermissionListSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    revoked = set(serializer.validated_data['permissions'])

    creator = get_creator_or_404(user_id)
    creator.permissions = [slug for slug in (creator.permissions or []) if slug not in revoked]
    creator.save(update_fields=['permissions', 'updated_at'])
    return api_success('Permissions revoked successfully', _permissions_payload(creator))


@api_view(['POST'])
@permission_classes(MANAGE_PERMISSIONS)
@throttle_classes([GlobalRateThrottle, AdminRateThrottle])
def assign_permission_set(request, user_id):
    """Add every permission of a named set (basicUser, creator, ...)."""
    serializer = PermissionSetSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    set_name = serializer.validated_data['setName']

    creator = get_creator_or_404(user_id)
    creator.permissions = list(dict.fromkeys(list(creator.permissions or []) + DEFAULT_PERMISSION_SETS[set_name]))
    creator.save(update_fields=['permissions', 'updated_at'])
    return api_success(f'Permission set {set_name} assigned successfully', _permissions_payload(creator))


# ---------------------------------------------------------------------------
# Waitlist
# ---------------------------------------------------------------------------

@api_view(['GET', 'POST'])
@authentication_classes([])
@permission_classes([AllowAny])
def waitlist(request):
    """
    POST joins the waitlist (public); GET lists entries (admins only).

    Authentication only runs for GET, so a stale session cookie never
    blocks a visitor from joining.
    """
    if request.method == 'POST':
        serializer = WaitlistJoinSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        email = serializer.validated_data['email']
        if WaitlistEntry.objects.filter(email__iexact=email).exists():
            raise ApiError('This email is already on the waitlist', status.HTTP_409_CONFLICT)
        entry = WaitlistEntry.objects.create(email=email)
        return api_success('Successfully joined the waitlist', {'entry': WaitlistEntrySerializer(entry).data},
                           status.HTTP_201_CREATED)

    authenticate_request(request)
    if not require_roles('admin', 'super_admin')().has_permission(request, None):
        raise ApiError('You do not have permission to access this resource', status.HTTP_403_FORBIDDEN)

    entries, pagination = paginate(WaitlistEntry.objects.all(), request.query_params, default_limit=20)
    return api_success('Waitlist retrieved successfully', {
        'entries': WaitlistEntrySerializer(entries, many=True).data,
        'pagination': pagination,
    })
