"""
Soltip Views: users

Profile management for the signed-in creator, the public tip page
lookup, and user administration (status, role, permissions, featuring).
"""

import logging

from django.db import IntegrityError, transaction as db_transaction
from django.db.models import Q
from rest_framework import status
from rest_framework.decorators import api_view, authentication_classes, permission_classes, throttle_classes
from rest_framework.permissions import AllowAny, IsAuthenticated

from .models import Creator, Permission
from .permissions import ensure_self_or_permission, require_permissions
from .responses import ApiError, api_success
from .seeds import permissions_for_role
from .serializers import (
    AvatarUploadSerializer,
    CreatorSerializer,
    CustomizationSerializer,
    PasswordChangeSerializer,
    PermissionSlugSerializer,
    ProfileUpdateSerializer,
    PublicCreatorSerializer,
    RoleSerializer,
    StatusSerializer,
    TipSettingsSerializer,
    WalletAddressSerializer,
)
from .throttles import AdminRateThrottle, ApiRateThrottle, GlobalRateThrottle
from .tokens import clear_auth_cookies
from .utils import paginate
from .views import is_username_taken

logger = logging.getLogger(__name__)


def get_creator_or_404(user_id):
    creator = Creator.objects.select_related('user').filter(user_id=user_id).first()
    if creator is None:
        raise ApiError('User not found', status.HTTP_404_NOT_FOUND)
    return creator


# ---------------------------------------------------------------------------
# Administration
# ---------------------------------------------------------------------------

@api_view(['GET'])
@permission_classes([IsAuthenticated, require_permissions('users:manage')])
@throttle_classes([GlobalRateThrottle, AdminRateThrottle])
def list_users(request):
    """Paginated user list, filterable by ``status`` and free-text ``search``."""
    queryset = Creator.objects.select_related('user')
    status_filter = request.query_params.get('status')
    if status_filter:
        queryset = queryset.filter(status=status_filter)
    search = request.query_params.get('search', '').strip()
    if search:
        queryset = queryset.filter(
            Q(username__icontains=search)
            | Q(user__email__icontains=search)
            | Q(display_name__icontains=search)
        )

    creators, pagination = paginate(queryset, request.query_params)
    return api_success('Users retrieved successfully', {
        'users': CreatorSerializer(creators, many=True).data,
        'pagination': pagination,
    })


@api_view(['GET', 'DELETE'])
@permission_classes([IsAuthenticated])
def user_detail(request, user_id):
    """Fetch or delete an account; owners and user managers only."""
    ensure_self_or_permission(request, user_id, 'users:manage')
    creator = get_creator_or_404(user_id)

    if request.method == 'GET':
        return api_success('User retrieved successfully', {'user': CreatorSerializer(creator).data})

    is_self = creator.user_id == request.user.pk
    creator.user.delete()
    logger.info("User %s deleted by %s", user_id, request.user.pk)
    response = api_success('User deleted successfully')
    if is_self:
        clear_auth_cookies(response)
    return response


@api_view(['PUT'])
@permission_classes([IsAuthenticated, require_permissions('users:manage')])
@throttle_classes([GlobalRateThrottle, AdminRateThrottle])
def update_user_status(request, user_id):
    serializer = StatusSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    creator = get_creator_or_404(user_id)

    new_status = serializer.validated_data['status']
    creator.status = new_status
    if new_status == 'active':
        creator.failed_login_attempts = 0
        creator.locked_at = None
    creator.save()
    logger.info("User %s status set to %s by %s", user_id, new_status, request.user.pk)
    return api_success('User status updated successfully', {'user': CreatorSerializer(creator).data})


@api_view(['PUT'])
@permission_classes([IsAuthenticated, require_permissions('permissions:manage')])
@throttle_classes([GlobalRateThrottle, AdminRateThrottle])
def update_user_role(request, user_id):
    """
    Change a user's role.

    The permission list becomes the new role's default set plus any custom
    grants the user held beyond the old role's defaults.
    """
    serializer = RoleSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    creator = get_creator_or_404(user_id)

    new_role = serializer.validated_data['role']
    old_defaults = set(permissions_for_role(creator.role))
    custom = [slug for slug in (creator.permissions or []) if slug not in old_defaults]

    creator.role = new_role
    creator.permissions = list(dict.fromkeys(permissions_for_role(new_role) + custom))
    creator.save()
    logger.info("User %s role set to %s by %s", user_id, new_role, request.user.pk)
    return api_success('User role updated successfully', {'user': CreatorSerializer(creator).data})


@api_view(['POST', 'DELETE'])
@permission_classes([IsAuthenticated, require_permissions('permissions:manage')])
@throttle_classes([GlobalRateThrottle, AdminRateThrottle])
def user_custom_permission(request, user_id):
    """Grant (POST) or remove (DELETE) a single custom permission."""
    serializer = PermissionSlugSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    slug = serializer.validated_data['permission']
    creator = get_creator_or_404(user_id)
    current = list(creator.permissions or [])

    if request.method == 'POST':
        if not Permission.objects.filter(slug=slug, is_active=True).exists():
            raise ApiError(f'Permission {slug} does not exist', status.HTTP_400_BAD_REQUEST)
        if slug in current:
            raise ApiError('User already has this permission', status.HTTP_400_BAD_REQUEST)
        creator.permissions = current + [slug]
        message = 'Permission added successfully'
    else:
        if slug in permissions_for_role(creator.role):
            raise ApiError("Cannot remove a permission granted by the user's role", status.HTTP_400_BAD_REQUEST)
        if slug not in current:
            raise ApiError('User does not have this permission', status.HTTP_400_BAD_REQUEST)
        creator.permissions = [p for p in current if p != slug]
        message = 'Permission removed successfully'

    creator.save()
    return api_success(message, {'permissions': creator.permissions})


@api_view(['PUT'])
@permission_classes([IsAuthenticated, require_permissions('creators:feature')])
@throttle_classes([GlobalRateThrottle, AdminRateThrottle])
def toggle_featured(request, user_id):
    creator = get_creator_or_404(user_id)
    creator.is_featured = not creator.is_featured
    creator.save(update_fields=['is_featured', 'updated_at'])
    state = 'featured' if creator.is_featured else 'unfeatured'
    return api_success(f'Creator {state} successfully', {'user': CreatorSerializer(creator).data})


# ---------------------------------------------------------------------------
# Own profile
# ---------------------------------------------------------------------------

@api_view(['PUT'])
@permission_classes([IsAuthenticated])
@throttle_classes([GlobalRateThrottle, ApiRateThrottle])
def update_profile(request):
    creator = request.user.creator
    serializer = ProfileUpdateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    if 'username' in data and data['username'] != creator.username:
        if is_username_taken(data['username'], exclude=creator):
            raise ApiError('Username is already taken', status.HTTP_409_CONFLICT)
        creator.username = data['username']
    if 'displayName' in data:
        creator.display_name = data['displayName']
    if 'bio' in data:
        creator.bio = data['bio']
    if 'socialLinks' in data:
        creator.social_links = {**(creator.social_links or {}), **data['socialLinks']}
    if 'avatarUrl' in data:
        creator.avatar_url = data['avatarUrl']
    if 'coverImageUrl' in data:
        creator.cover_image_url = data['coverImageUrl']

    try:
        with db_transaction.atomic():
            creator.save()
    except IntegrityError:
        raise ApiError('Username is already taken', status.HTTP_409_CONFLICT)

    return api_success('Profile updated successfully', {'user': CreatorSerializer(creator).data})


@api_view(['PUT'])
@permission_classes([IsAuthenticated])
@throttle_classes([GlobalRateThrottle, ApiRateThrottle])
def update_wallet(request):
    """Set the Solana address withdrawals are sent to by default."""
    creator = request.user.creator
    serializer = WalletAddressSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    creator.withdrawal_wallet_address = serializer.validated_data['withdrawalWalletAddress']
    creator.save(update_fields=['withdrawal_wallet_address', 'updated_at'])
    return api_success('Wallet address updated successfully', {
        'withdrawalWalletAddress': creator.withdrawal_wallet_address,
    })


@api_view(['POST', 'DELETE'])
@permission_classes([IsAuthenticated])
@throttle_classes([GlobalRateThrottle, ApiRateThrottle])
def avatar(request):
    """Upload (POST, multipart ``avatar``) or remove (DELETE) the profile picture."""
    creator = request.user.creator

    if request.method == 'DELETE':
        if creator.avatar:
            creator.avatar.delete(save=False)
        creator.avatar = None
        creator.avatar_url = ''
        creator.save()
        return api_success('Avatar removed successfully', {'user': CreatorSerializer(creator).data})

    serializer = AvatarUploadSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    if creator.avatar:
        creator.avatar.delete(save=False)
    creator.avatar = serializer.validated_data['avatar']
    creator.save()
    return api_success('Avatar updated successfully', {'user': CreatorSerializer(creator).data})


@api_view(['PUT'])
@permission_classes([IsAuthenticated])
@throttle_classes([GlobalRateThrottle, ApiRateThrottle])
def change_password(request):
    serializer = PasswordChangeSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    user = request.user

    if not user.check_password(serializer.validated_data['currentPassword']):
        raise ApiError('Current password is incorrect', status.HTTP_400_BAD_REQUEST)

    user.set_password(serializer.validated_data['newPassword'])
    user.save(update_fields=['password'])
    return api_success('Password updated successfully')


@api_view(['PUT'])
@permission_classes([IsAuthenticated, require_permissions('profile:customize')])
@throttle_classes([GlobalRateThrottle, ApiRateThrottle])
def update_customization(request):
    creator = request.user.creator
    serializer = CustomizationSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    creator.customization = {**creator.get_customization(), **serializer.validated_data}
    creator.save(update_fields=['customization', 'updated_at'])
    return api_success('Customization updated successfully', {'customization': creator.customization})


@api_view(['GET', 'PUT'])
@permission_classes([IsAuthenticated])
@throttle_classes([GlobalRateThrottle, ApiRateThrottle])
def tip_settings(request):
    creator = request.user.creator

    if request.method == 'PUT':
        serializer = TipSettingsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        creator.tip_settings = {**creator.get_tip_settings(), **serializer.validated_data}
        creator.save(update_fields=['tip_settings', 'updated_at'])
        return api_success('Tip settings updated successfully', {'tipSettings': creator.tip_settings})

    return api_success('Tip settings retrieved successfully', {'tipSettings': creator.get_tip_settings()})


# ---------------------------------------------------------------------------
# Public
# ---------------------------------------------------------------------------

@api_view(['GET'])
@authentication_classes([])
@permission_classes([AllowAny])
def public_profile(request, username):
    """Tip page data for an active creator."""
    creator = Creator.objects.select_related('user').filter(
        username=username.strip().lower(), status='active'
    ).first()
    if creator is None:
        raise ApiError('Creator profile not found. Please check the username and try again.',
                       status.HTTP_404_NOT_FOUND)

    data = PublicCreatorSerializer(creator).data
    if data['customization']['showTipCounter']:
        data['tipCount'] = creator.transactions.filter(type='tip', status='completed').count()
    return api_success('User retrieved successfully', {'user': data})


@api_view(['GET'])
@authentication_classes([])
@permission_classes([AllowAny])
def featured_creators(request):
    creators = Creator.objects.select_related('user').filter(is_featured=True, status='active')
    creators, pagination = paginate(creators, request.query_params, default_limit=12)
    return api_success('Featured creators retrieved successfully', {
        'creators': PublicCreatorSerializer(creators, many=True).data,
        'pagination': pagination,
    })
