"""
Soltip Views: accounts and onboarding

This module contains the authentication and onboarding endpoints:
- Registration, login, token refresh and logout (JWT in httpOnly cookies)
- Email verification and password reset
- The onboarding wizard: username → profile → avatar → customize → complete
- Health check and API root

Account lifecycle rules:
- New accounts start as ``pending`` creators at the ``username`` step
- Five consecutive wrong passwords lock the account until a password reset
- Completing onboarding provisions the creator's Circle wallet and
  activates the account
"""

import logging

from django.conf import settings
from django.contrib.auth.models import User
from django.db import IntegrityError, transaction as db_transaction
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, authentication_classes, permission_classes, throttle_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from .circle import CircleError, get_circle_client
from .models import Creator, default_customization
from .responses import ApiError, api_success, error_body
from .seeds import permissions_for_role
from .serializers import (
    AvatarStepSerializer,
    CreatorSerializer,
    CustomizationSerializer,
    ForgotPasswordSerializer,
    LoginSerializer,
    ProfileStepSerializer,
    RegisterSerializer,
    ResetPasswordSerializer,
    UsernameSerializer,
)
from .throttles import (
    AuthRateThrottle,
    GlobalRateThrottle,
    PasswordResetRateThrottle,
    UserCreationRateThrottle,
)
from .tokens import TokenService, clear_auth_cookies, set_auth_cookies
from .utils import send_password_reset_email, send_verification_email

logger = logging.getLogger(__name__)


def _auth_response(message, user, status_code=status.HTTP_200_OK):
    """Issue a token pair for ``user`` and return it as cookies plus the profile."""
    access, refresh = TokenService.issue_tokens(user)
    data = {'user': CreatorSerializer(user.creator).data}
    data.update(TokenService.expires_in())
    response = api_success(message, data, status_code)
    return set_auth_cookies(response, access, refresh)


def _wallet_balance(creator):
    """Live USDC balance of the creator's Circle wallet (0 without a wallet)."""
    if not creator.circle_wallet_id:
        return 0
    return get_circle_client().get_usdc_balance(creator.circle_wallet_id)


def is_username_taken(username, exclude=None):
    qs = Creator.objects.filter(username=username.strip().lower())
    if exclude is not None:
        qs = qs.exclude(pk=exclude.pk)
    return qs.exists()


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
@throttle_classes([GlobalRateThrottle, AuthRateThrottle, UserCreationRateThrottle])
def register(request):
    """
    Create an account and sign it in.

    The account starts as a pending creator at the first onboarding step
    and receives an email verification link valid for 24 hours.
    """
    serializer = RegisterSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    email = serializer.validated_data['email']

    if User.objects.filter(email__iexact=email).exists():
        raise ApiError('Email is already in use', status.HTTP_409_CONFLICT)

    try:
        with db_transaction.atomic():
            user = User.objects.create_user(username=email, email=email,
                                            password=serializer.validated_data['password'])
            creator = user.creator
            token = creator.issue_email_verification_token()
            creator.save()
    except IntegrityError:
        raise ApiError('Email is already in use', status.HTTP_409_CONFLICT)

    send_verification_email(creator, token)
    logger.info("Registered user %s", user.pk)
    return _auth_response('User registered successfully!', user, status.HTTP_201_CREATED)


@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
@throttle_classes([GlobalRateThrottle, AuthRateThrottle])
def login(request):
    """
    Sign in with email and password.

    Wrong passwords are counted; the fifth consecutive failure locks the
    account. Locked, suspended, banned and inactive accounts cannot sign in.
    """
    serializer = LoginSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    email = serializer.validated_data['email']

    creator = Creator.objects.select_related('user').filter(user__email__iexact=email).first()
    if creator is None:
        raise ApiError('Invalid email or password', status.HTTP_401_UNAUTHORIZED)

    if not creator.is_usable:
        raise ApiError(f'Your account is {creator.status}. Please contact support.',
                       status.HTTP_403_FORBIDDEN, code='ACCOUNT_INACTIVE')

    user = creator.user
    if not user.check_password(serializer.validated_data['password']):
        if creator.register_failed_login():
            logger.warning("Account %s locked after repeated failed logins", user.pk)
        raise ApiError('Invalid email or password', status.HTTP_401_UNAUTHORIZED)

    creator.failed_login_attempts = 0
    creator.save(update_fields=['failed_login_attempts', 'updated_at'])
    user.last_login = timezone.now()
    user.save(update_fields=['last_login'])
    TokenService.cleanup_expired_tokens(user)

    return _auth_response('Login successful!', user)


@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
def refresh_token(request):
    """Rotate the refresh token and issue a new access token."""
    raw = request.COOKIES.get(settings.REFRESH_TOKEN_COOKIE) or request.data.get('refreshToken')
    if not raw:
        raise ApiError('Refresh token not provided', status.HTTP_401_UNAUTHORIZED)

    rotated = TokenService.rotate_refresh_token(raw)
    if rotated is None:
        response = Response(error_body('Invalid refresh token'), status=status.HTTP_401_UNAUTHORIZED)
        return clear_auth_cookies(response)

    user, access, refresh = rotated
    response = api_success('Tokens refreshed successfully', TokenService.expires_in())
    return set_auth_cookies(response, access, refresh)


@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
def logout(request):
    """Revoke the refresh token and clear both auth cookies."""
    raw = request.COOKIES.get(settings.REFRESH_TOKEN_COOKIE) or request.data.get('refreshToken')
    if raw:
        TokenService.revoke_refresh_token(raw)
    response = api_success('Logged out successfully')
    return clear_auth_cookies(response)


@api_view(['GET'])
@authentication_classes([])
@permission_classes([AllowAny])
def verify_email(request, token):
    creator = Creator.objects.filter(
        email_verification_token=token,
        email_verification_expires__gt=timezone.now(),
    ).first()
    if creator is None:
        raise ApiError('Invalid or expired verification token', status.HTTP_400_BAD_REQUEST)

    creator.email_verified = True
    creator.email_verification_token = None
    creator.email_verification_expires = None
    creator.save()
    return api_success('Email verified successfully')


@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
@throttle_classes([GlobalRateThrottle, PasswordResetRateThrottle])
def forgot_password(request):
    """
    Email a password reset link valid for one hour.

    Always answers the same way so the endpoint cannot be used to find out
    which emails have accounts.
    """
    serializer = ForgotPasswordSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    creator = Creator.objects.select_related('user').filter(
        user__email__iexact=serializer.validated_data['email']
    ).first()
    if creator is not None:
        token = creator.issue_password_reset_token()
        creator.save()
        send_password_reset_email(creator, token)
        logger.info("Password reset requested for user %s", creator.user_id)

    return api_success('If an account exists for that email, a password reset link has been sent.')


@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
@throttle_classes([GlobalRateThrottle, PasswordResetRateThrottle])
def reset_password(request, token):
    """Set a new password with a reset token; also unlocks a locked account."""
    serializer = ResetPasswordSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    creator = Creator.objects.select_related('user').filter(
        password_reset_token=token,
        password_reset_expires__gt=timezone.now(),
    ).first()
    if creator is None:
        raise ApiError('Invalid or expired password reset token', status.HTTP_400_BAD_REQUEST)

    with db_transaction.atomic():
        user = creator.user
        user.set_password(serializer.validated_data['password'])
        user.save(update_fields=['password'])
        creator.password_reset_token = None
        creator.password_reset_expires = None
        creator.unlock()
        creator.save()

    return api_success('Password has been reset successfully')


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def me(request):
    """Current account with its live wallet balance."""
    creator = request.user.creator
    data = CreatorSerializer(creator).data
    data['balance'] = _wallet_balance(creator)
    return api_success('User profile retrieved successfully', {'user': data})


@api_view(['GET'])
@authentication_classes([])
@permission_classes([AllowAny])
def check_username(request, username):
    serializer = UsernameSerializer(data={'username': username})
    serializer.is_valid(raise_exception=True)
    username = serializer.validated_data['username']
    return api_success('Username availability checked', {
        'username': username,
        'available': not is_username_taken(username),
    })


# ---------------------------------------------------------------------------
# Onboarding
# ---------------------------------------------------------------------------

def _onboarding_response(message, creator):
    return api_success(message, {
        'user': CreatorSerializer(creator).data,
        'nextStep': creator.current_onboarding_step,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def onboarding_username(request):
    creator = request.user.creator
    serializer = UsernameSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    username = serializer.validated_data['username']

    if is_username_taken(username, exclude=creator):
        raise ApiError('Username is already taken', status.HTTP_409_CONFLICT)

    creator.username = username
    creator.advance_onboarding('username')
    try:
        with db_transaction.atomic():
            creator.save()
    except IntegrityError:
        raise ApiError('Username is already taken', status.HTTP_409_CONFLICT)

    return _onboarding_response('Username saved successfully', creator)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def onboarding_profile(request):
    creator = request.user.creator
    serializer = ProfileStepSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    creator.display_name = data['displayName']
    if 'bio' in data:
        creator.bio = data['bio']
    if 'socialLinks' in data:
        creator.social_links = {**(creator.social_links or {}), **data['socialLinks']}
    creator.advance_onboarding('profile')
    creator.save()

    return _onboarding_response('Profile saved successfully', creator)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def onboarding_avatar(request):
    """Store avatar/cover image URLs and/or an uploaded avatar image."""
    creator = request.user.creator
    serializer = AvatarStepSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    if 'avatarUrl' in data:
        creator.avatar_url = data['avatarUrl']
    if 'coverImageUrl' in data:
        creator.cover_image_url = data['coverImageUrl']
    if data.get('avatar'):
        if creator.avatar:
            creator.avatar.delete(save=False)
        creator.avatar = data['avatar']
    creator.advance_onboarding('avatar')
    creator.save()

    return _onboarding_response('Avatar saved successfully', creator)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def onboarding_customization(request):
    creator = request.user.creator
    serializer = CustomizationSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    creator.customization = {**creator.get_customization(), **serializer.validated_data}
    creator.advance_onboarding('customize')
    creator.save()

    return _onboarding_response('Customization saved successfully', creator)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def onboarding_complete(request):
    """
    Finish onboarding and activate the creator.

    Provisions the creator's Circle wallet unless one exists already. If
    wallet creation fails nothing is saved, so the call can be retried.
    """
    creator = request.user.creator

    missing = []
    if not creator.username:
        missing.append('Username is required')
    if missing:
        raise ApiError('Please complete all required onboarding steps', status.HTTP_400_BAD_REQUEST, error=missing)

    if not creator.circle_wallet_id:
        try:
            wallet = get_circle_client().create_wallet(ref_id=request.user.pk)
        except CircleError as e:
            logger.error("Wallet creation failed for user %s: %s", request.user.pk, e)
            raise ApiError('Failed to create wallet. Please try again.',
                           status.HTTP_500_INTERNAL_SERVER_ERROR, code='WALLET_CREATION_FAILED')
        creator.circle_wallet_id = wallet['id']
        creator.deposit_wallet_address = wallet['address']

    creator.onboarding_completed = True
    creator.current_onboarding_step = 'complete'
    creator.status = 'active'
    if not creator.is_admin:
        creator.role = 'creator'
        # Keep any custom grants on top of the creator defaults
        creator.permissions = list(dict.fromkeys(permissions_for_role('creator') + list(creator.permissions or [])))
    creator.save()
    logger.info("User %s completed onboarding", request.user.pk)

    return _onboarding_response('Onboarding completed successfully!', creator)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def onboarding_status(request):
    creator = request.user.creator
    return api_success('Onboarding status retrieved successfully', {
        'onboardingCompleted': creator.onboarding_completed,
        'currentStep': creator.current_onboarding_step,
        'hasUsername': bool(creator.username),
        'hasProfile': bool(creator.display_name),
        'hasAvatar': bool(creator.get_avatar_url()),
        'hasCustomization': creator.get_customization() != default_customization(),
    })


# ---------------------------------------------------------------------------
# Service endpoints
# ---------------------------------------------------------------------------

@api_view(['GET'])
@authentication_classes([])
@permission_classes([AllowAny])
def health(request):
    return Response({
        'status': 'ok',
        'environment': settings.APP_ENV,
        'timestamp': timezone.now().isoformat(),
    })


@api_view(['GET'])
@authentication_classes([])
@permission_classes([AllowAny])
def api_root(request):
    return api_success('Welcome to the Soltip API', {'version': 'v1', 'health': '/api/v1/health/'})
