"""
Soltip Serializers

Request validation and response shaping for the REST API. Field names are
camelCase on the wire and map onto the snake_case model attributes.
"""

from decimal import Decimal

from django.core.validators import FileExtensionValidator
from rest_framework import serializers

from .models import Creator, Permission, Transaction, WaitlistEntry
from .seeds import DEFAULT_PERMISSION_SETS
from .validators import (
    validate_file_size,
    validate_solana_wallet_address,
    validate_transaction_signature,
    validate_username,
)

DEFAULT_TIP_OPTIONS = [
    {'amount': 1, 'label': '$1'},
    {'amount': 5, 'label': '$5'},
    {'amount': 10, 'label': '$10'},
    {'amount': 25, 'label': '$25'},
]

AMOUNT_FIELD_KWARGS = {'max_digits': 18, 'decimal_places': 6}


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------

class RegisterSerializer(serializers.Serializer):
    email = serializers.EmailField(max_length=150)
    password = serializers.CharField(min_length=8, max_length=128, trim_whitespace=False, write_only=True)

    def validate_email(self, value):
        return value.strip().lower()


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField(max_length=150)
    password = serializers.CharField(max_length=128, trim_whitespace=False, write_only=True)

    def validate_email(self, value):
        return value.strip().lower()


class ForgotPasswordSerializer(serializers.Serializer):
    email = serializers.EmailField(max_length=150)

    def validate_email(self, value):
        return value.strip().lower()


class ResetPasswordSerializer(serializers.Serializer):
    password = serializers.CharField(min_length=8, max_length=128, trim_whitespace=False, write_only=True)


class PasswordChangeSerializer(serializers.Serializer):
    currentPassword = serializers.CharField(trim_whitespace=False, write_only=True)
    newPassword = serializers.CharField(min_length=8, max_length=128, trim_whitespace=False, write_only=True)


# ---------------------------------------------------------------------------
# Profile and onboarding
# ---------------------------------------------------------------------------

class UsernameSerializer(serializers.Serializer):
    username = serializers.CharField(max_length=20, validators=[validate_username])

    def validate_username(self, value):
        return value.strip().lower()


class SocialLinksSerializer(serializers.Serializer):
    twitter = serializers.CharField(max_length=255, required=False, allow_blank=True)
    instagram = serializers.CharField(max_length=255, required=False, allow_blank=True)
    youtube = serializers.CharField(max_length=255, required=False, allow_blank=True)
    twitch = serializers.CharField(max_length=255, required=False, allow_blank=True)
    tiktok = serializers.CharField(max_length=255, required=False, allow_blank=True)
    website = serializers.CharField(max_length=255, required=False, allow_blank=True)
    discord = serializers.CharField(max_length=255, required=False, allow_blank=True)
    github = serializers.CharField(max_length=255, required=False, allow_blank=True)


class ProfileStepSerializer(serializers.Serializer):
    displayName = serializers.CharField(min_length=2, max_length=100)
    bio = serializers.CharField(max_length=1000, required=False, allow_blank=True)
    socialLinks = SocialLinksSerializer(required=False)


class AvatarStepSerializer(serializers.Serializer):
    avatarUrl = serializers.CharField(max_length=500, required=False, allow_blank=True)
    coverImageUrl = serializers.CharField(max_length=500, required=False, allow_blank=True)
    avatar = serializers.ImageField(
        required=False,
        validators=[FileExtensionValidator(allowed_extensions=['jpg', 'jpeg', 'png']), validate_file_size],
    )


class AvatarUploadSerializer(serializers.Serializer):
    avatar = serializers.ImageField(
        validators=[FileExtensionValidator(allowed_extensions=['jpg', 'jpeg', 'png']), validate_file_size],
    )


class TipOptionSerializer(serializers.Serializer):
    amount = serializers.FloatField(min_value=0.01)
    label = serializers.CharField(max_length=50, required=False, allow_blank=True)
    isDefault = serializers.BooleanField(required=False, default=False)


class CustomizationSerializer(serializers.Serializer):
    """Partial tip page customization; only supplied keys are merged."""
    primaryColor = serializers.CharField(max_length=32, required=False, allow_blank=True)
    backgroundColor = serializers.CharField(max_length=32, required=False, allow_blank=True)
    fontFamily = serializers.CharField(max_length=100, required=False, allow_blank=True)
    buttonStyle = serializers.CharField(max_length=50, required=False, allow_blank=True)
    customCss = serializers.CharField(max_length=5000, required=False, allow_blank=True)
    showTipCounter = serializers.BooleanField(required=False)
    enableCustomMessage = serializers.BooleanField(required=False)
    tipOptions = TipOptionSerializer(many=True, required=False)
    minimumTipAmount = serializers.FloatField(min_value=0, required=False)
    allowCustomAmounts = serializers.BooleanField(required=False)
    receiveNotes = serializers.BooleanField(required=False)

    def validate_tipOptions(self, value):
        if sum(1 for option in value if option.get('isDefault')) > 1:
            raise serializers.ValidationError("Only one tip option can be the default.")
        return value


class TipSettingsSerializer(serializers.Serializer):
    defaultMessage = serializers.CharField(max_length=200, required=False, allow_blank=True)
    suggestedAmounts = serializers.ListField(
        child=serializers.FloatField(min_value=0.01), max_length=10, required=False
    )
    allowCustomAmount = serializers.BooleanField(required=False)
    minimumAmount = serializers.FloatField(min_value=0, required=False)
    accentColor = serializers.RegexField(r'^#[0-9a-fA-F]{6}$', required=False)
    showSocialOnTipPage = serializers.BooleanField(required=False)


class ProfileUpdateSerializer(serializers.Serializer):
    displayName = serializers.CharField(min_length=2, max_length=100, required=False)
    bio = serializers.CharField(max_length=1000, required=False, allow_blank=True)
    username = serializers.CharField(max_length=20, required=False, validators=[validate_username])
    socialLinks = SocialLinksSerializer(required=False)
    avatarUrl = serializers.CharField(max_length=500, required=False, allow_blank=True)
    coverImageUrl = serializers.CharField(max_length=500, required=False, allow_blank=True)

    def validate_username(self, value):
        return value.strip().lower()


class WalletAddressSerializer(serializers.Serializer):
    withdrawalWalletAddress = serializers.CharField(max_length=64, validators=[validate_solana_wallet_address])


# ---------------------------------------------------------------------------
# Administration
# ---------------------------------------------------------------------------

class StatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Creator.STATUS_CHOICES)


class RoleSerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=Creator.ROLE_CHOICES)


class PermissionSlugSerializer(serializers.Serializer):
    permission = serializers.CharField(max_length=100)


class PermissionListSerializer(serializers.Serializer):
    permissions = serializers.ListField(child=serializers.CharField(max_length=100), allow_empty=False)


class SetPermissionsSerializer(serializers.Serializer):
    permissions = serializers.ListField(child=serializers.CharField(max_length=100), allow_empty=True)


class PermissionSetSerializer(serializers.Serializer):
    setName = serializers.ChoiceField(choices=list(DEFAULT_PERMISSION_SETS))


class WaitlistJoinSerializer(serializers.Serializer):
    email = serializers.EmailField(max_length=150)

    def validate_email(self, value):
        return value.strip().lower()


# ---------------------------------------------------------------------------
# Tips and transactions
# ---------------------------------------------------------------------------

class TipSubmitSerializer(serializers.Serializer):
    txSignature = serializers.CharField(max_length=128, validators=[validate_transaction_signature])
    amount = serializers.DecimalField(min_value=Decimal('0.000001'), **AMOUNT_FIELD_KWARGS)
    recipientUsername = serializers.CharField(max_length=20)
    message = serializers.CharField(max_length=500, required=False, allow_blank=True)
    tipperWallet = serializers.CharField(max_length=64, validators=[validate_solana_wallet_address])
    recipientWallet = serializers.CharField(max_length=64, required=False, allow_blank=True)


class TipCreateSerializer(serializers.Serializer):
    amount = serializers.DecimalField(min_value=Decimal('1'), **AMOUNT_FIELD_KWARGS)
    recipientUsername = serializers.CharField(max_length=20)
    message = serializers.CharField(max_length=500, required=False, allow_blank=True)
    currency = serializers.ChoiceField(choices=['USDC'], default='USDC')
    senderAddress = serializers.CharField(max_length=64, validators=[validate_solana_wallet_address])


class ProcessTipSerializer(serializers.Serializer):
    amount = serializers.DecimalField(min_value=Decimal('0.000001'), **AMOUNT_FIELD_KWARGS)
    recipientUsername = serializers.CharField(max_length=20)
    message = serializers.CharField(max_length=500, required=False, allow_blank=True)
    senderWallet = serializers.CharField(max_length=64, validators=[validate_solana_wallet_address])


class TransactionStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Transaction.STATUS_CHOICES)
    txHash = serializers.CharField(max_length=128, required=False, allow_blank=True)


class WithdrawalSerializer(serializers.Serializer):
    amount = serializers.DecimalField(min_value=Decimal('0.01'), **AMOUNT_FIELD_KWARGS)
    withdrawalAddress = serializers.CharField(max_length=64, validators=[validate_solana_wallet_address])


class DateRangeSerializer(serializers.Serializer):
    startDate = serializers.DateTimeField(required=False)
    endDate = serializers.DateTimeField(required=False)

    def validate(self, attrs):
        start, end = attrs.get('startDate'), attrs.get('endDate')
        if start and end and start > end:
            raise serializers.ValidationError({'startDate': 'startDate must be before endDate.'})
        return attrs


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------

class CreatorSerializer(serializers.ModelSerializer):
    """Full account view returned to the account owner and administrators."""
    id = serializers.IntegerField(source='user.id', read_only=True)
    email = serializers.EmailField(source='user.email', read_only=True)
    displayName = serializers.CharField(source='display_name', read_only=True)
    avatarUrl = serializers.SerializerMethodField()
    coverImageUrl = serializers.CharField(source='cover_image_url', read_only=True)
    socialLinks = serializers.JSONField(source='social_links', read_only=True)
    customization = serializers.SerializerMethodField()
    onboardingCompleted = serializers.BooleanField(source='onboarding_completed', read_only=True)
    currentOnboardingStep = serializers.CharField(source='current_onboarding_step', read_only=True)
    emailVerified = serializers.BooleanField(source='email_verified', read_only=True)
    isVerified = serializers.BooleanField(source='is_verified', read_only=True)
    isFeatured = serializers.BooleanField(source='is_featured', read_only=True)
    circleWalletId = serializers.CharField(source='circle_wallet_id', read_only=True)
    depositWalletAddress = serializers.CharField(source='deposit_wallet_address', read_only=True)
    withdrawalWalletAddress = serializers.CharField(source='withdrawal_wallet_address', read_only=True)
    lastLogin = serializers.DateTimeField(source='user.last_login', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = Creator
        fields = [
            'id', 'email', 'username', 'displayName', 'bio', 'avatarUrl', 'coverImageUrl',
            'status', 'role', 'permissions', 'socialLinks', 'customization',
            'onboardingCompleted', 'currentOnboardingStep', 'emailVerified', 'isVerified',
            'isFeatured', 'circleWalletId', 'depositWalletAddress', 'withdrawalWalletAddress',
            'lastLogin', 'createdAt', 'updatedAt',
        ]
        read_only_fields = fields

    def get_avatarUrl(self, obj):
        return obj.get_avatar_url()

    def get_customization(self, obj):
        return obj.get_customization()


class PublicCreatorSerializer(serializers.ModelSerializer):
    """What a supporter sees on a creator's tip page."""
    id = serializers.IntegerField(source='user.id', read_only=True)
    displayName = serializers.SerializerMethodField()
    profileImage = serializers.SerializerMethodField()
    coverImageUrl = serializers.CharField(source='cover_image_url', read_only=True)
    socialLinks = serializers.JSONField(source='social_links', read_only=True)
    customization = serializers.SerializerMethodField()
    depositWalletAddress = serializers.CharField(source='deposit_wallet_address', read_only=True)
    isFeatured = serializers.BooleanField(source='is_featured', read_only=True)
    isVerified = serializers.BooleanField(source='is_verified', read_only=True)

    class Meta:
        model = Creator
        fields = [
            'id', 'username', 'displayName', 'bio', 'profileImage', 'coverImageUrl',
            'customization', 'depositWalletAddress', 'socialLinks', 'isFeatured', 'isVerified',
        ]
        read_only_fields = fields

    def get_displayName(self, obj):
        return obj.display_name or obj.username

    def get_profileImage(self, obj):
        return obj.get_avatar_url()

    def get_customization(self, obj):
        stored = obj.get_customization()
        return {
            'primaryColor': stored.get('primaryColor'),
            'backgroundColor': stored.get('backgroundColor'),
            'fontFamily': stored.get('fontFamily'),
            'buttonStyle': stored.get('buttonStyle'),
            'tipOptions': stored.get('tipOptions') or DEFAULT_TIP_OPTIONS,
            'minimumTipAmount': stored.get('minimumTipAmount') or 1,
            'allowCustomAmounts': stored.get('allowCustomAmounts') is not False,
            'enableCustomMessage': stored.get('enableCustomMessage') is not False,
            'showTipCounter': stored.get('showTipCounter') is not False,
        }


class TransactionSerializer(serializers.ModelSerializer):
    txSignature = serializers.CharField(source='tx_signature', read_only=True)
    txHash = serializers.CharField(source='tx_hash', read_only=True)
    recipientId = serializers.IntegerField(source='recipient.user_id', read_only=True)
    recipientUsername = serializers.CharField(source='recipient.username', read_only=True)
    tipperWallet = serializers.CharField(source='tipper_wallet', read_only=True)
    walletAddress = serializers.CharField(source='wallet_address', read_only=True)
    netAmount = serializers.DecimalField(source='net_amount', read_only=True, **AMOUNT_FIELD_KWARGS)
    blockExplorerUrl = serializers.CharField(source='block_explorer_url', read_only=True)
    metadata = serializers.SerializerMethodField()
    completedAt = serializers.DateTimeField(source='completed_at', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = Transaction
        fields = [
            'id', 'type', 'status', 'amount', 'currency', 'fee', 'netAmount', 'txSignature',
            'txHash', 'message', 'description', 'metadata', 'recipientId', 'recipientUsername',
            'tipperWallet', 'walletAddress', 'blockExplorerUrl', 'completedAt', 'createdAt',
            'updatedAt',
        ]
        read_only_fields = fields

    def get_metadata(self, obj):
        metadata = dict(obj.metadata or {})
        # Supporter IP/user agent stay visible to administrators only
        if not self.context.get('include_client_info'):
            metadata.pop('clientInfo', None)
        return metadata


class PublicTipSerializer(serializers.ModelSerializer):
    """A completed tip as listed on a creator's public page."""
    tipperWallet = serializers.CharField(source='tipper_wallet', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)

    class Meta:
        model = Transaction
        fields = ['id', 'amount', 'currency', 'message', 'tipperWallet', 'createdAt']
        read_only_fields = fields


class PermissionSerializer(serializers.ModelSerializer):
    isActive = serializers.BooleanField(source='is_active', read_only=True)

    class Meta:
        model = Permission
        fields = ['id', 'name', 'slug', 'description', 'module', 'isActive']
        read_only_fields = fields


class WaitlistEntrySerializer(serializers.ModelSerializer):
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)

    class Meta:
        model = WaitlistEntry
        fields = ['id', 'email', 'createdAt']
        read_only_fields = fields
