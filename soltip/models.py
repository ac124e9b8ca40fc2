"""
Soltip Models

This module contains the core data models for the Soltip application:
- Creator: Profile, onboarding state, customization and wallets of a user
- Transaction: Tips, withdrawals and other USDC movements
- Permission: Catalogue of permission slugs that can be granted to users
- WaitlistEntry: Email addresses collected before launch

Every Django User gets a Creator profile automatically; the User's
``username`` and ``email`` both hold the login email while the Creator's
``username`` is the public tip page handle.
"""

import logging
import os
import re
import uuid
from datetime import timedelta

from django.contrib.auth.models import User
from django.core.validators import FileExtensionValidator, MaxLengthValidator
from django.db import models
from django.db.models.signals import post_save
from django.dispatch import receiver
from django.utils import timezone

from .seeds import permissions_for_role
from .utils import strip_image_metadata
from .validators import validate_file_size, validate_username

logger = logging.getLogger(__name__)

ONBOARDING_STEPS = ['username', 'profile', 'avatar', 'customize', 'complete']

EMAIL_VERIFICATION_TTL = timedelta(hours=24)
PASSWORD_RESET_TTL = timedelta(hours=1)
MAX_FAILED_LOGIN_ATTEMPTS = 5

SOCIAL_LINK_KEYS = ('twitter', 'instagram', 'youtube', 'twitch', 'tiktok', 'website', 'discord', 'github')


def default_creator_permissions():
    return permissions_for_role('creator')


def default_customization():
    return {
        'showTipCounter': True,
        'enableCustomMessage': True,
        'tipOptions': [],
        'minimumTipAmount': 1,
        'allowCustomAmounts': True,
        'receiveNotes': True,
    }


def default_tip_settings():
    return {
        'defaultMessage': 'Thanks for supporting my work!',
        'suggestedAmounts': [1, 5, 10, 25],
        'allowCustomAmount': True,
        'minimumAmount': 1,
        'accentColor': '#8B5CF6',
        'showSocialOnTipPage': True,
    }


class Creator(models.Model):
    """
    Profile attached to every user account.

    Holds the public tip page identity (username, display name, images),
    the account lifecycle (status, role, permissions, lockout), onboarding
    progress, tip page customization and the Circle wallet that receives
    tips.
    """

    STATUS_CHOICES = [
        ('active', 'Active'),
        ('inactive', 'Inactive'),
        ('suspended', 'Suspended'),
        ('pending', 'Pending'),
        ('banned', 'Banned'),
        ('locked', 'Locked'),
    ]
    ROLE_CHOICES = [
        ('creator', 'Creator'),
        ('support', 'Support'),
        ('admin', 'Admin'),
        ('super_admin', 'Super Admin'),
    ]
    STEP_CHOICES = [(step, step.title()) for step in ONBOARDING_STEPS]

    # Statuses that may still sign in and use the API
    USABLE_STATUSES = ('active', 'pending')
    ADMIN_ROLES = ('admin', 'super_admin')

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='creator')
    username = models.CharField(max_length=20, unique=True, null=True, blank=True, validators=[validate_username])
    display_name = models.CharField(max_length=100, blank=True)
    bio = models.TextField(blank=True, validators=[MaxLengthValidator(1000)])
    avatar = models.ImageField(
        upload_to='creator_pics/',
        blank=True,
        null=True,
        validators=[
            FileExtensionValidator(allowed_extensions=['jpg', 'jpeg', 'png']),
            validate_file_size
        ]
    )
    avatar_url = models.CharField(max_length=500, blank=True)
    cover_image_url = models.CharField(max_length=500, blank=True)

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default='creator')
    permissions = models.JSONField(default=default_creator_permissions, blank=True)

    social_links = models.JSONField(default=dict, blank=True)
    customization = models.JSONField(default=default_customization, blank=True)
    tip_settings = models.JSONField(default=default_tip_settings, blank=True)

    onboarding_completed = models.BooleanField(default=False)
    current_onboarding_step = models.CharField(max_length=20, choices=STEP_CHOICES, default='username')

    email_verified = models.BooleanField(default=False)
    email_verification_token = models.CharField(max_length=64, null=True, blank=True, db_index=True)
    email_verification_expires = models.DateTimeField(null=True, blank=True)
    password_reset_token = models.CharField(max_length=64, null=True, blank=True, db_index=True)
    password_reset_expires = models.DateTimeField(null=True, blank=True)

    failed_login_attempts = models.PositiveIntegerField(default=0)
    locked_at = models.DateTimeField(null=True, blank=True)

    is_verified = models.BooleanField(default=False)
    is_featured = models.BooleanField(default=False)

    circle_wallet_id = models.CharField(max_length=100, unique=True, null=True, blank=True)
    deposit_wallet_address = models.CharField(max_length=64, unique=True, null=True, blank=True)
    withdrawal_wallet_address = models.CharField(max_length=64, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return self.display_name or self.username or self.user.email

    @property
    def email(self):
        return self.user.email

    @property
    def is_admin(self):
        return self.role in self.ADMIN_ROLES

    @property
    def is_usable(self):
        return self.status in self.USABLE_STATUSES

    def has_permission(self, slug):
        """Return True when the permission slug is granted to this profile."""
        return slug in (self.permissions or [])

    def get_customization(self):
        """Stored customization merged over the defaults."""
        merged = default_customization()
        merged.update(self.customization or {})
        return merged

    def get_tip_settings(self):
        merged = default_tip_settings()
        merged.update(self.tip_settings or {})
        return merged

    def get_avatar_url(self):
        """Uploaded avatar wins over an external avatar URL."""
        if self.avatar:
            return self.avatar.url
        return self.avatar_url or None

    def advance_onboarding(self, completed_step):
        """
        Move the onboarding pointer to the step after ``completed_step``.

        The pointer never moves backwards, so revisiting an earlier step
        from the wizard does not undo later progress.
        """
        index = min(ONBOARDING_STEPS.index(completed_step) + 1, len(ONBOARDING_STEPS) - 1)
        current = ONBOARDING_STEPS.index(self.current_onboarding_step)
        if index > current:
            self.current_onboarding_step = ONBOARDING_STEPS[index]

    def issue_email_verification_token(self):
        self.email_verification_token = uuid.uuid4().hex
        self.email_verification_expires = timezone.now() + EMAIL_VERIFICATION_TTL
        return self.email_verification_token

    def issue_password_reset_token(self):
        self.password_reset_token = uuid.uuid4().hex
        self.password_reset_expires = timezone.now() + PASSWORD_RESET_TTL
        return self.password_reset_token

    def register_failed_login(self):
        """
        Count a failed password attempt, locking the account at the limit.

        Returns:
            bool: True if this attempt locked the account
        """
        self.failed_login_attempts += 1
        locked = self.failed_login_attempts >= MAX_FAILED_LOGIN_ATTEMPTS
        if locked:
            self.status = 'locked'
            self.locked_at = timezone.now()
        self.save(update_fields=['failed_login_attempts', 'status', 'locked_at', 'updated_at'])
        return locked

    def unlock(self):
        if self.status == 'locked':
            self.status = 'active'
        self.failed_login_attempts = 0
        self.locked_at = None

    def save(self, *args, **kwargs):
        """
        Normalize the username and process a newly uploaded avatar.

        The avatar filename is sanitized before storage and the image is
        re-encoded without its metadata (EXIF location data and the like).
        """
        if self.username:
            self.username = self.username.strip().lower()

        new_upload = bool(self.avatar) and not self.avatar._committed
        if new_upload:
            self.avatar.name = re.sub(r'[^a-zA-Z0-9_.-]', '_', os.path.basename(self.avatar.name))

        super().save(*args, **kwargs)

        if new_upload:
            try:
                strip_image_metadata(self.avatar.path)
            except (OSError, ValueError) as e:
                raise ValueError(f"Error stripping metadata: {e}")


class Transaction(models.Model):
    """
    A USDC movement involving a creator's account.

    Tips are incoming transfers from supporters, withdrawals are transfers
    out of the creator's Circle wallet. ``tx_signature`` is unique: for
    tips it is the Solana signature, for withdrawals a generated reference
    until Circle reports the on-chain hash in ``tx_hash``.
    """

    TYPE_CHOICES = [
        ('tip', 'Tip'),
        ('withdrawal', 'Withdrawal'),
        ('deposit', 'Deposit'),
        ('refund', 'Refund'),
        ('fee', 'Fee'),
    ]
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('processing', 'Processing'),
        ('completed', 'Completed'),
        ('failed', 'Failed'),
        ('cancelled', 'Cancelled'),
    ]
    TERMINAL_STATUSES = ('completed', 'failed', 'cancelled')

    type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    amount = models.DecimalField(max_digits=18, decimal_places=6)
    currency = models.CharField(max_length=10, default='USDC')
    tx_signature = models.CharField(max_length=128, unique=True)
    tx_hash = models.CharField(max_length=128, blank=True)
    message = models.CharField(max_length=500, blank=True)
    description = models.CharField(max_length=255, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.CharField(max_length=500, blank=True)
    recipient = models.ForeignKey(Creator, on_delete=models.CASCADE, related_name='transactions')
    tipper_wallet = models.CharField(max_length=64, blank=True)
    wallet_address = models.CharField(max_length=64, blank=True)
    fee = models.DecimalField(max_digits=18, decimal_places=6, default=0)
    net_amount = models.DecimalField(max_digits=18, decimal_places=6, null=True, blank=True)
    block_explorer_url = models.CharField(max_length=255, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['recipient', 'type', 'status'], name='soltip_tx_recipient_type_idx'),
            models.Index(fields=['created_at'], name='soltip_tx_created_idx'),
        ]

    def __str__(self):
        return f"{self.type} {self.amount} {self.currency} -> {self.recipient} ({self.status})"

    @property
    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES


class Permission(models.Model):
    """A grantable capability, identified by its slug (``module:action``)."""
    name = models.CharField(max_length=100)
    slug = models.CharField(max_length=100, unique=True)
    description = models.CharField(max_length=255, blank=True)
    module = models.CharField(max_length=50)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['module', 'name']

    def __str__(self):
        return self.slug


class WaitlistEntry(models.Model):
    email = models.EmailField(unique=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']
        verbose_name_plural = 'waitlist entries'

    def __str__(self):
        return self.email

    def save(self, *args, **kwargs):
        self.email = self.email.strip().lower()
        super().save(*args, **kwargs)


@receiver(post_save, sender=User)
def create_creator_profile(sender, instance, created, **kwargs):
    """Give every new user account its Creator profile."""
    if created:
        Creator.objects.get_or_create(user=instance)
