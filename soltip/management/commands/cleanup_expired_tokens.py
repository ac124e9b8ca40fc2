"""
Soltip Cleanup Expired Tokens Management Command

Removes credentials that can no longer be used:
- Refresh tokens past their expiry (and their blacklist entries)
- Email verification tokens older than 24 hours
- Password reset tokens older than 1 hour

Should be run periodically via cron job or similar scheduling system.

Usage:
    python manage.py cleanup_expired_tokens
"""

from django.core.management.base import BaseCommand
from django.utils import timezone

from soltip.models import Creator
from soltip.tokens import TokenService


class Command(BaseCommand):
    help = 'Delete expired refresh tokens and clear expired verification and reset tokens'

    def handle(self, *args, **options):
        now = timezone.now()

        refresh_count = TokenService.cleanup_expired_tokens()

        verification_count = Creator.objects.filter(
            email_verification_token__isnull=False,
            email_verification_expires__lt=now,
        ).update(email_verification_token=None, email_verification_expires=None)

        reset_count = Creator.objects.filter(
            password_reset_token__isnull=False,
            password_reset_expires__lt=now,
        ).update(password_reset_token=None, password_reset_expires=None)

        self.stdout.write(
            self.style.SUCCESS(
                f'Successfully removed {refresh_count} expired refresh tokens, '
                f'{verification_count} verification tokens and {reset_count} reset tokens'
            )
        )
