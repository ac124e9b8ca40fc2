"""
Test utilities and factories for creating test data
"""
import io
import random
import string
from decimal import Decimal

from django.contrib.auth.models import User
from django.core.cache import cache
from django.test import TestCase, override_settings
from django.utils import timezone
from PIL import Image
from rest_framework.test import APIClient

from soltip.models import Transaction
from soltip.seeds import permissions_for_role, seed_permissions
from soltip.tokens import TokenService

# Real base58 public keys (the devnet USDC mint and the SPL token program)
WALLET_A = '4zMMC9srt5Ri5X14GAgXhaHii3GnPAEERYPJgZJDncDU'
WALLET_B = 'TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA'


def make_image_bytes(fmt='PNG', size=(2, 2), color=(255, 0, 0)):
    """Return raw bytes of a tiny in-memory image for upload tests."""
    bio = io.BytesIO()
    Image.new('RGB', size, color).save(bio, format=fmt)
    return bio.getvalue()


def make_signature():
    """A random base58 string shaped like a Solana transaction signature."""
    alphabet = '123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz'
    return ''.join(random.choices(alphabet, k=88))


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=8):
        return ''.join(random.choices(string.ascii_lowercase, k=length))

    @staticmethod
    def create_user(email=None, password='strongpass123', username=None, role='creator',
                    status='active', **creator_fields):
        """Create a user and configure its Creator profile"""
        if not email:
            email = f'{TestDataFactory.random_string()}@example.com'
        user = User.objects.create_user(username=email, email=email, password=password)
        creator = user.creator
        creator.username = username
        creator.role = role
        creator.status = status
        creator.permissions = permissions_for_role(role)
        for field, value in creator_fields.items():
            setattr(creator, field, value)
        creator.save()
        return user

    @staticmethod
    def create_admin(email='root@example.com', username='rootuser'):
        return TestDataFactory.create_user(email=email, username=username, role='admin')

    @staticmethod
    def create_transaction(recipient, type='tip', status='completed', amount='10', **fields):
        """Create a transaction for ``recipient`` (a Creator)"""
        defaults = {
            'currency': 'USDC',
            'tx_signature': make_signature(),
            'tipper_wallet': WALLET_B,
            'net_amount': Decimal(amount),
        }
        defaults.update(fields)
        if status == 'completed' and 'completed_at' not in defaults:
            defaults['completed_at'] = timezone.now()
        return Transaction.objects.create(
            recipient=recipient, type=type, status=status, amount=Decimal(amount), **defaults
        )


@override_settings(RATE_LIMIT_ENABLED=False, DKIM_KEY_PATH='')
class APITestCase(TestCase):
    """Base class: seeded permissions, empty throttle cache and an API client."""

    def setUp(self):
        cache.clear()
        seed_permissions()
        self.client = APIClient()

    def authenticate(self, user):
        """Send a Bearer access token for ``user`` on every following request"""
        access, _ = TokenService.issue_tokens(user)
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {access}')
        return access
