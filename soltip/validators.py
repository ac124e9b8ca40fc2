"""
Soltip Validators

This module provides custom validation functions for the Soltip application:
- File size validation for uploaded avatars
- Solana wallet address and transaction signature validation
- Username validation with security and UX considerations

All validators raise Django ValidationError on invalid input.
"""

from django.core.exceptions import ValidationError
from solders.pubkey import Pubkey
import re

USERNAME_PATTERN = re.compile(r'^[a-zA-Z0-9_]+$')
USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 20

SOLANA_ADDRESS_PATTERN = re.compile(r'^[1-9A-HJ-NP-Za-km-z]{32,44}$')
SOLANA_SIGNATURE_PATTERN = re.compile(r'^[1-9A-HJ-NP-Za-km-z]{64,90}$')

# Reserved words that would be misleading as usernames. Creator tip pages
# live at /<username>, so these also protect the frontend's own routes.
RESERVED_USERNAMES = {
    # Core administrative and system roles
    'admin', 'administrator', 'superuser', 'root', 'system', 'sysadmin', 'staff', 'operator',
    'owner', 'manager', 'team', 'moderator', 'moderators', 'support', 'help', 'helpdesk',

    # Contact and communication endpoints
    'contact', 'webmaster', 'postmaster', 'hostmaster', 'mail', 'email', 'inbox', 'info',

    # Financial and security-related terms
    'security', 'abuse', 'billing', 'payments', 'payment', 'checkout', 'pay',
    'deposit', 'withdraw', 'withdrawal', 'transactions', 'transaction', 'tx', 'wallet', 'wallets',
    'balance', 'tip', 'tips', 'usdc', 'solana', 'circle',

    # Authentication and account management flows
    'signup', 'register', 'login', 'logout', 'auth', 'verify', 'verification',
    'reset', 'forgot', 'activate', 'settings', 'onboarding', 'dashboard',

    # Technical infrastructure and API endpoints
    'api', 'status', 'health', 'metrics', 'dev', 'developer', 'staging', 'demo',
    'test', 'testing', 'sandbox', 'internal', 'backend', 'frontend', 'waitlist',

    # Platform pages
    'www', 'web', 'site', 'home', 'about', 'faq', 'blog', 'news', 'profile', 'explore',

    # Generic terms that could be ambiguous or misleading
    'users', 'user', 'username', 'account', 'accounts', 'member', 'guest',
    'anonymous', 'none', 'null', 'undefined', 'soltip', 'tiply',
}


def validate_file_size(file):
    """
    Validate that uploaded file size is within acceptable limits.

    Args:
        file: Django UploadedFile object to validate

    Raises:
        ValidationError: If file size exceeds 512 KB limit
    """
    max_size_kb = 512
    if file.size > max_size_kb * 1024:
        raise ValidationError(f"File size cannot exceed {max_size_kb} KB.")


def is_solana_address(value):
    """Return True when ``value`` is a base58 string that decodes to a 32-byte public key."""
    if not isinstance(value, str) or not SOLANA_ADDRESS_PATTERN.match(value):
        return False
    try:
        Pubkey.from_string(value)
    except ValueError:
        return False
    return True


def validate_solana_wallet_address(wallet_address):
    """
    Validate Solana wallet address format.

    Solana addresses are base58-encoded ed25519 public keys, 32 to 44
    characters long. Besides the character-set check the address must
    decode to exactly 32 bytes, so typos are caught before funds move.

    Args:
        wallet_address: String to validate as a Solana wallet address

    Raises:
        ValidationError: If the address is not a valid Solana public key
    """
    if not is_solana_address(wallet_address):
        raise ValidationError("Invalid Solana wallet address.")


def validate_transaction_signature(signature):
    """Reject strings that cannot be a base58 transaction signature."""
    if not isinstance(signature, str) or not SOLANA_SIGNATURE_PATTERN.match(signature):
        raise ValidationError("Invalid transaction signature.")


def validate_username(value):
    """
    Validate creator usernames.

    Usernames become the public tip page path, so besides the format rules
    they must not impersonate staff, system accounts or application routes.

    Args:
        value: Username string to validate

    Raises:
        ValidationError: If username violates any validation rules

    Rules enforced:
    - 3 to 20 characters of letters, numbers and underscores
    - Reject reserved system/admin terms (exact match, case-insensitive)
    - Reject usernames that embed a reserved keyword as a prefix or suffix token
    """
    if not value or not isinstance(value, str):
        raise ValidationError("Invalid username.")

    v_lower = value.strip().lower()

    if len(v_lower) < USERNAME_MIN_LENGTH:
        raise ValidationError(f"Username must be at least {USERNAME_MIN_LENGTH} characters long.")
    if len(v_lower) > USERNAME_MAX_LENGTH:
        raise ValidationError(f"Username cannot exceed {USERNAME_MAX_LENGTH} characters.")
    if not USERNAME_PATTERN.match(v_lower):
        raise ValidationError("Username can only contain letters, numbers, and underscores.")

    if v_lower in RESERVED_USERNAMES:
        raise ValidationError("This username is unavailable.")

    # e.g. "support_123", "user_admin"
    for r in RESERVED_USERNAMES:
        if v_lower.startswith(r + '_') or v_lower.endswith('_' + r):
            raise ValidationError("This username is unavailable.")
