"""
Soltip Seed Data

Default permission catalogue, the permission bundles assigned per role, and
helpers that write them (plus the initial administrator) to the database.
Used by the ``seed_soltip`` management command and by the test suite.
"""

import logging

from django.contrib.auth.models import User
from django.db import transaction

logger = logging.getLogger(__name__)

DEFAULT_PERMISSIONS = [
    # User permissions
    {'name': 'View Own Profile', 'description': 'Can view own user profile',
     'slug': 'profile:view-own', 'module': 'users'},
    {'name': 'Edit Own Profile', 'description': 'Can edit own user profile',
     'slug': 'profile:edit-own', 'module': 'users'},
    {'name': 'View Own Transactions', 'description': 'Can view own transaction history',
     'slug': 'transactions:view-own', 'module': 'transactions'},
    {'name': 'Withdraw Funds', 'description': 'Can withdraw funds to wallet',
     'slug': 'wallet:withdraw', 'module': 'wallet'},

    # Creator permissions
    {'name': 'Customize Profile', 'description': 'Can customize public profile appearance',
     'slug': 'profile:customize', 'module': 'profile'},
    {'name': 'View Tipping Analytics', 'description': 'Can view tipping analytics',
     'slug': 'analytics:view', 'module': 'analytics'},
    {'name': 'Manage Tip Options', 'description': 'Can manage tipping options',
     'slug': 'tip-options:manage', 'module': 'profile'},

    # Support permissions
    {'name': 'View Support Tickets', 'description': 'Can view support tickets',
     'slug': 'support:view-tickets', 'module': 'support'},
    {'name': 'Manage Support Tickets', 'description': 'Can manage and respond to support tickets',
     'slug': 'support:manage-tickets', 'module': 'support'},
    {'name': 'View User Profiles', 'description': 'Can view any user profile',
     'slug': 'profile:view-any', 'module': 'users'},

    # Admin permissions
    {'name': 'Manage Users', 'description': 'Can manage all users',
     'slug': 'users:manage', 'module': 'users'},
    {'name': 'View All Transactions', 'description': 'Can view all transactions',
     'slug': 'transactions:view-all', 'module': 'transactions'},
    {'name': 'Manage Featured Creators', 'description': 'Can mark creators as featured',
     'slug': 'creators:feature', 'module': 'users'},
    {'name': 'View Dashboard', 'description': 'Can view admin dashboard',
     'slug': 'dashboard:view', 'module': 'admin'},
    {'name': 'Manage Permissions', 'description': 'Can manage user permissions',
     'slug': 'permissions:manage', 'module': 'admin'},
    {'name': 'Manage Tips', 'description': 'Can view, update and delete any tip',
     'slug': 'tips:manage', 'module': 'transactions'},

    # Super Admin permissions
    {'name': 'System Configuration', 'description': 'Can modify system configuration',
     'slug': 'system:configure', 'module': 'admin'},
    {'name': 'View System Logs', 'description': 'Can view system logs',
     'slug': 'system:logs', 'module': 'admin'},
]

_BASIC_USER = [
    'profile:view-own',
    'profile:edit-own',
    'transactions:view-own',
    'wallet:withdraw',
]

_CREATOR = _BASIC_USER + [
    'profile:customize',
    'analytics:view',
    'tip-options:manage',
]

_SUPPORT = _BASIC_USER + [
    'support:view-tickets',
    'support:manage-tickets',
    'profile:view-any',
]

_ADMIN = _CREATOR + [
    'support:view-tickets',
    'support:manage-tickets',
    'profile:view-any',
    'users:manage',
    'transactions:view-all',
    'creators:feature',
    'dashboard:view',
    'permissions:manage',
    'tips:manage',
]

DEFAULT_PERMISSION_SETS = {
    'basicUser': _BASIC_USER,
    'creator': _CREATOR,
    'support': _SUPPORT,
    'admin': _ADMIN,
    'superAdmin': _ADMIN + ['system:configure', 'system:logs'],
}

# Role -> permission set applied when the role is assigned
ROLE_PERMISSION_SETS = {
    'creator': 'creator',
    'support': 'support',
    'admin': 'admin',
    'super_admin': 'superAdmin',
}


def permissions_for_role(role):
    """Return a fresh copy of the default permission slugs for ``role``."""
    set_name = ROLE_PERMISSION_SETS.get(role)
    if set_name is None:
        return []
    return list(DEFAULT_PERMISSION_SETS[set_name])


def seed_permissions():
    """
    Create or update the default permission catalogue.

    Returns:
        tuple: (created, updated) counts
    """
    from .models import Permission

    created = updated = 0
    for entry in DEFAULT_PERMISSIONS:
        _, was_created = Permission.objects.update_or_create(
            slug=entry['slug'],
            defaults={
                'name': entry['name'],
                'description': entry['description'],
                'module': entry['module'],
                'is_active': True,
            },
        )
        if was_created:
            created += 1
        else:
            updated += 1
    logger.info("Seeded permissions: %s created, %s updated", created, updated)
    return created, updated


@transaction.atomic
def seed_admin_user(email, password):
    """
    Create the platform administrator if it does not exist yet.

    Returns:
        tuple: (user, created)
    """
    email = email.lower()
    existing = User.objects.filter(email__iexact=email).first()
    if existing:
        return existing, False

    user = User.objects.create_user(username=email, email=email, password=password,
                                    is_staff=True, is_superuser=True)
    creator = user.creator
    creator.username = 'platformadmin'
    creator.display_name = 'System Admin'
    creator.status = 'active'
    creator.role = 'super_admin'
    creator.permissions = permissions_for_role('super_admin')
    creator.email_verified = True
    creator.is_verified = True
    creator.onboarding_completed = True
    creator.current_onboarding_step = 'complete'
    creator.save()
    logger.info("Created admin user %s", email)
    return user, True
