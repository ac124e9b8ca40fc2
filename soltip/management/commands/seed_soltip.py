"""
Soltip Seed Management Command

Creates the default permission catalogue and the platform administrator.
Safe to run repeatedly: permissions are updated in place and an existing
administrator is left untouched.

Usage:
    python manage.py seed_soltip
    python manage.py seed_soltip --skip-admin
"""

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from soltip.seeds import seed_admin_user, seed_permissions


class Command(BaseCommand):
    help = 'Seed default permissions and the admin account'

    def add_arguments(self, parser):
        parser.add_argument('--skip-admin', action='store_true', help='Only seed permissions')

    def handle(self, *args, **options):
        created, updated = seed_permissions()
        self.stdout.write(self.style.SUCCESS(f'Permissions: {created} created, {updated} updated'))

        if options['skip_admin']:
            return

        if not settings.ADMIN_EMAIL or not settings.ADMIN_DEFAULT_PASSWORD:
            raise CommandError('ADMIN_EMAIL and ADMIN_DEFAULT_PASSWORD must be set to create the admin account')

        user, was_created = seed_admin_user(settings.ADMIN_EMAIL, settings.ADMIN_DEFAULT_PASSWORD)
        if was_created:
            self.stdout.write(self.style.SUCCESS(f'Admin account {user.email} created'))
        else:
            self.stdout.write(f'Admin account {user.email} already exists')
