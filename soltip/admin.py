"""
Soltip Django Admin Configuration

Administrative access to creators, transactions, permissions and the
waitlist.

Key features:
- Circle wallet identifiers are read-only once provisioned
- Transaction signatures and amounts cannot be edited after recording
- List views show the fields support staff search and filter by
"""

from django.contrib import admin

from .models import Creator, Permission, Transaction, WaitlistEntry


@admin.register(Creator)
class CreatorAdmin(admin.ModelAdmin):
    """
    Creator profiles.

    The Circle wallet id and deposit address are issued by Circle during
    onboarding and tips are sent to that address, so they are locked once
    set.
    """
    list_display = ('username', 'email', 'status', 'role', 'onboarding_completed', 'is_featured', 'created_at')
    list_filter = ('status', 'role', 'onboarding_completed', 'is_featured', 'is_verified')
    search_fields = ('username', 'display_name', 'user__email')
    readonly_fields = ('created_at', 'updated_at')

    def get_readonly_fields(self, request, obj=None):
        """
        Args:
            request: HTTP request object
            obj: Creator instance being edited (None for new objects)

        Returns:
            tuple: Fields that should be read-only
        """
        if obj and obj.circle_wallet_id:
            return self.readonly_fields + ('circle_wallet_id', 'deposit_wallet_address')
        return self.readonly_fields


@admin.register(Transaction)
class TransactionAdmin(admin.ModelAdmin):
    list_display = ('id', 'type', 'status', 'amount', 'currency', 'recipient', 'created_at')
    list_filter = ('type', 'status', 'currency')
    search_fields = ('tx_signature', 'tx_hash', 'recipient__username', 'tipper_wallet')
    readonly_fields = ('tx_signature', 'amount', 'fee', 'net_amount', 'recipient', 'created_at', 'updated_at')


@admin.register(Permission)
class PermissionAdmin(admin.ModelAdmin):
    list_display = ('slug', 'name', 'module', 'is_active')
    list_filter = ('module', 'is_active')
    search_fields = ('slug', 'name')


@admin.register(WaitlistEntry)
class WaitlistEntryAdmin(admin.ModelAdmin):
    list_display = ('email', 'created_at')
    search_fields = ('email',)
