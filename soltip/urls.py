"""
Soltip URL Configuration

Every route lives under ``/api/v1/`` (see ``core/urls.py``).

URL Pattern Organization:
- auth/          registration, login, tokens, password reset, onboarding
- users/         own profile, public tip pages, user administration
- permissions/   permission catalogue and per-user grants
- waitlist/      pre-launch waitlist
- tips/          on-chain tip submission and tip management
- transactions/  transaction history, withdrawals, admin corrections
- analytics/     creator dashboard

Literal segments are listed before ``<int:...>`` captures so that e.g.
``users/featured/`` never reaches the user detail view.
"""

from django.urls import include, path

from . import permission_views, tip_views, transaction_views, user_views, views

auth_patterns = [
    path('register/', views.register, name='register'),
    path('login/', views.login, name='login'),
    path('refresh/', views.refresh_token, name='refresh_token'),
    path('logout/', views.logout, name='logout'),
    path('me/', views.me, name='me'),
    path('verify-email/<str:token>/', views.verify_email, name='verify_email'),
    path('forgot-password/', views.forgot_password, name='forgot_password'),
    path('reset-password/<str:token>/', views.reset_password, name='reset_password'),
    path('check-username/<str:username>/', views.check_username, name='check_username'),

    # Onboarding wizard
    path('onboarding/username/', views.onboarding_username, name='onboarding_username'),
    path('onboarding/profile/', views.onboarding_profile, name='onboarding_profile'),
    path('onboarding/avatar/', views.onboarding_avatar, name='onboarding_avatar'),
    path('onboarding/customization/', views.onboarding_customization, name='onboarding_customization'),
    path('onboarding/complete/', views.onboarding_complete, name='onboarding_complete'),
    path('onboarding/status/', views.onboarding_status, name='onboarding_status'),
]

user_patterns = [
    path('', user_views.list_users, name='list_users'),
    path('featured/', user_views.featured_creators, name='featured_creators'),
    path('tip-settings/', user_views.tip_settings, name='tip_settings'),
    path('profile/', user_views.update_profile, name='update_profile'),
    path('profile/wallet/', user_views.update_wallet, name='update_wallet'),
    path('avatar/', user_views.avatar, name='avatar'),
    path('password/', user_views.change_password, name='change_password'),
    path('customization/', user_views.update_customization, name='update_customization'),
    path('username/<str:username>/', user_views.public_profile, name='user_by_username'),
    path('profile/<str:username>/', user_views.public_profile, name='public_profile'),

    path('<int:user_id>/', user_views.user_detail, name='user_detail'),
    path('<int:user_id>/status/', user_views.update_user_status, name='update_user_status'),
    path('<int:user_id>/role/', user_views.update_user_role, name='update_user_role'),
    path('<int:user_id>/permissions/', user_views.user_custom_permission, name='user_custom_permission'),
    path('<int:user_id>/featured/', user_views.toggle_featured, name='toggle_featured'),
]

permission_patterns = [
    path('', permission_views.list_permissions, name='list_permissions'),
    path('modules/', permission_views.permissions_by_module, name='permissions_by_module'),
    path('sets/', permission_views.permission_sets, name='permission_sets'),
    path('user/<int:user_id>/', permission_views.user_permissions, name='user_permissions'),
    path('user/<int:user_id>/assign/', permission_views.assign_permissions, name='assign_permissions'),
    path('user/<int:user_id>/revoke/', permission_views.revoke_permissions, name='revoke_permissions'),
    path('user/<int:user_id>/set/', permission_views.assign_permission_set, name='assign_permission_set'),
]

tip_patterns = [
    path('', tip_views.tips, name='tips'),
    path('submit/', tip_views.submit_tip, name='submit_tip'),
    path('user/<int:user_id>/', tip_views.user_tips, name='user_tips'),
    path('creator/<str:username>/', tip_views.creator_tips, name='creator_tips'),
    path('<int:tip_id>/', tip_views.tip_detail, name='tip_detail'),
]

transaction_patterns = [
    path('', transaction_views.my_transactions, name='my_transactions'),
    path('tip/', transaction_views.process_tip, name='process_tip'),
    path('status/<str:transaction_id>/', transaction_views.transaction_status, name='transaction_status'),
    path('withdrawals/', transaction_views.create_withdrawal, name='create_withdrawal'),
    path('withdrawals/<str:transaction_id>/', transaction_views.withdrawal_status, name='withdrawal_status'),
    path('admin/transactions/', transaction_views.all_transactions, name='admin_transactions'),
    path('admin/transactions/<str:transaction_id>/status/', transaction_views.update_transaction_status,
         name='admin_update_transaction_status'),
    path('<str:transaction_id>/', transaction_views.transaction_detail, name='transaction_detail'),
]

urlpatterns = [
    path('auth/', include(auth_patterns)),
    path('users/', include(user_patterns)),
    path('permissions/', include(permission_patterns)),
    path('waitlist/', permission_views.waitlist, name='waitlist'),
    path('tips/', include(tip_patterns)),
    path('transactions/', include(transaction_patterns)),
    path('analytics/dashboard/', transaction_views.dashboard_analytics, name='dashboard_analytics'),
    path('health/', views.health, name='health'),
]
