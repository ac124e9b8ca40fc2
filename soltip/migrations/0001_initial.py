import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

import soltip.models
import soltip.validators


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Creator',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('username', models.CharField(blank=True, max_length=20, null=True, unique=True, validators=[soltip.validators.validate_username])),
                ('display_name', models.CharField(blank=True, max_length=100)),
                ('bio', models.TextField(blank=True, validators=[django.core.validators.MaxLengthValidator(1000)])),
                ('avatar', models.ImageField(blank=True, null=True, upload_to='creator_pics/', validators=[django.core.validators.FileExtensionValidator(allowed_extensions=['jpg', 'jpeg', 'png']), soltip.validators.validate_file_size])),
                ('avatar_url', models.CharField(blank=True, max_length=500)),
                ('cover_image_url', models.CharField(blank=True, max_length=500)),
                ('status', models.CharField(choices=[('active', 'Active'), ('inactive', 'Inactive'), ('suspended', 'Suspended'), ('pending', 'Pending'), ('banned', 'Banned'), ('locked', 'Locked')], default='pending', max_length=20)),
                ('role', models.CharField(choices=[('creator', 'Creator'), ('support', 'Support'), ('admin', 'Admin'), ('super_admin', 'Super Admin')], default='creator', max_length=20)),
                ('permissions', models.JSONField(blank=True, default=soltip.models.default_creator_permissions)),
                ('social_links', models.JSONField(blank=True, default=dict)),
                ('customization', models.JSONField(blank=True, default=soltip.models.default_customization)),
                ('tip_settings', models.JSONField(blank=True, default=soltip.models.default_tip_settings)),
                ('onboarding_completed', models.BooleanField(default=False)),
                ('current_onboarding_step', models.CharField(choices=[('username', 'Username'), ('profile', 'Profile'), ('avatar', 'Avatar'), ('customize', 'Customize'), ('complete', 'Complete')], default='username', max_length=20)),
                ('email_verified', models.BooleanField(default=False)),
                ('email_verification_token', models.CharField(blank=True, db_index=True, max_length=64, null=True)),
                ('email_verification_expires', models.DateTimeField(blank=True, null=True)),
                ('password_reset_token', models.CharField(blank=True, db_index=True, max_length=64, null=True)),
                ('password_reset_expires', models.DateTimeField(blank=True, null=True)),
                ('failed_login_attempts', models.PositiveIntegerField(default=0)),
                ('locked_at', models.DateTimeField(blank=True, null=True)),
                ('is_verified', models.BooleanField(default=False)),
                ('is_featured', models.BooleanField(default=False)),
                ('circle_wallet_id', models.CharField(blank=True, max_length=100, null=True, unique=True)),
                ('deposit_wallet_address', models.CharField(blank=True, max_length=64, null=True, unique=True)),
                ('withdrawal_wallet_address', models.CharField(blank=True, max_length=64)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='creator', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='Permission',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=100)),
                ('slug', models.CharField(max_length=100, unique=True)),
                ('description', models.CharField(blank=True, max_length=255)),
                ('module', models.CharField(max_length=50)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['module', 'name'],
            },
        ),
        migrations.CreateModel(
            name='WaitlistEntry',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('email', models.EmailField(max_length=254, unique=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'verbose_name_plural': 'waitlist entries',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='Transaction',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('type', models.CharField(choices=[('tip', 'Tip'), ('withdrawal', 'Withdrawal'), ('deposit', 'Deposit'), ('refund', 'Refund'), ('fee', 'Fee')], max_length=20)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('processing', 'Processing'), ('completed', 'Completed'), ('failed', 'Failed'), ('cancelled', 'Cancelled')], default='pending', max_length=20)),
                ('amount', models.DecimalField(decimal_places=6, max_digits=18)),
                ('currency', models.CharField(default='USDC', max_length=10)),
                ('tx_signature', models.CharField(max_length=128, unique=True)),
                ('tx_hash', models.CharField(blank=True, max_length=128)),
                ('message', models.CharField(blank=True, max_length=500)),
                ('description', models.CharField(blank=True, max_length=255)),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('ip_address', models.GenericIPAddressField(blank=True, null=True)),
                ('user_agent', models.CharField(blank=True, max_length=500)),
                ('tipper_wallet', models.CharField(blank=True, max_length=64)),
                ('wallet_address', models.CharField(blank=True, max_length=64)),
                ('fee', models.DecimalField(decimal_places=6, default=0, max_digits=18)),
                ('net_amount', models.DecimalField(blank=True, decimal_places=6, max_digits=18, null=True)),
                ('block_explorer_url', models.CharField(blank=True, max_length=255)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('recipient', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='transactions', to='soltip.creator')),
            ],
            options={
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['recipient', 'type', 'status'], name='soltip_tx_recipient_type_idx'),
                    models.Index(fields=['created_at'], name='soltip_tx_created_idx'),
                ],
            },
        ),
    ]
