"""
Soltip Django Application Configuration

This module contains the Django application configuration for the Soltip app.
Sets up the application metadata and default field types for the project.
"""

from django.apps import AppConfig


class SoltipConfig(AppConfig):
    """
    Configuration class for the Soltip Django application.

    Attributes:
        default_auto_field: Specifies BigAutoField for auto-generated primary keys
        name: The Python module name for this Django application
    """
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'soltip'
    verbose_name = 'Soltip'
