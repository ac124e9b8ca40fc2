"""
Soltip Project URL Configuration

Root URL dispatcher. The REST API is versioned under /api/v1/ and handled
by the soltip application; Django admin stays available at /admin/.

URL Structure:
- /admin/   - Django administrative interface
- /api/v1/  - Soltip REST API
- /         - API welcome message

Unknown paths and unhandled errors are answered with the JSON error
envelope instead of Django's HTML pages.
"""

from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.urls import include, path

from soltip import views

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('soltip.urls')),
    path('', views.api_root, name='api_root'),
] + static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)

handler404 = 'soltip.responses.not_found'
handler500 = 'soltip.responses.server_error'
