from django.contrib import admin
from django.urls import include, path
from django.conf import settings
from django.conf.urls.static import static

from ops.urls import metrics_patterns

urlpatterns = [
    # Operations endpoints (no auth required)
    path("_health/", include("ops.urls")),
    path("_metrics/", include(metrics_patterns)),

    # Admin and API
    path("admin/", admin.site.urls),
    path("api/v1/", include("accounts.urls")),
    path("api/v1/", include("clients.urls")),
    path("api/v1/", include("cases.urls")),
    path("api/v1/", include("documents.urls")),
    path("api/v1/appointments/", include("appointments.urls")),
    path("api/v1/", include("portal.urls")),
    path("api/v1/", include("approvals.urls")),
    path("api/v1/backups/", include("backups.urls")),
]

# Serve media files in development
if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
