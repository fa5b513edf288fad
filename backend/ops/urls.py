"""
Health and metrics routes.

Mounted outside /api/v1 and without authentication; restrict them at the
network level in production.
"""
from django.urls import path

from ops.health import FullHealthView, LivenessView, ReadinessView
from ops.metrics import MetricsView

urlpatterns = [
    path("live", LivenessView.as_view(), name="health-live"),
    path("ready", ReadinessView.as_view(), name="health-ready"),
    path("full", FullHealthView.as_view(), name="health-full"),
]

# Included under /_metrics/ by taxdesk_backend.urls
metrics_patterns = [
    path("", MetricsView.as_view(), name="metrics"),
]
