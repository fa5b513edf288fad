# accounts/urls.py
"""
URL configuration for accounts/auth API.

Endpoints:
- /auth/ - Authentication (login, refresh, logout, me)
- /notifications/ - In-app notifications
"""

from django.urls import path

from .views import (
    LoginView,
    LogoutView,
    MeView,
    NotificationListView,
    NotificationReadAllView,
    NotificationReadView,
    TaxDeskTokenRefreshView,
)

app_name = "accounts"

urlpatterns = [
    # ==========================================================================
    # Authentication
    # ==========================================================================
    path("auth/login/", LoginView.as_view(), name="login"),
    path("auth/refresh/", TaxDeskTokenRefreshView.as_view(), name="token-refresh"),
    path("auth/logout/", LogoutView.as_view(), name="logout"),
    path("auth/me/", MeView.as_view(), name="me"),

    # ==========================================================================
    # Notifications
    # ==========================================================================
    path("notifications/", NotificationListView.as_view(), name="notification-list"),
    path("notifications/read-all/", NotificationReadAllView.as_view(), name="notification-read-all"),
    path("notifications/<int:pk>/read/", NotificationReadView.as_view(), name="notification-read"),
]
