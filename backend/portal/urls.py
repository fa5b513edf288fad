from django.urls import path

from .views import (
    PortalAccessAdminView,
    PortalAccessRevokeView,
    PortalCaseListView,
    PortalLoginView,
    PortalMeView,
    PortalMessageListCreateView,
    PortalMessageReadView,
    PortalTokenRefreshView,
    StaffContactMessagesView,
)

app_name = "portal"

urlpatterns = [
    path("portal/auth/login/", PortalLoginView.as_view(), name="portal-login"),
    path("portal/auth/refresh/", PortalTokenRefreshView.as_view(), name="portal-refresh"),
    path("portal/me/", PortalMeView.as_view(), name="portal-me"),
    path("portal/cases/", PortalCaseListView.as_view(), name="portal-cases"),
    path("portal/messages/", PortalMessageListCreateView.as_view(), name="portal-messages"),
    path("portal/messages/<int:pk>/read/", PortalMessageReadView.as_view(), name="portal-message-read"),
    path("portal-admin/access/", PortalAccessAdminView.as_view(), name="portal-admin-access"),
    path(
        "portal-admin/contacts/<int:contact_id>/revoke/",
        PortalAccessRevokeView.as_view(),
        name="portal-admin-revoke",
    ),
    path(
        "portal-admin/contacts/<int:contact_id>/messages/",
        StaffContactMessagesView.as_view(),
        name="portal-admin-messages",
    ),
]
