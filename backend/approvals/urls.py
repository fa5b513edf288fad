from django.urls import path

from .views import (
    ApprovalDetailView,
    ApprovalListCreateView,
    ApprovalRequestApproveView,
    ApprovalRequestCancelView,
    ApprovalRequestDetailView,
    ApprovalRequestListView,
    ApprovalRequestRejectView,
    ApprovalSubmitView,
)

app_name = "approvals"

urlpatterns = [
    path("approvals/", ApprovalListCreateView.as_view(), name="approval-list"),
    path("approvals/submit/", ApprovalSubmitView.as_view(), name="approval-submit"),
    path("approvals/<int:pk>/", ApprovalDetailView.as_view(), name="approval-detail"),
    path("approval-requests/", ApprovalRequestListView.as_view(), name="request-list"),
    path("approval-requests/<int:pk>/", ApprovalRequestDetailView.as_view(), name="request-detail"),
    path("approval-requests/<int:pk>/approve/", ApprovalRequestApproveView.as_view(), name="request-approve"),
    path("approval-requests/<int:pk>/reject/", ApprovalRequestRejectView.as_view(), name="request-reject"),
    path("approval-requests/<int:pk>/cancel/", ApprovalRequestCancelView.as_view(), name="request-cancel"),
]
