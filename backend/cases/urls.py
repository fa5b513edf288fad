from django.urls import path

from .views import (
    TaskDetailView,
    TaskListCreateView,
    TaskStatusView,
    TaxCaseDetailView,
    TaxCaseListCreateView,
    TaxCaseNoteListCreateView,
    TaxCaseTransitionView,
)

app_name = "cases"

urlpatterns = [
    path("cases/", TaxCaseListCreateView.as_view(), name="case-list"),
    path("cases/<int:pk>/", TaxCaseDetailView.as_view(), name="case-detail"),
    path("cases/<int:pk>/transition/", TaxCaseTransitionView.as_view(), name="case-transition"),
    path("cases/<int:pk>/notes/", TaxCaseNoteListCreateView.as_view(), name="case-notes"),
    path("tasks/", TaskListCreateView.as_view(), name="task-list"),
    path("tasks/<int:pk>/", TaskDetailView.as_view(), name="task-detail"),
    path("tasks/<int:pk>/status/", TaskStatusView.as_view(), name="task-status"),
]
