from django.urls import path

from .views import (
    DocumentDetailView,
    DocumentDownloadView,
    DocumentListCreateView,
    FolderDetailView,
    FolderInitializeView,
    FolderListCreateView,
    FolderTreeView,
)

app_name = "documents"

urlpatterns = [
    path("documents/", DocumentListCreateView.as_view(), name="document-list"),
    path("documents/<int:pk>/", DocumentDetailView.as_view(), name="document-detail"),
    path("documents/<int:pk>/download/", DocumentDownloadView.as_view(), name="document-download"),
    path("folders/", FolderListCreateView.as_view(), name="folder-list"),
    path("folders/tree/", FolderTreeView.as_view(), name="folder-tree"),
    path("folders/initialize/", FolderInitializeView.as_view(), name="folder-initialize"),
    path("folders/<int:pk>/", FolderDetailView.as_view(), name="folder-detail"),
]
