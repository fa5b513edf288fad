from django.urls import path

from .views import (
    AnalyzeView,
    AutoBackupConfigView,
    BackupDetailView,
    BackupDownloadView,
    BackupListCreateView,
    BackupRestoreView,
    BackupUploadView,
    WorkloadView,
)

app_name = "backups"

urlpatterns = [
    path("", BackupListCreateView.as_view(), name="backup-list"),
    path("upload/", BackupUploadView.as_view(), name="backup-upload"),
    path("workload/", WorkloadView.as_view(), name="backup-workload"),
    path("analyze/", AnalyzeView.as_view(), name="backup-analyze"),
    path("config/", AutoBackupConfigView.as_view(), name="backup-config"),
    path("<int:pk>/", BackupDetailView.as_view(), name="backup-detail"),
    path("<int:pk>/download/", BackupDownloadView.as_view(), name="backup-download"),
    path("<int:pk>/restore/", BackupRestoreView.as_view(), name="backup-restore"),
]
