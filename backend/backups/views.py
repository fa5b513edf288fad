from django.db.models import Q
from django.http import FileResponse, Http404
from rest_framework import status
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.authz import require, resolve_actor
from core.exceptions import error_response
from core.pagination import paginate
from .analyzer import BackupAnalyzer
from .commands import (
    analyze_workload,
    delete_backup,
    request_backup,
    restore_backup,
    update_auto_backup_config,
    upload_backup,
)
from .models import AutoBackupConfiguration, Backup
from .serializers import (
    AnalyzeSerializer,
    AutoBackupConfigurationSerializer,
    BackupCreateSerializer,
    BackupRestoreSerializer,
    BackupSerializer,
    BackupUploadSerializer,
)


def _get_or_404(pk):
    backup = Backup.objects.select_related("corporation", "created_by").filter(pk=pk).first()
    if backup is None:
        raise Http404
    return backup


class BackupListCreateView(APIView):
    """
    GET /api/v1/backups/ -> list backups (?backup_type, status, search)
    POST /api/v1/backups/ -> queue a new backup; poll the detail until it settles
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        require(actor, "backups.view")

        qs = Backup.objects.select_related("corporation", "created_by")
        params = request.query_params
        if params.get("backup_type"):
            qs = qs.filter(backup_type=params["backup_type"])
        if params.get("status"):
            qs = qs.filter(status=params["status"])
        if params.get("search"):
            term = params["search"]
            qs = qs.filter(Q(name__icontains=term) | Q(corporation__name__icontains=term))
        return paginate(request, qs, BackupSerializer, view=self)

    def post(self, request):
        actor = resolve_actor(request)
        require(actor, "backups.manage")

        serializer = BackupCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = request_backup(actor, **serializer.validated_data)
        if not result.success:
            return error_response(result.error)
        return Response(BackupSerializer(result.data).data, status=status.HTTP_202_ACCEPTED)


class BackupDetailView(APIView):
    """GET|DELETE /api/v1/backups/<id>/"""
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        actor = resolve_actor(request)
        require(actor, "backups.view")
        return Response(BackupSerializer(_get_or_404(pk)).data)

    def delete(self, request, pk):
        actor = resolve_actor(request)
        require(actor, "backups.manage")

        _get_or_404(pk)
        result = delete_backup(actor, pk)
        if not result.success:
            return error_response(result.error)
        return Response(status=status.HTTP_204_NO_CONTENT)


class BackupDownloadView(APIView):
    """GET /api/v1/backups/<id>/download/"""
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        actor = resolve_actor(request)
        require(actor, "backups.manage")

        backup = _get_or_404(pk)
        path = backup.absolute_path
        if backup.status != Backup.Status.COMPLETED or not backup.file_path or not path.is_file():
            raise Http404
        return FileResponse(open(path, "rb"), as_attachment=True, filename=path.name)


class BackupRestoreView(APIView):
    """POST /api/v1/backups/<id>/restore/ {confirm: true}"""
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        actor = resolve_actor(request)
        require(actor, "backups.manage")

        _get_or_404(pk)
        serializer = BackupRestoreSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = restore_backup(actor, pk, confirm=serializer.validated_data["confirm"])
        if not result.success:
            return error_response(result.error)
        return Response(result.data)


class BackupUploadView(APIView):
    """POST /api/v1/backups/upload/ (multipart: file, name, restore)"""
    permission_classes = [IsAuthenticated]
    parser_classes = [MultiPartParser, FormParser]

    def post(self, request):
        actor = resolve_actor(request)
        require(actor, "backups.manage")

        serializer = BackupUploadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = upload_backup(actor, **serializer.validated_data)
        if not result.success:
            return error_response(result.error)
        return Response(
            {"backup": BackupSerializer(result.data["backup"]).data, "restore": result.data["restore"]},
            status=status.HTTP_201_CREATED,
        )


class WorkloadView(APIView):
    """GET /api/v1/backups/workload/ -> last 24h metrics and the backup decision"""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        require(actor, "backups.view")

        metrics, decision = BackupAnalyzer(AutoBackupConfiguration.load()).run()
        return Response({"metrics": metrics.to_dict(), "decision": decision.to_dict()})


class AnalyzeView(APIView):
    """POST /api/v1/backups/analyze/ {create_backup}"""
    permission_classes = [IsAuthenticated]

    def post(self, request):
        actor = resolve_actor(request)
        require(actor, "backups.manage")

        serializer = AnalyzeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = analyze_workload(actor, create_backup=serializer.validated_data["create_backup"])
        if not result.success:
            return error_response(result.error)
        backup = result.data["backup"]
        return Response({
            "metrics": result.data["metrics"].to_dict(),
            "decision": result.data["decision"].to_dict(),
            "backup": BackupSerializer(backup).data if backup else None,
        })


class AutoBackupConfigView(APIView):
    """GET|PATCH /api/v1/backups/config/"""
    permission_classes = [IsAuthenticated]
    parser_classes = [JSONParser]

    def get(self, request):
        actor = resolve_actor(request)
        require(actor, "backups.view")
        return Response(AutoBackupConfigurationSerializer(AutoBackupConfiguration.load()).data)

    def patch(self, request):
        actor = resolve_actor(request)
        require(actor, "backups.manage")

        serializer = AutoBackupConfigurationSerializer(
            AutoBackupConfiguration.load(), data=request.data, partial=True
        )
        serializer.is_valid(raise_exception=True)

        result = update_auto_backup_config(actor, **serializer.validated_data)
        if not result.success:
            return error_response(result.error)
        return Response(AutoBackupConfigurationSerializer(result.data).data)
