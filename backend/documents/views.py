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
from .commands import (
    create_folder,
    delete_document,
    delete_folder,
    initialize_client_folders,
    update_document,
    upload_document,
)
from .models import DepartmentClientFolder, Document
from .serializers import (
    DocumentSerializer,
    DocumentUpdateSerializer,
    DocumentUploadSerializer,
    FolderCreateSerializer,
    FolderInitializeSerializer,
    FolderSerializer,
    FolderTreeSerializer,
)


def _get_or_404(model, pk):
    obj = model.objects.filter(pk=pk).first()
    if obj is None:
        raise Http404
    return obj


def filter_folders(queryset, params):
    if params.get("department"):
        queryset = queryset.filter(department_id=params["department"])
    if params.get("contact"):
        queryset = queryset.filter(contact_id=params["contact"])
    if params.get("corporation"):
        queryset = queryset.filter(corporation_id=params["corporation"])
    if params.get("parent"):
        queryset = queryset.filter(parent_id=params["parent"])
    elif params.get("root") == "true":
        queryset = queryset.filter(parent__isnull=True)
    return queryset


# =============================================================================
# Folder Views
# =============================================================================

class FolderListCreateView(APIView):
    """
    GET /api/v1/folders/ -> list folders (?department, contact, corporation, parent, root)
    POST /api/v1/folders/ -> create folder or subfolder
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        require(actor, "documents.view")

        qs = DepartmentClientFolder.objects.select_related("department", "contact", "corporation")
        return paginate(request, filter_folders(qs, request.query_params), FolderSerializer, view=self)

    def post(self, request):
        actor = resolve_actor(request)

        serializer = FolderCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = create_folder(actor, **serializer.validated_data)
        if not result.success:
            return error_response(result.error)
        return Response(FolderSerializer(result.data).data, status=status.HTTP_201_CREATED)


class FolderTreeView(APIView):
    """GET /api/v1/folders/tree/?department=&contact=|corporation= -> nested folders"""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        require(actor, "documents.view")

        params = request.query_params
        if not params.get("contact") and not params.get("corporation"):
            return error_response("contact or corporation is required.")
        qs = filter_folders(DepartmentClientFolder.objects.filter(parent__isnull=True), params)
        return Response(FolderTreeSerializer(qs.prefetch_related("children"), many=True).data)


class FolderInitializeView(APIView):
    """POST /api/v1/folders/initialize/ -> create the default folder set for a client"""
    permission_classes = [IsAuthenticated]

    def post(self, request):
        actor = resolve_actor(request)

        serializer = FolderInitializeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = initialize_client_folders(actor, **serializer.validated_data)
        if not result.success:
            return error_response(result.error)
        return Response(FolderSerializer(result.data, many=True).data, status=status.HTTP_201_CREATED)


class FolderDetailView(APIView):
    """
    GET / DELETE /api/v1/folders/<id>/
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        actor = resolve_actor(request)
        require(actor, "documents.view")
        return Response(FolderSerializer(_get_or_404(DepartmentClientFolder, pk)).data)

    def delete(self, request, pk):
        actor = resolve_actor(request)
        _get_or_404(DepartmentClientFolder, pk)

        result = delete_folder(actor, pk)
        if not result.success:
            return error_response(result.error)
        return Response(status=status.HTTP_204_NO_CONTENT)


# =============================================================================
# Document Views
# =============================================================================

class DocumentListCreateView(APIView):
    """
    GET /api/v1/documents/ -> list documents
        (?search, contact, corporation, case, folder, doc_type, status)
    POST /api/v1/documents/ -> upload (multipart)
    """
    permission_classes = [IsAuthenticated]
    parser_classes = [MultiPartParser, FormParser, JSONParser]

    def get(self, request):
        actor = resolve_actor(request)
        require(actor, "documents.view")

        qs = Document.objects.select_related("contact", "corporation", "uploaded_by")
        params = request.query_params
        if params.get("search"):
            qs = qs.filter(Q(title__icontains=params["search"]) | Q(description__icontains=params["search"]))
        for param, field in (
            ("contact", "contact_id"),
            ("corporation", "corporation_id"),
            ("case", "case_id"),
            ("folder", "folder_id"),
            ("doc_type", "doc_type"),
            ("status", "status"),
        ):
            if params.get(param):
                qs = qs.filter(**{field: params[param]})
        return paginate(request, qs, DocumentSerializer, view=self)

    def post(self, request):
        actor = resolve_actor(request)

        serializer = DocumentUploadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = upload_document(actor, **serializer.validated_data)
        if not result.success:
            return error_response(result.error)
        return Response(DocumentSerializer(result.data).data, status=status.HTTP_201_CREATED)


class DocumentDetailView(APIView):
    """
    GET / PATCH / DELETE /api/v1/documents/<id>/
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        actor = resolve_actor(request)
        require(actor, "documents.view")
        return Response(DocumentSerializer(_get_or_404(Document, pk)).data)

    def patch(self, request, pk):
        actor = resolve_actor(request)
        _get_or_404(Document, pk)

        serializer = DocumentUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        result = update_document(actor, pk, **serializer.validated_data)
        if not result.success:
            return error_response(result.error)
        return Response(DocumentSerializer(result.data).data)

    def delete(self, request, pk):
        actor = resolve_actor(request)
        _get_or_404(Document, pk)

        result = delete_document(actor, pk)
        if not result.success:
            return error_response(result.error)
        return Response(status=status.HTTP_204_NO_CONTENT)


class DocumentDownloadView(APIView):
    """GET /api/v1/documents/<id>/download/"""
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        actor = resolve_actor(request)
        require(actor, "documents.view")

        document = _get_or_404(Document, pk)
        if not document.file or not document.file.storage.exists(document.file.name):
            raise Http404
        filename = document.file.name.rsplit("/", 1)[-1]
        return FileResponse(document.file.open("rb"), as_attachment=True, filename=filename)
