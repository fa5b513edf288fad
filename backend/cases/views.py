"""
Thin views that delegate to the commands layer.
"""

from django.db.models import Q
from django.http import Http404
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.authz import require, resolve_actor
from core.exceptions import error_response
from core.pagination import paginate
from .commands import (
    add_case_note,
    create_case,
    create_task,
    delete_case,
    transition_case,
    update_case,
    update_task,
    update_task_status,
)
from .models import Task, TaxCase
from .serializers import (
    TaskCreateSerializer,
    TaskSerializer,
    TaskStatusSerializer,
    TaskWriteSerializer,
    TaxCaseNoteSerializer,
    TaxCaseSerializer,
    TaxCaseUpdateSerializer,
    TaxCaseWriteSerializer,
    TransitionSerializer,
)


def _get_case_or_404(pk):
    case = TaxCase.objects.select_related(
        "contact", "corporation", "assigned_preparer", "reviewer", "created_by"
    ).filter(pk=pk).first()
    if case is None:
        raise Http404
    return case


def _get_task_or_404(pk):
    task = Task.objects.filter(pk=pk).first()
    if task is None:
        raise Http404
    return task


# =============================================================================
# Tax Case Views
# =============================================================================

class TaxCaseListCreateView(APIView):
    """
    GET /api/v1/cases/ -> list cases
        (?status, case_type, fiscal_year, contact, corporation, assigned_preparer, search, mine)
    POST /api/v1/cases/ -> open a case
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        require(actor, "cases.view")

        qs = TaxCase.objects.select_related(
            "contact", "corporation", "assigned_preparer", "reviewer", "created_by"
        )
        params = request.query_params
        for param, lookup in (
            ("status", "status"),
            ("case_type", "case_type"),
            ("fiscal_year", "fiscal_year"),
            ("contact", "contact_id"),
            ("corporation", "corporation_id"),
            ("assigned_preparer", "assigned_preparer_id"),
        ):
            if params.get(param):
                qs = qs.filter(**{lookup: params[param]})
        if params.get("search"):
            qs = qs.filter(Q(case_number__icontains=params["search"]) | Q(title__icontains=params["search"]))
        if params.get("mine") in ("1", "true", "True"):
            qs = qs.filter(Q(assigned_preparer=request.user) | Q(reviewer=request.user))
        return paginate(request, qs, TaxCaseSerializer, view=self)

    def post(self, request):
        actor = resolve_actor(request)

        serializer = TaxCaseWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = create_case(actor, **serializer.validated_data)
        if not result.success:
            return error_response(result.error)
        return Response(TaxCaseSerializer(result.data).data, status=status.HTTP_201_CREATED)


class TaxCaseDetailView(APIView):
    """
    GET / PATCH / DELETE /api/v1/cases/<id>/
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        actor = resolve_actor(request)
        require(actor, "cases.view")
        return Response(TaxCaseSerializer(_get_case_or_404(pk)).data)

    def patch(self, request, pk):
        actor = resolve_actor(request)
        _get_case_or_404(pk)

        serializer = TaxCaseUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        result = update_case(actor, pk, **serializer.validated_data)
        if not result.success:
            return error_response(result.error)
        return Response(TaxCaseSerializer(result.data).data)

    def delete(self, request, pk):
        actor = resolve_actor(request)
        _get_case_or_404(pk)

        result = delete_case(actor, pk)
        if not result.success:
            return error_response(result.error)
        return Response(status=status.HTTP_204_NO_CONTENT)


class TaxCaseTransitionView(APIView):
    """
    POST /api/v1/cases/<id>/transition/ {status, note} -> move along the workflow
    """
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        actor = resolve_actor(request)
        _get_case_or_404(pk)

        serializer = TransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = transition_case(
            actor, pk, serializer.validated_data["status"], note=serializer.validated_data["note"]
        )
        if not result.success:
            return error_response(result.error)
        return Response(TaxCaseSerializer(result.data).data)


class TaxCaseNoteListCreateView(APIView):
    """
    GET / POST /api/v1/cases/<id>/notes/
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        actor = resolve_actor(request)
        require(actor, "cases.view")
        case = _get_case_or_404(pk)
        notes = case.notes.select_related("author")
        return Response(TaxCaseNoteSerializer(notes, many=True).data)

    def post(self, request, pk):
        actor = resolve_actor(request)
        _get_case_or_404(pk)

        serializer = TaxCaseNoteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = add_case_note(actor, pk, **serializer.validated_data)
        if not result.success:
            return error_response(result.error)
        return Response(TaxCaseNoteSerializer(result.data).data, status=status.HTTP_201_CREATED)


# =============================================================================
# Task Views
# =============================================================================

class TaskListCreateView(APIView):
    """
    GET /api/v1/tasks/ -> list tasks (?status, assigned_to, case, mine)
    POST /api/v1/tasks/ -> create task
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        require(actor, "tasks.view")

        qs = Task.objects.select_related("assigned_to", "created_by", "case")
        params = request.query_params
        if params.get("status"):
            qs = qs.filter(status=params["status"])
        if params.get("assigned_to"):
            qs = qs.filter(assigned_to_id=params["assigned_to"])
        if params.get("case"):
            qs = qs.filter(case_id=params["case"])
        if params.get("mine") in ("1", "true", "True"):
            qs = qs.filter(assigned_to=request.user)
        return paginate(request, qs, TaskSerializer, view=self)

    def post(self, request):
        actor = resolve_actor(request)

        serializer = TaskCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = create_task(actor, **serializer.validated_data)
        if not result.success:
            return error_response(result.error)
        return Response(TaskSerializer(result.data).data, status=status.HTTP_201_CREATED)


class TaskDetailView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        actor = resolve_actor(request)
        require(actor, "tasks.view")
        return Response(TaskSerializer(_get_task_or_404(pk)).data)

    def patch(self, request, pk):
        actor = resolve_actor(request)
        _get_task_or_404(pk)

        serializer = TaskWriteSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        result = update_task(actor, pk, **serializer.validated_data)
        if not result.success:
            return error_response(result.error)
        return Response(TaskSerializer(result.data).data)


class TaskStatusView(APIView):
    """
    POST /api/v1/tasks/<id>/status/ {status}
    """
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        actor = resolve_actor(request)
        _get_task_or_404(pk)

        serializer = TaskStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = update_task_status(actor, pk, serializer.validated_data["status"])
        if not result.success:
            return error_response(result.error)
        return Response(TaskSerializer(result.data).data)
