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
    approve_request,
    cancel_request,
    delete_approval,
    reject_request,
    save_approval,
    submit_for_approval,
)
from .models import Approval, ApprovalRequest
from .serializers import (
    ApprovalDetailSerializer,
    ApprovalListSerializer,
    ApprovalRequestSerializer,
    ApprovalWriteSerializer,
    DecisionSerializer,
    SubmitSerializer,
)


def _get_approval_or_404(pk):
    approval = Approval.objects.prefetch_related("rules__owner_profiles", "rules__approvers", "actions").filter(
        pk=pk
    ).first()
    if approval is None:
        raise Http404
    return approval


def _requests_visible_to(actor):
    qs = ApprovalRequest.objects.select_related("submitted_by", "decided_by").prefetch_related(
        "approvers", "action_logs"
    )
    if actor.has("approvals.view"):
        return qs
    return qs.filter(Q(approvers=actor.user) | Q(submitted_by=actor.user)).distinct()


# =============================================================================
# Definitions
# =============================================================================

class ApprovalListCreateView(APIView):
    """
    GET /api/v1/approvals/ -> definitions (?module, is_active)
    POST /api/v1/approvals/ -> create (nested rules + actions)
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        require(actor, "approvals.view")

        qs = Approval.objects.select_related("created_by")
        if request.query_params.get("module"):
            qs = qs.filter(module=request.query_params["module"])
        if request.query_params.get("is_active") in ("true", "false"):
            qs = qs.filter(is_active=request.query_params["is_active"] == "true")
        return paginate(request, qs, ApprovalListSerializer, view=self)

    def post(self, request):
        actor = resolve_actor(request)

        serializer = ApprovalWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = save_approval(actor, serializer.validated_data)
        if not result.success:
            return error_response(result.error)
        return Response(
            ApprovalDetailSerializer(_get_approval_or_404(result.data.pk)).data,
            status=status.HTTP_201_CREATED,
        )


class ApprovalDetailView(APIView):
    """
    GET / PUT / PATCH / DELETE /api/v1/approvals/<id>/

    PUT replaces the definition; rules and actions omitted from the payload
    are cleared. PATCH leaves omitted lists untouched.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        actor = resolve_actor(request)
        require(actor, "approvals.view")
        return Response(ApprovalDetailSerializer(_get_approval_or_404(pk)).data)

    def _save(self, request, pk, partial):
        actor = resolve_actor(request)
        _get_approval_or_404(pk)

        serializer = ApprovalWriteSerializer(data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        if not partial:
            data.setdefault("rules", [])
            data.setdefault("actions", [])

        result = save_approval(actor, data, approval_id=pk)
        if not result.success:
            return error_response(result.error)
        return Response(ApprovalDetailSerializer(_get_approval_or_404(pk)).data)

    def put(self, request, pk):
        return self._save(request, pk, partial=False)

    def patch(self, request, pk):
        return self._save(request, pk, partial=True)

    def delete(self, request, pk):
        actor = resolve_actor(request)
        _get_approval_or_404(pk)

        result = delete_approval(actor, pk)
        if not result.success:
            return error_response(result.error)
        return Response(status=status.HTTP_204_NO_CONTENT)


class ApprovalSubmitView(APIView):
    """POST /api/v1/approvals/submit/ {module, object_id}"""
    permission_classes = [IsAuthenticated]

    def post(self, request):
        actor = resolve_actor(request)

        serializer = SubmitSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = submit_for_approval(actor, **serializer.validated_data)
        if not result.success:
            return error_response(result.error)
        return Response(ApprovalRequestSerializer(result.data, many=True).data, status=status.HTTP_201_CREATED)


# =============================================================================
# Requests
# =============================================================================

class ApprovalRequestListView(APIView):
    """
    GET /api/v1/approval-requests/ -> requests (?status, module, mine=true)

    mine=true limits the list to pending requests the caller can decide.
    Users without approvals.view only see requests they submitted or decide.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)

        qs = _requests_visible_to(actor)
        params = request.query_params
        if params.get("status"):
            qs = qs.filter(status=params["status"])
        if params.get("module"):
            qs = qs.filter(module=params["module"])
        if params.get("mine") == "true":
            qs = qs.filter(approvers=actor.user, status=ApprovalRequest.Status.PENDING)
        return paginate(request, qs, ApprovalRequestSerializer, view=self)


class ApprovalRequestDetailView(APIView):
    """GET /api/v1/approval-requests/<id>/"""
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        actor = resolve_actor(request)
        approval_request = _requests_visible_to(actor).filter(pk=pk).first()
        if approval_request is None:
            raise Http404
        return Response(ApprovalRequestSerializer(approval_request).data)


class _DecisionView(APIView):
    permission_classes = [IsAuthenticated]
    command = None

    def post(self, request, pk):
        actor = resolve_actor(request)
        if not ApprovalRequest.objects.filter(pk=pk).exists():
            raise Http404

        serializer = DecisionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = type(self).command(actor, pk, serializer.validated_data["comment"])
        if not result.success:
            return error_response(result.error)
        approval_request = ApprovalRequest.objects.prefetch_related("approvers", "action_logs").get(pk=pk)
        return Response(ApprovalRequestSerializer(approval_request).data)


class ApprovalRequestApproveView(_DecisionView):
    """POST /api/v1/approval-requests/<id>/approve/ {comment}"""
    command = staticmethod(approve_request)


class ApprovalRequestRejectView(_DecisionView):
    """POST /api/v1/approval-requests/<id>/reject/ {comment}"""
    command = staticmethod(reject_request)


class ApprovalRequestCancelView(_DecisionView):
    """POST /api/v1/approval-requests/<id>/cancel/ {comment}"""
    command = staticmethod(cancel_request)
