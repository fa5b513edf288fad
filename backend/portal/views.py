"""
Client portal endpoints.

Portal views use the portal JWT realm: authentication_classes = [] and
IsPortalAuthenticated. Staff-side views under portal-admin/ use the normal
staff JWT and the portal.manage permission.
"""
import logging

import jwt
from django.http import Http404
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.authz import require, resolve_actor
from accounts.throttles import PortalLoginThrottle
from cases.models import TaxCase
from clients.models import Contact
from core.exceptions import error_response
from core.pagination import paginate
from .commands import (
    authenticate_portal_user,
    grant_portal_access,
    mark_message_read,
    revoke_portal_access,
    send_client_message,
    send_staff_message,
)
from .models import ClientPortalAccess, PortalMessage
from .permissions import IsPortalAuthenticated
from .serializers import (
    PortalAccessGrantSerializer,
    PortalAccessSerializer,
    PortalCaseSerializer,
    PortalContactSerializer,
    PortalLoginSerializer,
    PortalMeSerializer,
    PortalMessageCreateSerializer,
    PortalMessageSerializer,
    PortalRefreshSerializer,
)
from .tokens import REFRESH, create_portal_tokens, decode_portal_token

security_logger = logging.getLogger("security")


# =============================================================================
# Portal Auth
# =============================================================================

class PortalLoginView(APIView):
    """POST /api/v1/portal/auth/login/ {email, password}"""
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = [PortalLoginThrottle]

    def post(self, request):
        serializer = PortalLoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = authenticate_portal_user(**serializer.validated_data)
        if not result.success:
            return error_response(result.error, status.HTTP_401_UNAUTHORIZED)

        access = result.data
        return Response({
            **create_portal_tokens(access),
            "contact": PortalContactSerializer(access.contact).data,
        })


class PortalTokenRefreshView(APIView):
    """POST /api/v1/portal/auth/refresh/ {refresh}"""
    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request):
        serializer = PortalRefreshSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            payload = decode_portal_token(serializer.validated_data["refresh"], expected_type=REFRESH)
        except jwt.InvalidTokenError as e:
            security_logger.info("Portal refresh rejected", extra={"reason": str(e)})
            return error_response("Invalid or expired refresh token.", status.HTTP_401_UNAUTHORIZED)

        access = ClientPortalAccess.objects.filter(pk=payload["portal_access_id"], is_active=True).first()
        if access is None:
            return error_response("Portal access not found or inactive.", status.HTTP_401_UNAUTHORIZED)
        return Response(create_portal_tokens(access))


class PortalMeView(APIView):
    """GET /api/v1/portal/me/"""
    permission_classes = [IsPortalAuthenticated]
    authentication_classes = []

    def get(self, request):
        return Response(PortalMeSerializer(request.portal_access).data)


# =============================================================================
# Portal Data
# =============================================================================

class PortalCaseListView(APIView):
    """GET /api/v1/portal/cases/ -> the client's own cases"""
    permission_classes = [IsPortalAuthenticated]
    authentication_classes = []

    def get(self, request):
        qs = TaxCase.objects.filter(contact_id=request.portal_contact_id).order_by("-fiscal_year", "-created_at")
        return paginate(request, qs, PortalCaseSerializer, view=self)


class PortalMessageListCreateView(APIView):
    """
    GET /api/v1/portal/messages/ -> the client's thread (polled)
    POST /api/v1/portal/messages/ -> send a message to staff
    """
    permission_classes = [IsPortalAuthenticated]
    authentication_classes = []

    def get(self, request):
        qs = PortalMessage.objects.filter(contact_id=request.portal_contact_id).select_related(
            "sender_user", "contact"
        )
        if request.query_params.get("case"):
            qs = qs.filter(case_id=request.query_params["case"])
        return paginate(request, qs, PortalMessageSerializer, view=self)

    def post(self, request):
        serializer = PortalMessageCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = send_client_message(request.portal_access, **serializer.validated_data)
        if not result.success:
            return error_response(result.error)
        return Response(PortalMessageSerializer(result.data).data, status=status.HTTP_201_CREATED)


class PortalMessageReadView(APIView):
    """POST /api/v1/portal/messages/<id>/read/"""
    permission_classes = [IsPortalAuthenticated]
    authentication_classes = []

    def post(self, request, pk):
        result = mark_message_read(request.portal_access, pk)
        if not result.success:
            raise Http404
        return Response(PortalMessageSerializer(result.data).data)


# =============================================================================
# Staff Side
# =============================================================================

class PortalAccessAdminView(APIView):
    """
    GET /api/v1/portal-admin/access/ -> portal accounts
    POST /api/v1/portal-admin/access/ -> grant (or re-enable) access for a contact
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        require(actor, "portal.manage")

        qs = ClientPortalAccess.objects.select_related("contact").order_by("email")
        if request.query_params.get("is_active") in ("true", "false"):
            qs = qs.filter(is_active=request.query_params["is_active"] == "true")
        return paginate(request, qs, PortalAccessSerializer, view=self)

    def post(self, request):
        actor = resolve_actor(request)

        serializer = PortalAccessGrantSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = grant_portal_access(actor, **serializer.validated_data)
        if not result.success:
            return error_response(result.error)
        data = PortalAccessSerializer(result.data["access"]).data
        if result.data["temporary_password"]:
            data["temporary_password"] = result.data["temporary_password"]
        return Response(data, status=status.HTTP_201_CREATED)


class PortalAccessRevokeView(APIView):
    """POST /api/v1/portal-admin/contacts/<id>/revoke/"""
    permission_classes = [IsAuthenticated]

    def post(self, request, contact_id):
        actor = resolve_actor(request)

        result = revoke_portal_access(actor, contact_id)
        if not result.success:
            return error_response(result.error)
        return Response(PortalAccessSerializer(result.data).data)


class StaffContactMessagesView(APIView):
    """
    GET /api/v1/portal-admin/contacts/<id>/messages/ -> thread with a contact
    POST /api/v1/portal-admin/contacts/<id>/messages/ -> reply as staff
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, contact_id):
        actor = resolve_actor(request)
        require(actor, "portal.manage")

        if not Contact.objects.filter(pk=contact_id).exists():
            raise Http404
        qs = PortalMessage.objects.filter(contact_id=contact_id).select_related("sender_user", "contact")
        return paginate(request, qs, PortalMessageSerializer, view=self)

    def post(self, request, contact_id):
        actor = resolve_actor(request)

        serializer = PortalMessageCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = send_staff_message(actor, contact_id, **serializer.validated_data)
        if not result.success:
            return error_response(result.error)
        return Response(PortalMessageSerializer(result.data).data, status=status.HTTP_201_CREATED)
