"""
Thin views that delegate to the commands layer.

Views handle: HTTP parsing, authentication, response formatting.
Commands handle: business logic, validation, audit.
"""

from django.db.models import Q
from django.http import Http404
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.authz import require, resolve_actor
from core.exceptions import error_response
from core.exports import ExportFormat, create_export_response
from core.pagination import paginate
from .commands import (
    add_contact_corporation,
    create_contact,
    create_corporation,
    delete_contact,
    delete_corporation,
    link_related_corporation,
    remove_contact_corporation,
    update_contact,
    update_corporation,
)
from .exports import CONTACT_EXPORT_COLUMNS, prepare_contact_export_data
from .models import Contact, Corporation
from .serializers import (
    ContactCorporationSerializer,
    ContactCreateSerializer,
    ContactSerializer,
    ContactWriteSerializer,
    CorporationCreateSerializer,
    CorporationSerializer,
    CorporationWriteSerializer,
    RelatedCorporationSerializer,
)


def _get_or_404(model, pk):
    obj = model.objects.filter(pk=pk).first()
    if obj is None:
        raise Http404
    return obj


def filter_contacts(queryset, params):
    search = params.get("search")
    if search:
        queryset = queryset.filter(
            Q(first_name__icontains=search)
            | Q(last_name__icontains=search)
            | Q(email__icontains=search)
            | Q(contact_number__icontains=search)
        )
    if params.get("status"):
        queryset = queryset.filter(status=params["status"])
    if params.get("corporation"):
        queryset = queryset.filter(corporations__id=params["corporation"])
    if params.get("assigned_to"):
        queryset = queryset.filter(assigned_to_id=params["assigned_to"])
    return queryset.distinct()


# =============================================================================
# Corporation Views
# =============================================================================

class CorporationListCreateView(APIView):
    """
    GET /api/v1/corporations/ -> list corporations (?search, status, entity_type, member_of)
    POST /api/v1/corporations/ -> create corporation
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        require(actor, "clients.view")

        qs = Corporation.objects.select_related("member_of", "assigned_to", "created_by")
        params = request.query_params
        if params.get("search"):
            qs = qs.filter(Q(name__icontains=params["search"]) | Q(legal_name__icontains=params["search"]))
        if params.get("status"):
            qs = qs.filter(status=params["status"])
        if params.get("entity_type"):
            qs = qs.filter(entity_type=params["entity_type"])
        if params.get("member_of"):
            qs = qs.filter(member_of_id=params["member_of"])
        return paginate(request, qs.prefetch_related("related_corporations"), CorporationSerializer, view=self)

    def post(self, request):
        actor = resolve_actor(request)

        serializer = CorporationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = create_corporation(actor, **serializer.validated_data)
        if not result.success:
            return error_response(result.error)
        return Response(CorporationSerializer(result.data).data, status=status.HTTP_201_CREATED)


class CorporationDetailView(APIView):
    """
    GET / PATCH / DELETE /api/v1/corporations/<id>/
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        actor = resolve_actor(request)
        require(actor, "clients.view")
        return Response(CorporationSerializer(_get_or_404(Corporation, pk)).data)

    def patch(self, request, pk):
        actor = resolve_actor(request)
        _get_or_404(Corporation, pk)

        serializer = CorporationWriteSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        result = update_corporation(actor, pk, **serializer.validated_data)
        if not result.success:
            return error_response(result.error)
        return Response(CorporationSerializer(result.data).data)

    def delete(self, request, pk):
        actor = resolve_actor(request)
        _get_or_404(Corporation, pk)

        result = delete_corporation(actor, pk)
        if not result.success:
            return error_response(result.error)
        return Response(status=status.HTTP_204_NO_CONTENT)


class CorporationRelatedView(APIView):
    """
    POST /api/v1/corporations/<id>/related/ {related_id} -> link
    DELETE /api/v1/corporations/<id>/related/ {related_id} -> unlink
    """
    permission_classes = [IsAuthenticated]

    def _handle(self, request, pk, unlink):
        actor = resolve_actor(request)
        serializer = RelatedCorporationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = link_related_corporation(actor, pk, serializer.validated_data["related_id"], unlink=unlink)
        if not result.success:
            return error_response(result.error)
        return Response(CorporationSerializer(result.data).data)

    def post(self, request, pk):
        return self._handle(request, pk, unlink=False)

    def delete(self, request, pk):
        return self._handle(request, pk, unlink=True)


# =============================================================================
# Contact Views
# =============================================================================

class ContactListCreateView(APIView):
    """
    GET /api/v1/contacts/ -> list contacts (?search, status, corporation, assigned_to)
    POST /api/v1/contacts/ -> create contact
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        require(actor, "clients.view")

        qs = Contact.objects.select_related("primary_corporation", "assigned_to", "created_by")
        qs = filter_contacts(qs, request.query_params).prefetch_related("corporations")
        return paginate(request, qs, ContactSerializer, view=self)

    def post(self, request):
        actor = resolve_actor(request)

        serializer = ContactCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = create_contact(actor, **serializer.validated_data)
        if not result.success:
            return error_response(result.error)
        return Response(ContactSerializer(result.data).data, status=status.HTTP_201_CREATED)


class ContactDetailView(APIView):
    """
    GET / PATCH / DELETE /api/v1/contacts/<id>/
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        actor = resolve_actor(request)
        require(actor, "clients.view")
        return Response(ContactSerializer(_get_or_404(Contact, pk)).data)

    def patch(self, request, pk):
        actor = resolve_actor(request)
        _get_or_404(Contact, pk)

        serializer = ContactWriteSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        result = update_contact(actor, pk, **serializer.validated_data)
        if not result.success:
            return error_response(result.error)
        return Response(ContactSerializer(result.data).data)

    def delete(self, request, pk):
        actor = resolve_actor(request)
        _get_or_404(Contact, pk)

        result = delete_contact(actor, pk)
        if not result.success:
            return error_response(result.error)
        return Response(status=status.HTTP_204_NO_CONTENT)


class ContactCorporationsView(APIView):
    """
    POST /api/v1/contacts/<id>/corporations/ {corporation_id, make_primary} -> link
    DELETE /api/v1/contacts/<id>/corporations/ {corporation_id} -> unlink
    """
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        actor = resolve_actor(request)
        serializer = ContactCorporationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = add_contact_corporation(actor, pk, **serializer.validated_data)
        if not result.success:
            return error_response(result.error)
        return Response(ContactSerializer(result.data).data)

    def delete(self, request, pk):
        actor = resolve_actor(request)
        serializer = ContactCorporationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = remove_contact_corporation(actor, pk, serializer.validated_data["corporation_id"])
        if not result.success:
            return error_response(result.error)
        return Response(ContactSerializer(result.data).data)


class ContactExportView(APIView):
    """
    GET /api/v1/contacts/export/?export_format=csv|xlsx|txt -> download contacts

    Honours the same filters as the contact list.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        require(actor, "clients.export")

        export_format = request.query_params.get("export_format", ExportFormat.CSV)
        if export_format not in ExportFormat.CHOICES:
            return error_response(f"Unsupported format. Use one of: {', '.join(ExportFormat.CHOICES)}.")

        qs = Contact.objects.select_related("primary_corporation", "assigned_to")
        qs = filter_contacts(qs, request.query_params).prefetch_related("corporations")
        return create_export_response(
            prepare_contact_export_data(qs),
            CONTACT_EXPORT_COLUMNS,
            export_format,
            filename="contacts",
            title="Contacts",
        )
