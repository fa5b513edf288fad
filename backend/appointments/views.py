"""
Thin views that delegate to the commands layer.
"""

import datetime

from django.http import Http404
from django.utils import timezone
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.authz import require, resolve_actor
from core.exceptions import error_response
from core.pagination import paginate
from .commands import (
    cancel_appointment,
    reschedule_appointment,
    schedule_appointment,
    update_appointment,
    update_appointment_status,
)
from .models import Appointment
from .serializers import (
    AppointmentCreateSerializer,
    AppointmentSerializer,
    AppointmentStatusSerializer,
    AppointmentUpdateSerializer,
    CancelSerializer,
    RescheduleSerializer,
)

MAX_CALENDAR_DAYS = 93


def _get_or_404(pk):
    appointment = Appointment.objects.select_related("contact", "assigned_to", "created_by", "case").filter(
        pk=pk
    ).first()
    if appointment is None:
        raise Http404
    return appointment


def _base_queryset(params):
    qs = Appointment.objects.select_related("contact", "assigned_to", "created_by", "case")
    for param, field in (
        ("contact", "contact_id"),
        ("case", "case_id"),
        ("assigned_to", "assigned_to_id"),
        ("status", "status"),
    ):
        if params.get(param):
            qs = qs.filter(**{field: params[param]})
    return qs


class AppointmentListCreateView(APIView):
    """
    GET /api/v1/appointments/ -> list (?contact, case, assigned_to, status, upcoming)
    POST /api/v1/appointments/ -> schedule
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        require(actor, "appointments.view")

        qs = _base_queryset(request.query_params)
        if request.query_params.get("upcoming") == "true":
            qs = qs.filter(start_datetime__gte=timezone.now()).order_by("start_datetime")
        return paginate(request, qs, AppointmentSerializer, view=self)

    def post(self, request):
        actor = resolve_actor(request)

        serializer = AppointmentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = schedule_appointment(actor, **serializer.validated_data)
        if not result.success:
            return error_response(result.error)
        return Response(AppointmentSerializer(result.data).data, status=status.HTTP_201_CREATED)


class AppointmentCalendarView(APIView):
    """GET /api/v1/appointments/calendar/?start_date=YYYY-MM-DD&end_date=YYYY-MM-DD (unpaginated)"""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        require(actor, "appointments.view")

        try:
            start = datetime.date.fromisoformat(request.query_params.get("start_date", ""))
            end = datetime.date.fromisoformat(request.query_params.get("end_date", ""))
        except ValueError:
            return error_response("start_date and end_date are required (YYYY-MM-DD).")
        if end < start:
            return error_response("end_date must not be before start_date.")
        if (end - start).days > MAX_CALENDAR_DAYS:
            return error_response(f"Calendar range is limited to {MAX_CALENDAR_DAYS} days.")

        tz = timezone.get_current_timezone()
        range_start = datetime.datetime.combine(start, datetime.time.min, tzinfo=tz)
        range_end = datetime.datetime.combine(end + datetime.timedelta(days=1), datetime.time.min, tzinfo=tz)
        qs = (
            _base_queryset(request.query_params)
            .filter(start_datetime__lt=range_end, end_datetime__gt=range_start)
            .order_by("start_datetime")
        )
        return Response(AppointmentSerializer(qs, many=True).data)


class AppointmentDetailView(APIView):
    """
    GET / PATCH /api/v1/appointments/<id>/
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        actor = resolve_actor(request)
        require(actor, "appointments.view")
        return Response(AppointmentSerializer(_get_or_404(pk)).data)

    def patch(self, request, pk):
        actor = resolve_actor(request)
        _get_or_404(pk)

        serializer = AppointmentUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        result = update_appointment(actor, pk, **serializer.validated_data)
        if not result.success:
            return error_response(result.error)
        return Response(AppointmentSerializer(result.data).data)


class AppointmentRescheduleView(APIView):
    """POST /api/v1/appointments/<id>/reschedule/"""
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        actor = resolve_actor(request)
        _get_or_404(pk)

        serializer = RescheduleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = reschedule_appointment(actor, pk, **serializer.validated_data)
        if not result.success:
            return error_response(result.error)
        return Response(AppointmentSerializer(result.data).data)


class AppointmentStatusView(APIView):
    """POST /api/v1/appointments/<id>/status/ {status}"""
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        actor = resolve_actor(request)
        _get_or_404(pk)

        serializer = AppointmentStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = update_appointment_status(actor, pk, serializer.validated_data["status"])
        if not result.success:
            return error_response(result.error)
        return Response(AppointmentSerializer(result.data).data)


class AppointmentCancelView(APIView):
    """POST /api/v1/appointments/<id>/cancel/ {reason}"""
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        actor = resolve_actor(request)
        _get_or_404(pk)

        serializer = CancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = cancel_appointment(actor, pk, serializer.validated_data["reason"])
        if not result.success:
            return error_response(result.error)
        return Response(AppointmentSerializer(result.data).data)
