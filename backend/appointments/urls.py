from django.urls import path

from .views import (
    AppointmentCalendarView,
    AppointmentCancelView,
    AppointmentDetailView,
    AppointmentListCreateView,
    AppointmentRescheduleView,
    AppointmentStatusView,
)

app_name = "appointments"

urlpatterns = [
    path("", AppointmentListCreateView.as_view(), name="appointment-list"),
    path("calendar/", AppointmentCalendarView.as_view(), name="appointment-calendar"),
    path("<int:pk>/", AppointmentDetailView.as_view(), name="appointment-detail"),
    path("<int:pk>/reschedule/", AppointmentRescheduleView.as_view(), name="appointment-reschedule"),
    path("<int:pk>/status/", AppointmentStatusView.as_view(), name="appointment-status"),
    path("<int:pk>/cancel/", AppointmentCancelView.as_view(), name="appointment-cancel"),
]
