# tests/test_appointments.py
"""
Tests for appointment scheduling.

Covers:
- Slot validation (end after start) and staff double-booking
- Cancelled / no-show appointments free the slot
- Reschedule resets the status; closed appointments are frozen
- Calendar range endpoint
"""

import datetime

import pytest
from django.core.exceptions import PermissionDenied

from appointments.commands import (
    cancel_appointment,
    reschedule_appointment,
    schedule_appointment,
    update_appointment,
    update_appointment_status,
)
from appointments.models import Appointment

UTC = datetime.timezone.utc
MORNING = datetime.datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


def _at(hours, minutes=0):
    return MORNING + datetime.timedelta(hours=hours, minutes=minutes)


@pytest.fixture
def booking(receptionist_actor, contact, preparer_user):
    """9:00-10:00 with the preparer."""
    return schedule_appointment(
        receptionist_actor, "Intake", contact.pk, _at(0), _at(1), assigned_to_id=preparer_user.pk
    ).data


@pytest.mark.django_db
class TestScheduling:
    def test_schedule(self, booking, preparer_user):
        assert booking.pk
        assert booking.status == Appointment.Status.SCHEDULED
        assert booking.assigned_to == preparer_user

    def test_end_must_follow_start(self, receptionist_actor, contact):
        result = schedule_appointment(receptionist_actor, "Backwards", contact.pk, _at(1), _at(1))
        assert result.error == "End time must be after the start time."

    def test_overlap_with_same_staff_member(self, receptionist_actor, contact, preparer_user, booking):
        result = schedule_appointment(
            receptionist_actor, "Clash", contact.pk, _at(0, 30), _at(1, 30), assigned_to_id=preparer_user.pk
        )
        assert result.error == "Overlaps with 'Intake' at 2026-03-02 09:00."

    def test_back_to_back_is_fine(self, receptionist_actor, contact, preparer_user, booking):
        result = schedule_appointment(
            receptionist_actor, "Next", contact.pk, _at(1), _at(2), assigned_to_id=preparer_user.pk
        )
        assert result.success

    def test_other_staff_member_is_free(self, receptionist_actor, contact, manager_user, booking):
        result = schedule_appointment(
            receptionist_actor, "Parallel", contact.pk, _at(0), _at(1), assigned_to_id=manager_user.pk
        )
        assert result.success

    def test_unassigned_never_clashes(self, receptionist_actor, contact, booking):
        assert schedule_appointment(receptionist_actor, "Walk-in", contact.pk, _at(0), _at(1)).success

    @pytest.mark.parametrize("closing", ["cancel", "no_show"])
    def test_closed_appointment_frees_the_slot(self, closing, receptionist_actor, contact, preparer_user, booking):
        if closing == "cancel":
            cancel_appointment(receptionist_actor, booking.pk, "Client sick")
        else:
            update_appointment_status(receptionist_actor, booking.pk, Appointment.Status.NO_SHOW)

        result = schedule_appointment(
            receptionist_actor, "Rebooked", contact.pk, _at(0), _at(1), assigned_to_id=preparer_user.pk
        )
        assert result.success

    def test_unknown_field(self, receptionist_actor, contact):
        result = schedule_appointment(receptionist_actor, "x", contact.pk, _at(0), _at(1), status="confirmed")
        assert result.error == "Unknown field(s): status."

    def test_viewer_cannot_schedule(self, viewer_actor, contact):
        with pytest.raises(PermissionDenied):
            schedule_appointment(viewer_actor, "x", contact.pk, _at(0), _at(1))


@pytest.mark.django_db
class TestChanges:
    def test_reschedule_resets_status(self, receptionist_actor, booking):
        update_appointment_status(receptionist_actor, booking.pk, Appointment.Status.CONFIRMED)

        result = reschedule_appointment(receptionist_actor, booking.pk, _at(3), _at(4))
        assert result.success
        assert result.data.status == Appointment.Status.SCHEDULED
        assert result.data.start_datetime == _at(3)

    def test_reschedule_onto_itself_is_not_a_clash(self, receptionist_actor, booking):
        assert reschedule_appointment(receptionist_actor, booking.pk, _at(0, 15), _at(1)).success

    def test_reschedule_into_a_taken_slot(self, receptionist_actor, contact, preparer_user, booking):
        other = schedule_appointment(
            receptionist_actor, "Later", contact.pk, _at(2), _at(3), assigned_to_id=preparer_user.pk
        ).data
        result = reschedule_appointment(receptionist_actor, other.pk, _at(0, 30), _at(1, 30))
        assert result.error.startswith("Overlaps with 'Intake'")

    def test_reassigning_checks_the_new_calendar(
        self, receptionist_actor, contact, manager_user, preparer_user, booking
    ):
        schedule_appointment(receptionist_actor, "Busy", contact.pk, _at(0), _at(1), assigned_to_id=manager_user.pk)
        result = update_appointment(receptionist_actor, booking.pk, assigned_to_id=manager_user.pk)
        assert result.error.startswith("Overlaps with 'Busy'")

    @pytest.mark.parametrize("status", ["completed", "no_show"])
    def test_closed_appointment_cannot_change(self, status, receptionist_actor, booking):
        update_appointment_status(receptionist_actor, booking.pk, status)

        result = reschedule_appointment(receptionist_actor, booking.pk, _at(3), _at(4))
        assert "cannot be changed" in result.error
        assert not cancel_appointment(receptionist_actor, booking.pk).success

    def test_cancel_keeps_reason(self, receptionist_actor, booking):
        appointment = cancel_appointment(receptionist_actor, booking.pk, "Client moved away").data
        assert appointment.status == Appointment.Status.CANCELLED
        assert appointment.cancellation_reason == "Client moved away"

    def test_status_endpoint_refuses_cancel(self, receptionist_actor, booking):
        result = update_appointment_status(receptionist_actor, booking.pk, Appointment.Status.CANCELLED)
        assert result.error.startswith("Use the cancel endpoint")


@pytest.mark.django_db
class TestAppointmentsAPI:
    def test_create(self, preparer_api, contact, preparer_user):
        response = preparer_api.post("/api/v1/appointments/", {
            "title": "Review meeting",
            "contact_id": contact.pk,
            "start_datetime": "2026-03-02T14:00:00Z",
            "end_datetime": "2026-03-02T15:00:00Z",
            "location": "virtual",
            "assigned_to_id": preparer_user.pk,
        }, format="json")

        assert response.status_code == 201
        assert response.data["location"] == "virtual"
        assert response.data["contact"]["id"] == contact.pk

    def test_create_rejects_reversed_times(self, preparer_api, contact):
        response = preparer_api.post("/api/v1/appointments/", {
            "title": "Backwards",
            "contact_id": contact.pk,
            "start_datetime": "2026-03-02T15:00:00Z",
            "end_datetime": "2026-03-02T14:00:00Z",
        }, format="json")
        assert response.status_code == 400
        assert "end_datetime" in response.data["error"]["fields"]

    def test_calendar(self, preparer_api, booking, receptionist_actor, contact):
        schedule_appointment(
            receptionist_actor, "Next week", contact.pk,
            _at(24 * 7), _at(24 * 7 + 1),
        )

        response = preparer_api.get("/api/v1/appointments/calendar/?start_date=2026-03-01&end_date=2026-03-03")
        assert response.status_code == 200
        assert [a["title"] for a in response.data] == ["Intake"]

    @pytest.mark.parametrize("query", [
        "",
        "?start_date=2026-03-05&end_date=2026-03-01",
        "?start_date=2026-01-01&end_date=2026-12-31",
    ])
    def test_calendar_bad_ranges(self, preparer_api, query):
        assert preparer_api.get(f"/api/v1/appointments/calendar/{query}").status_code == 400

    def test_reschedule_and_cancel_endpoints(self, preparer_api, booking):
        moved = preparer_api.post(f"/api/v1/appointments/{booking.pk}/reschedule/", {
            "start_datetime": "2026-03-02T11:00:00Z",
            "end_datetime": "2026-03-02T12:00:00Z",
        }, format="json")
        assert moved.status_code == 200

        cancelled = preparer_api.post(f"/api/v1/appointments/{booking.pk}/cancel/", {"reason": "x"}, format="json")
        assert cancelled.data["status"] == "cancelled"

        again = preparer_api.post(f"/api/v1/appointments/{booking.pk}/cancel/", {}, format="json")
        assert again.status_code == 400

    def test_viewer_can_list_but_not_cancel(self, viewer_api, booking):
        assert viewer_api.get("/api/v1/appointments/").data["count"] == 1
        assert viewer_api.post(f"/api/v1/appointments/{booking.pk}/cancel/", {}, format="json").status_code == 403
