# tests/test_cases.py
"""
Tests for tax cases and tasks.

Covers:
- Case numbering (TC-<year>-<seq>)
- The status workflow: allowed moves, date stamping, terminal states
- Edit and delete locks on filed/completed/closed cases
- Notes, tasks and task status
- The cases API
"""

import pytest
from django.core.exceptions import PermissionDenied
from django.utils import timezone

from audit.models import AuditLog
from cases.commands import (
    add_case_note,
    create_case,
    create_task,
    delete_case,
    transition_case,
    update_case,
    update_task,
    update_task_status,
)
from cases.models import Task, TaxCase, TaxCaseNote, next_case_number
from cases.policies import assert_can_transition
from core.exceptions import PolicyViolation

S = TaxCase.Status


def _walk(actor, case, *statuses):
    for new_status in statuses:
        result = transition_case(actor, case.pk, new_status)
        assert result.success, result.error
    case.refresh_from_db()
    return case


@pytest.mark.django_db
class TestCaseNumbering:
    def test_first_number_of_the_year(self, preparer_actor, contact):
        result = create_case(preparer_actor, "1040", TaxCase.CaseType.INDIVIDUAL_1040, 2025, contact.pk)
        assert result.data.case_number == f"TC-{timezone.now().year}-0001"

    def test_sequence_is_per_year_and_skips_deleted(self, contact):
        TaxCase.objects.create(
            title="old", case_type="other", fiscal_year=2023, contact=contact, case_number="TC-2023-0007"
        )
        deleted = TaxCase.objects.create(
            title="gone", case_type="other", fiscal_year=2024, contact=contact, case_number="TC-2024-0003"
        )
        deleted.soft_delete()

        assert next_case_number(2023) == "TC-2023-0008"
        assert next_case_number(2024) == "TC-2024-0004"
        assert next_case_number(2030) == "TC-2030-0001"

    def test_numbers_survive_hard_delete(self, contact):
        year = timezone.now().year
        first = TaxCase.objects.create(title="a", case_type="other", fiscal_year=year, contact=contact)
        TaxCase.all_objects.filter(pk=first.pk).delete()

        second = TaxCase.objects.create(title="b", case_type="other", fiscal_year=year, contact=contact)
        assert first.case_number == f"TC-{year}-0001"
        assert second.case_number == f"TC-{year}-0002"


@pytest.mark.django_db
class TestCaseCommands:
    def test_create_audits(self, preparer_actor, contact, corporation):
        result = create_case(
            preparer_actor, "Corporate", TaxCase.CaseType.CORPORATE_1120, 2025, contact.pk,
            corporation_id=corporation.pk, estimated_fee="1500.00",
        )
        assert result.success
        assert result.data.status == S.NEW
        assert AuditLog.objects.filter(module="cases", action=AuditLog.Action.CREATE).count() == 1

    def test_create_requires_known_contact(self, preparer_actor):
        result = create_case(preparer_actor, "x", TaxCase.CaseType.OTHER, 2025, 424242)
        assert result.error == "Contact not found."

    def test_viewer_cannot_create(self, viewer_actor, contact):
        with pytest.raises(PermissionDenied):
            create_case(viewer_actor, "x", TaxCase.CaseType.OTHER, 2025, contact.pk)

    def test_update_cannot_change_status(self, preparer_actor, tax_case):
        result = update_case(preparer_actor, tax_case.pk, status=S.FILED)
        assert result.error == "Use the transition endpoint to change a case status."

    def test_update_records_changes(self, preparer_actor, tax_case):
        assert update_case(preparer_actor, tax_case.pk, title="Renamed").success
        entry = AuditLog.objects.get(module="cases", action=AuditLog.Action.UPDATE)
        assert entry.changes["title"] == ["2025 corporate return", "Renamed"]


@pytest.mark.django_db
class TestWorkflow:
    def test_happy_path_stamps_dates(self, preparer_actor, manager_actor, tax_case):
        case = _walk(preparer_actor, tax_case, S.IN_PROGRESS, S.UNDER_REVIEW, S.READY_TO_FILE, S.FILED)
        assert case.filed_date == timezone.localdate()
        assert case.is_locked

        case = _walk(manager_actor, case, S.COMPLETED, S.CLOSED)
        assert case.completed_date == timezone.localdate()
        assert case.closed_date == timezone.localdate()
        assert case.allowed_transitions() == []

    def test_cannot_skip_steps(self, preparer_actor, tax_case):
        result = transition_case(preparer_actor, tax_case.pk, S.FILED)
        assert not result.success
        assert "Allowed: in_progress, waiting_for_documents" in result.error
        tax_case.refresh_from_db()
        assert tax_case.status == S.NEW

    def test_same_status_is_rejected(self, preparer_actor, tax_case):
        assert not transition_case(preparer_actor, tax_case.pk, S.NEW).success

    def test_unknown_status(self, preparer_actor, tax_case):
        assert transition_case(preparer_actor, tax_case.pk, "archived").error == "Unknown status 'archived'."

    def test_closed_is_terminal(self, preparer_actor, tax_case):
        TaxCase.objects.filter(pk=tax_case.pk).update(status=S.CLOSED)
        result = transition_case(preparer_actor, tax_case.pk, S.COMPLETED)
        assert "no further transitions" in result.error

    def test_filed_can_go_back_to_review(self, preparer_actor, tax_case):
        TaxCase.objects.filter(pk=tax_case.pk).update(status=S.FILED)
        assert transition_case(preparer_actor, tax_case.pk, S.UNDER_REVIEW).success

    def test_existing_dates_are_kept(self, preparer_actor, tax_case):
        earlier = timezone.localdate().replace(day=1)
        TaxCase.objects.filter(pk=tax_case.pk).update(status=S.READY_TO_FILE, filed_date=earlier)
        case = _walk(preparer_actor, tax_case, S.FILED)
        assert case.filed_date == earlier

    def test_transition_note_is_internal(self, preparer_actor, tax_case):
        transition_case(preparer_actor, tax_case.pk, S.WAITING_FOR_DOCUMENTS, note="Asked for W-2s")
        note = TaxCaseNote.objects.get(case=tax_case)
        assert note.content == "Asked for W-2s"
        assert note.is_internal
        assert note.author == preparer_actor.user

    def test_transition_audit_has_status_pair(self, preparer_actor, tax_case):
        transition_case(preparer_actor, tax_case.pk, S.IN_PROGRESS)
        entry = AuditLog.objects.get(module="cases", action=AuditLog.Action.UPDATE)
        assert entry.changes == {"status": ["new", "in_progress"]}

    def test_receptionist_cannot_transition(self, receptionist_actor, tax_case):
        with pytest.raises(PermissionDenied):
            transition_case(receptionist_actor, tax_case.pk, S.IN_PROGRESS)


@pytest.mark.django_db
class TestLocks:
    @pytest.mark.parametrize("status", [S.FILED, S.COMPLETED, S.CLOSED])
    def test_locked_cases_reject_edits_and_deletes(self, status, preparer_actor, manager_actor, tax_case):
        TaxCase.objects.filter(pk=tax_case.pk).update(status=status)

        assert "can no longer be edited" in update_case(preparer_actor, tax_case.pk, title="x").error
        assert not delete_case(manager_actor, tax_case.pk).success

    def test_notes_allowed_on_locked_case(self, preparer_actor, tax_case):
        TaxCase.objects.filter(pk=tax_case.pk).update(status=S.CLOSED)
        assert add_case_note(preparer_actor, tax_case.pk, "Post-filing call", is_internal=False).success

    def test_blank_note(self, preparer_actor, tax_case):
        assert add_case_note(preparer_actor, tax_case.pk, "   ").error == "Note content is required."

    def test_delete_open_case_is_soft(self, manager_actor, tax_case):
        assert delete_case(manager_actor, tax_case.pk).success
        assert not TaxCase.objects.filter(pk=tax_case.pk).exists()
        assert TaxCase.all_objects.filter(pk=tax_case.pk).exists()


@pytest.mark.django_db
class TestTasks:
    def test_task_on_case_inherits_contact(self, receptionist_actor, tax_case):
        result = create_task(receptionist_actor, "Collect 1099s", case_id=tax_case.pk, priority=Task.Priority.HIGH)
        assert result.data.contact == tax_case.contact
        assert result.data.status == Task.Status.TODO

    def test_done_stamps_completion(self, receptionist_actor, tax_case):
        task = create_task(receptionist_actor, "Call client", case_id=tax_case.pk).data

        task = update_task_status(receptionist_actor, task.pk, Task.Status.DONE).data
        assert task.completed_at is not None

        task = update_task_status(receptionist_actor, task.pk, Task.Status.IN_PROGRESS).data
        assert task.completed_at is None

    def test_unknown_status(self, receptionist_actor):
        task = create_task(receptionist_actor, "Standalone").data
        assert update_task_status(receptionist_actor, task.pk, "blocked").error == "Unknown task status 'blocked'."

    def test_update_rejects_unknown_fields(self, receptionist_actor):
        task = create_task(receptionist_actor, "Standalone").data
        assert "Unknown field" in update_task(receptionist_actor, task.pk, case_id=1).error

    def test_viewer_cannot_create(self, viewer_actor):
        with pytest.raises(PermissionDenied):
            create_task(viewer_actor, "Nope")


@pytest.mark.django_db
class TestCasesAPI:
    def test_create_and_filter(self, preparer_api, contact):
        response = preparer_api.post("/api/v1/cases/", {
            "title": "Personal return",
            "case_type": "individual_1040",
            "fiscal_year": 2025,
            "contact_id": contact.pk,
        }, format="json")

        assert response.status_code == 201
        assert response.data["allowed_transitions"] == ["in_progress", "waiting_for_documents"]
        assert response.data["contact"]["contact_number"] == contact.contact_number

        assert preparer_api.get("/api/v1/cases/?fiscal_year=2025&status=new").data["count"] == 1
        assert preparer_api.get("/api/v1/cases/?status=filed").data["count"] == 0

    def test_mine(self, preparer_api, tax_case, contact):
        TaxCase.objects.create(title="Other", case_type="other", fiscal_year=2025, contact=contact)
        response = preparer_api.get("/api/v1/cases/?mine=true")
        assert [c["id"] for c in response.data["results"]] == [tax_case.pk]

    def test_transition_endpoint(self, preparer_api, tax_case):
        response = preparer_api.post(
            f"/api/v1/cases/{tax_case.pk}/transition/", {"status": "in_progress", "note": "Started"}, format="json"
        )
        assert response.status_code == 200
        assert response.data["status"] == "in_progress"

        bad = preparer_api.post(f"/api/v1/cases/{tax_case.pk}/transition/", {"status": "closed"}, format="json")
        assert bad.status_code == 400
        assert "Cannot move a case" in bad.data["error"]["detail"]

    def test_notes_endpoint(self, preparer_api, tax_case):
        created = preparer_api.post(
            f"/api/v1/cases/{tax_case.pk}/notes/", {"content": "Reviewed K-1s"}, format="json"
        )
        assert created.status_code == 201

        listing = preparer_api.get(f"/api/v1/cases/{tax_case.pk}/notes/")
        assert [n["content"] for n in listing.data] == ["Reviewed K-1s"]

    def test_viewer_cannot_delete(self, viewer_api, tax_case):
        assert viewer_api.delete(f"/api/v1/cases/{tax_case.pk}/").status_code == 403

    def test_task_endpoints(self, preparer_api, tax_case):
        created = preparer_api.post(
            "/api/v1/tasks/", {"title": "Sign 8879", "case_id": tax_case.pk}, format="json"
        )
        assert created.status_code == 201
        task_id = created.data["id"]

        done = preparer_api.post(f"/api/v1/tasks/{task_id}/status/", {"status": "done"}, format="json")
        assert done.status_code == 200
        assert done.data["status"] == "done"

        assert preparer_api.get(f"/api/v1/tasks/?case={tax_case.pk}&status=done").data["count"] == 1


class TestAssertPolicies:
    def test_assert_can_transition(self):
        case = TaxCase(status=TaxCase.Status.CLOSED)
        with pytest.raises(PolicyViolation, match="no further transitions"):
            assert_can_transition(case, TaxCase.Status.IN_PROGRESS)

        assert_can_transition(TaxCase(status=TaxCase.Status.NEW), TaxCase.Status.IN_PROGRESS)
