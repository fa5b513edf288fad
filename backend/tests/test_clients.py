# tests/test_clients.py
"""
Tests for contacts and corporations.

Covers:
- Contact numbering (CON0001, never reused after soft delete)
- Corporation hierarchy: cycle prevention, subtree scope, delete policy
- Primary corporation and multi-corporation membership
- Soft delete hides rows from the default manager
- Audit entries and PII redaction
- The clients API, including the contact export
"""

import csv
import io

import pytest
from openpyxl import load_workbook

from audit.models import AuditLog
from cases.models import TaxCase
from clients.commands import (
    add_contact_corporation,
    create_contact,
    create_corporation,
    delete_contact,
    delete_corporation,
    link_related_corporation,
    remove_contact_corporation,
    set_primary_corporation,
    update_contact,
    update_corporation,
)
from clients.models import Contact, Corporation
from clients.policies import assert_can_delete_contact, assert_can_delete_corporation
from core.exceptions import PolicyViolation
from core.models import Sequence


# =============================================================================
# Corporations
# =============================================================================

@pytest.mark.django_db
class TestCorporationCommands:
    def test_create_with_parent_and_audit(self, preparer_actor, corporation):
        result = create_corporation(preparer_actor, "Acme Logistics", member_of_id=corporation.pk, city="Austin")

        assert result.success
        child = result.data
        assert child.member_of == corporation
        assert child.created_by == preparer_actor.user
        assert AuditLog.objects.filter(
            action=AuditLog.Action.CREATE, module="corporations", object_id=str(child.pk)
        ).exists()

    def test_create_rejects_blank_name_and_unknown_fields(self, preparer_actor):
        assert create_corporation(preparer_actor, "  ").error == "Corporation name is required."
        assert "Unknown field" in create_corporation(preparer_actor, "X", favourite_color="red").error

    def test_missing_parent(self, preparer_actor):
        assert create_corporation(preparer_actor, "Orphan", member_of_id=99999).error == "Parent corporation not found."

    def test_parent_cannot_become_member_of_its_subsidiary(self, preparer_actor, corporation, subsidiary):
        result = update_corporation(preparer_actor, corporation.pk, member_of_id=subsidiary.pk)
        assert not result.success
        assert "member of itself or its subsidiaries" in result.error

    def test_corporation_cannot_be_its_own_parent(self, preparer_actor, corporation):
        result = update_corporation(preparer_actor, corporation.pk, member_of_id=corporation.pk)
        assert not result.success

    def test_clear_parent(self, preparer_actor, subsidiary):
        result = update_corporation(preparer_actor, subsidiary.pk, member_of_id=None)
        assert result.success
        subsidiary.refresh_from_db()
        assert subsidiary.member_of is None

    def test_scope_covers_whole_subtree(self, corporation, subsidiary):
        grandchild = Corporation.objects.create(name="Acme Retail East", member_of=subsidiary)
        unrelated = Corporation.objects.create(name="Globex")

        assert corporation.scope_ids() == {corporation.pk, subsidiary.pk, grandchild.pk}
        assert unrelated.pk not in corporation.scope_ids()
        assert subsidiary.scope_ids() == {subsidiary.pk, grandchild.pk}

    def test_delete_refused_with_active_subsidiaries(self, manager_actor, corporation, subsidiary):
        result = delete_corporation(manager_actor, corporation.pk)
        assert not result.success
        assert "active subsidiaries" in result.error

    def test_delete_is_soft_and_clears_primary(self, manager_actor, subsidiary):
        contact = Contact.objects.create(first_name="Sam", last_name="Shop", primary_corporation=subsidiary)
        contact.corporations.add(subsidiary)

        result = delete_corporation(manager_actor, subsidiary.pk)

        assert result.success
        assert not Corporation.objects.filter(pk=subsidiary.pk).exists()
        assert Corporation.all_objects.get(pk=subsidiary.pk).is_deleted
        contact.refresh_from_db()
        assert contact.primary_corporation is None
        # the membership row stays; the related manager hides the deleted corporation
        assert Contact.corporations.through.objects.filter(contact=contact, corporation_id=subsidiary.pk).exists()
        assert not contact.corporations.filter(pk=subsidiary.pk).exists()

    def test_related_link_is_symmetrical(self, preparer_actor, corporation):
        other = Corporation.objects.create(name="Globex")

        assert link_related_corporation(preparer_actor, corporation.pk, other.pk).success
        assert other.related_corporations.filter(pk=corporation.pk).exists()

        assert link_related_corporation(preparer_actor, corporation.pk, other.pk, unlink=True).success
        assert not other.related_corporations.exists()

    def test_cannot_relate_to_itself(self, preparer_actor, corporation):
        assert not link_related_corporation(preparer_actor, corporation.pk, corporation.pk).success

    def test_ein_changes_are_redacted_in_audit(self, preparer_actor, corporation, fernet_key):
        update_corporation(preparer_actor, corporation.pk, ein="12-3456789")

        entry = AuditLog.objects.filter(module="corporations", action=AuditLog.Action.UPDATE).latest("timestamp")
        assert entry.changes["ein"] == ["***", "***"]


# =============================================================================
# Contacts
# =============================================================================

@pytest.mark.django_db
class TestContactCommands:
    def test_numbers_are_sequential(self, receptionist_actor):
        first = create_contact(receptionist_actor, "Grace", "Hopper").data
        second = create_contact(receptionist_actor, "Alan", "Turing").data
        assert first.contact_number == "CON0001"
        assert second.contact_number == "CON0002"

    def test_numbers_not_reused_after_soft_delete(self, manager_actor):
        first = create_contact(manager_actor, "Grace", "Hopper").data
        assert delete_contact(manager_actor, first.pk).success

        second = create_contact(manager_actor, "Alan", "Turing").data
        assert second.contact_number == "CON0002"

    def test_numbering_past_four_digits(self):
        Contact.objects.create(first_name="A", last_name="A", contact_number="CON9999")
        assert Contact.objects.create(first_name="B", last_name="B").contact_number == "CON10000"
        assert Contact.objects.create(first_name="C", last_name="C").contact_number == "CON10001"

    def test_numbers_come_from_the_locked_counter(self, receptionist_actor):
        first = create_contact(receptionist_actor, "Grace", "Hopper").data
        Contact.all_objects.filter(pk=first.pk).delete()

        second = create_contact(receptionist_actor, "Alan", "Turing").data
        assert second.contact_number == "CON0002"
        assert Sequence.objects.get(name="contact_number").next_value == 3

    def test_primary_is_added_to_memberships(self, preparer_actor, corporation, subsidiary):
        result = create_contact(
            preparer_actor, "Ada", "Byron",
            corporation_ids=[subsidiary.pk], primary_corporation_id=corporation.pk,
        )
        contact = result.data
        assert contact.primary_corporation == corporation
        assert set(contact.corporations.values_list("pk", flat=True)) == {corporation.pk, subsidiary.pk}

    def test_unknown_corporation(self, preparer_actor):
        result = create_contact(preparer_actor, "Ada", "Byron", corporation_ids=[424242])
        assert result.error == "One or more corporations were not found."

    def test_add_first_corporation_becomes_primary(self, preparer_actor, corporation):
        contact = Contact.objects.create(first_name="New", last_name="Client")
        add_contact_corporation(preparer_actor, contact.pk, corporation.pk)
        contact.refresh_from_db()
        assert contact.primary_corporation == corporation

    def test_make_primary(self, preparer_actor, contact, subsidiary):
        add_contact_corporation(preparer_actor, contact.pk, subsidiary.pk, make_primary=True)
        contact.refresh_from_db()
        assert contact.primary_corporation == subsidiary

    def test_removing_primary_clears_it(self, preparer_actor, contact, corporation):
        assert remove_contact_corporation(preparer_actor, contact.pk, corporation.pk).success
        contact.refresh_from_db()
        assert contact.primary_corporation is None
        assert not contact.corporations.exists()

    def test_remove_unlinked(self, preparer_actor, contact, subsidiary):
        result = remove_contact_corporation(preparer_actor, contact.pk, subsidiary.pk)
        assert result.error == "Contact is not linked to this corporation."

    def test_set_primary_links_and_clears(self, preparer_actor, contact, subsidiary):
        set_primary_corporation(preparer_actor, contact.pk, subsidiary.pk)
        contact.refresh_from_db()
        assert contact.primary_corporation == subsidiary
        assert contact.corporations.filter(pk=subsidiary.pk).exists()

        set_primary_corporation(preparer_actor, contact.pk, None)
        contact.refresh_from_db()
        assert contact.primary_corporation is None

    def test_update_with_bad_primary_rolls_back(self, preparer_actor, contact):
        result = update_contact(preparer_actor, contact.pk, city="Boston", primary_corporation_id=99999)
        assert not result.success
        contact.refresh_from_db()
        assert contact.city == ""

    def test_ssn_is_redacted_in_audit(self, preparer_actor, contact, fernet_key):
        update_contact(preparer_actor, contact.pk, ssn_last_four="6789")
        entry = AuditLog.objects.filter(module="contacts", action=AuditLog.Action.UPDATE).latest("timestamp")
        assert entry.changes["ssn_last_four"] == ["***", "***"]

    def test_delete_refused_with_open_case(self, manager_actor, tax_case):
        result = delete_contact(manager_actor, tax_case.contact_id)
        assert not result.success
        assert "open tax cases" in result.error

    def test_delete_allowed_once_cases_closed(self, manager_actor, tax_case):
        TaxCase.objects.filter(pk=tax_case.pk).update(status=TaxCase.Status.CLOSED)
        assert delete_contact(manager_actor, tax_case.contact_id).success
        assert not Contact.objects.filter(pk=tax_case.contact_id).exists()

    def test_preparer_cannot_delete(self, preparer_actor, contact):
        from django.core.exceptions import PermissionDenied

        with pytest.raises(PermissionDenied):
            delete_contact(preparer_actor, contact.pk)


# =============================================================================
# API
# =============================================================================

@pytest.mark.django_db
class TestClientsAPI:
    def test_create_and_list_contacts(self, preparer_api, corporation):
        response = preparer_api.post("/api/v1/contacts/", {
            "first_name": "Katherine",
            "last_name": "Johnson",
            "email": "kj@example.test",
            "primary_corporation_id": corporation.pk,
        }, format="json")

        assert response.status_code == 201
        assert response.data["contact_number"] == "CON0001"
        assert response.data["primary_corporation"]["id"] == corporation.pk

        listing = preparer_api.get("/api/v1/contacts/?search=johnson")
        assert listing.data["count"] == 1

    def test_filter_by_corporation(self, viewer_api, contact, subsidiary):
        Contact.objects.create(first_name="Other", last_name="Person")

        response = viewer_api.get(f"/api/v1/contacts/?corporation={contact.primary_corporation_id}")
        assert [c["id"] for c in response.data["results"]] == [contact.pk]

    def test_deleted_contacts_are_hidden(self, viewer_api, contact):
        contact.soft_delete()
        assert viewer_api.get(f"/api/v1/contacts/{contact.pk}/").status_code == 404
        assert viewer_api.get("/api/v1/contacts/").data["count"] == 0

    def test_invalid_ssn_is_rejected(self, preparer_api):
        response = preparer_api.post(
            "/api/v1/contacts/", {"first_name": "A", "last_name": "B", "ssn_last_four": "12a4"}, format="json"
        )
        assert response.status_code == 400
        assert "ssn_last_four" in response.data["error"]["fields"]

    def test_corporation_detail_masks_ein(self, viewer_api, corporation, fernet_key):
        corporation.ein = "12-3456789"
        corporation.save()

        response = viewer_api.get(f"/api/v1/corporations/{corporation.pk}/")
        assert response.data["ein_masked"] == "**-***6789"
        assert "ein" not in response.data

    def test_corporation_lists_live_subsidiaries(self, viewer_api, corporation, subsidiary):
        response = viewer_api.get(f"/api/v1/corporations/{corporation.pk}/")
        assert [s["id"] for s in response.data["subsidiaries"]] == [subsidiary.pk]

        subsidiary.soft_delete()
        response = viewer_api.get(f"/api/v1/corporations/{corporation.pk}/")
        assert response.data["subsidiaries"] == []

    def test_patch_cycle_is_a_400(self, preparer_api, corporation, subsidiary):
        response = preparer_api.patch(
            f"/api/v1/corporations/{corporation.pk}/", {"member_of_id": subsidiary.pk}, format="json"
        )
        assert response.status_code == 400

    def test_link_contact_corporation(self, preparer_api, contact, subsidiary):
        response = preparer_api.post(
            f"/api/v1/contacts/{contact.pk}/corporations/",
            {"corporation_id": subsidiary.pk, "make_primary": True},
            format="json",
        )
        assert response.status_code == 200
        assert response.data["primary_corporation"]["id"] == subsidiary.pk

    def test_viewer_cannot_export(self, viewer_api):
        assert viewer_api.get("/api/v1/contacts/export/").status_code == 403

    def test_export_csv(self, preparer_api, contact):
        response = preparer_api.get("/api/v1/contacts/export/?export_format=csv")

        assert response.status_code == 200
        assert response["Content-Disposition"] == 'attachment; filename="contacts.csv"'
        rows = list(csv.reader(io.StringIO(response.content.decode("utf-8-sig"))))
        assert rows[0][0] == "Contact #"
        assert rows[1][0] == contact.contact_number
        assert "Acme Holdings" in rows[1]

    def test_export_xlsx(self, preparer_api, contact):
        response = preparer_api.get("/api/v1/contacts/export/?export_format=xlsx")

        assert response.status_code == 200
        sheet = load_workbook(io.BytesIO(response.content)).active
        assert sheet.cell(row=3, column=1).value == "Contact #"
        values = [cell.value for cell in sheet[4]]
        assert contact.contact_number in values

    def test_export_unknown_format(self, preparer_api):
        response = preparer_api.get("/api/v1/contacts/export/?export_format=pdf")
        assert response.status_code == 400


@pytest.mark.django_db
class TestAssertPolicies:
    def test_contact_with_open_case(self, tax_case):
        with pytest.raises(PolicyViolation, match="open tax cases"):
            assert_can_delete_contact(tax_case.contact)

    def test_corporation_with_subsidiary(self, corporation, subsidiary):
        with pytest.raises(PolicyViolation, match="active subsidiaries"):
            assert_can_delete_corporation(corporation)
        assert_can_delete_corporation(subsidiary)
