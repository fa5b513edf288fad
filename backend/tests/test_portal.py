# tests/test_portal.py
"""
Tests for the client portal.

Covers:
- Granting/revoking access and the welcome email
- Portal login, token realm separation from staff tokens, refresh
- Clients see only their own cases and messages
- Client <-> staff messaging and notifications
"""

import jwt
import pytest
from django.core.exceptions import PermissionDenied
from rest_framework.test import APIClient

from accounts.models import Notification
from cases.models import TaxCase
from clients.models import Contact
from portal.commands import (
    authenticate_portal_user,
    grant_portal_access,
    revoke_portal_access,
    send_client_message,
    send_staff_message,
)
from portal.models import PortalMessage
from portal.tokens import REFRESH, create_portal_tokens, decode_portal_token

PASSWORD = "portal-pass-123"


@pytest.fixture
def portal_access(preparer_actor, contact):
    return grant_portal_access(preparer_actor, contact.pk, password=PASSWORD, send_welcome=False).data["access"]


@pytest.fixture
def portal_api(portal_access):
    client = APIClient()
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {create_portal_tokens(portal_access)['access']}")
    return client


@pytest.fixture
def other_contact(db):
    return Contact.objects.create(first_name="Grace", last_name="Hopper", email="grace@navy.test")


# =============================================================================
# Access Management
# =============================================================================

@pytest.mark.django_db
class TestAccessManagement:
    def test_grant_generates_password_and_emails(
        self, preparer_actor, contact, mailoutbox, django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks(execute=True):
            result = grant_portal_access(preparer_actor, contact.pk)

        assert result.success
        temporary = result.data["temporary_password"]
        assert temporary
        assert result.data["access"].email == "ada@acme.test"
        assert authenticate_portal_user("ada@acme.test", temporary).success

        assert len(mailoutbox) == 1
        assert mailoutbox[0].to == ["ada@acme.test"]

    def test_regrant_reactivates_same_account(self, preparer_actor, contact, portal_access):
        revoke_portal_access(preparer_actor, contact.pk)
        result = grant_portal_access(preparer_actor, contact.pk, password="another-pass-1", send_welcome=False)

        assert result.data["access"].pk == portal_access.pk
        assert result.data["access"].is_active
        assert result.data["temporary_password"] is None

    def test_grant_is_logged(self, app_logs, preparer_actor, contact):
        grant_portal_access(preparer_actor, contact.pk, password=PASSWORD, send_welcome=False)

        record = next(r for r in app_logs.records if r.getMessage() == "Portal access granted")
        assert record.contact_id == contact.pk
        assert record.was_created is True

    def test_email_must_be_unique_across_contacts(self, preparer_actor, portal_access, other_contact):
        result = grant_portal_access(preparer_actor, other_contact.pk, email="ADA@acme.test", send_welcome=False)
        assert result.error == "This email is already used by another portal account."

    def test_contact_without_email(self, preparer_actor, admin_user):
        contact = Contact.objects.create(first_name="No", last_name="Mail")
        assert "email address is required" in grant_portal_access(preparer_actor, contact.pk).error

    def test_receptionist_cannot_grant(self, receptionist_actor, contact):
        with pytest.raises(PermissionDenied):
            grant_portal_access(receptionist_actor, contact.pk)

    def test_revoked_user_cannot_log_in(self, preparer_actor, contact, portal_access):
        revoke_portal_access(preparer_actor, contact.pk)
        assert authenticate_portal_user(portal_access.email, PASSWORD).error == "Invalid credentials."

    def test_revoke_without_access(self, preparer_actor, other_contact):
        assert revoke_portal_access(preparer_actor, other_contact.pk).error == "Contact has no portal access."


# =============================================================================
# Tokens
# =============================================================================

@pytest.mark.django_db
class TestPortalTokens:
    def test_claims(self, portal_access):
        payload = decode_portal_token(create_portal_tokens(portal_access)["access"])
        assert payload["realm"] == "portal"
        assert payload["contact_id"] == portal_access.contact_id

    def test_refresh_is_not_an_access_token(self, portal_access):
        refresh = create_portal_tokens(portal_access)["refresh"]
        with pytest.raises(jwt.InvalidTokenError):
            decode_portal_token(refresh)
        assert decode_portal_token(refresh, expected_type=REFRESH)["token_type"] == "refresh"

    def test_staff_token_is_rejected_by_portal(self, anon_api, admin_user):
        staff = anon_api.post(
            "/api/v1/auth/login/", {"email": admin_user.email, "password": "testpass123"}, format="json"
        ).data["access"]

        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {staff}")
        assert client.get("/api/v1/portal/me/").status_code == 403

    def test_portal_token_is_rejected_by_staff_api(self, portal_access):
        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {create_portal_tokens(portal_access)['access']}")
        assert client.get("/api/v1/cases/").status_code == 401

    def test_token_of_revoked_account(self, preparer_actor, contact, portal_api):
        revoke_portal_access(preparer_actor, contact.pk)
        assert portal_api.get("/api/v1/portal/me/").status_code == 403


# =============================================================================
# Portal API
# =============================================================================

@pytest.mark.django_db
class TestPortalAPI:
    def test_login_and_refresh(self, anon_api, portal_access):
        response = anon_api.post(
            "/api/v1/portal/auth/login/", {"email": portal_access.email, "password": PASSWORD}, format="json"
        )
        assert response.status_code == 200
        assert response.data["contact"]["id"] == portal_access.contact_id

        refreshed = anon_api.post("/api/v1/portal/auth/refresh/", {"refresh": response.data["refresh"]}, format="json")
        assert refreshed.status_code == 200
        assert decode_portal_token(refreshed.data["access"])["portal_access_id"] == portal_access.pk

    def test_bad_login(self, anon_api, portal_access):
        response = anon_api.post(
            "/api/v1/portal/auth/login/", {"email": portal_access.email, "password": "nope-nope"}, format="json"
        )
        assert response.status_code == 401

    def test_login_is_throttled_per_email(self, anon_api, portal_access):
        for _ in range(10):
            anon_api.post("/api/v1/portal/auth/login/", {"email": portal_access.email, "password": "x"}, format="json")

        blocked = anon_api.post(
            "/api/v1/portal/auth/login/", {"email": portal_access.email, "password": PASSWORD}, format="json"
        )
        assert blocked.status_code == 429

        other = anon_api.post("/api/v1/portal/auth/login/", {"email": "someone@else.test", "password": "x"}, format="json")
        assert other.status_code == 401

    def test_refresh_rejects_access_token(self, anon_api, portal_access):
        access_token = create_portal_tokens(portal_access)["access"]
        response = anon_api.post("/api/v1/portal/auth/refresh/", {"refresh": access_token}, format="json")
        assert response.status_code == 401

    def test_me(self, portal_api, contact):
        response = portal_api.get("/api/v1/portal/me/")
        assert response.status_code == 200
        assert response.data["contact"]["contact_number"] == contact.contact_number

    def test_only_own_cases(self, portal_api, tax_case, other_contact):
        TaxCase.objects.create(title="Not yours", case_type="other", fiscal_year=2025, contact=other_contact)

        response = portal_api.get("/api/v1/portal/cases/")
        assert response.data["count"] == 1
        assert response.data["results"][0]["case_number"] == tax_case.case_number
        assert "estimated_fee" not in response.data["results"][0]

    def test_message_to_staff_notifies_admins(self, portal_api, admin_user, tax_case):
        response = portal_api.post(
            "/api/v1/portal/messages/", {"subject": "W-2", "body": "Uploaded it", "case_id": tax_case.pk},
            format="json",
        )
        assert response.status_code == 201
        assert response.data["message_type"] == "client"

        notification = Notification.objects.get(recipient=admin_user)
        assert notification.title == "New message from Ada Lovelace"

    def test_message_goes_to_assigned_staff(self, portal_api, contact, preparer_user, admin_user):
        Contact.objects.filter(pk=contact.pk).update(assigned_to=preparer_user)

        portal_api.post("/api/v1/portal/messages/", {"subject": "Hi", "body": "Question"}, format="json")

        assert Notification.objects.filter(recipient=preparer_user).count() == 1
        assert not Notification.objects.filter(recipient=admin_user).exists()

    def test_cannot_attach_foreign_case(self, portal_api, other_contact):
        case = TaxCase.objects.create(title="x", case_type="other", fiscal_year=2025, contact=other_contact)
        response = portal_api.post(
            "/api/v1/portal/messages/", {"subject": "s", "body": "b", "case_id": case.pk}, format="json"
        )
        assert response.status_code == 400

    def test_thread_and_read(self, portal_api, portal_access, other_contact):
        own = PortalMessage.objects.create(
            contact=portal_access.contact, message_type="staff", subject="Docs", body="Please send"
        )
        foreign = PortalMessage.objects.create(
            contact=other_contact, message_type="staff", subject="Private", body="..."
        )

        listing = portal_api.get("/api/v1/portal/messages/")
        assert [m["id"] for m in listing.data["results"]] == [own.pk]

        assert portal_api.post(f"/api/v1/portal/messages/{own.pk}/read/").data["is_read"] is True
        assert portal_api.post(f"/api/v1/portal/messages/{foreign.pk}/read/").status_code == 404


# =============================================================================
# Staff Side
# =============================================================================

@pytest.mark.django_db
class TestStaffSide:
    def test_reply_marks_client_message_read(self, preparer_actor, portal_access):
        question = send_client_message(portal_access, "Question", "When is my return due?").data

        reply = send_staff_message(
            preparer_actor, portal_access.contact_id, "Re: Question", "April 15", parent_message_id=question.pk
        )
        assert reply.success
        assert reply.data.sender_user == preparer_actor.user

        question.refresh_from_db()
        assert question.is_read

    def test_admin_grant_endpoint_returns_temporary_password(self, preparer_api, other_contact):
        response = preparer_api.post(
            "/api/v1/portal-admin/access/", {"contact_id": other_contact.pk, "send_welcome": False}, format="json"
        )
        assert response.status_code == 201
        assert response.data["temporary_password"]
        assert response.data["email"] == "grace@navy.test"

    def test_admin_grant_endpoint_with_password(self, preparer_api, other_contact):
        response = preparer_api.post(
            "/api/v1/portal-admin/access/",
            {"contact_id": other_contact.pk, "password": "chosen-pass-1", "send_welcome": False},
            format="json",
        )
        assert "temporary_password" not in response.data

    def test_staff_thread_endpoints(self, preparer_api, portal_access):
        url = f"/api/v1/portal-admin/contacts/{portal_access.contact_id}/messages/"
        assert preparer_api.post(url, {"subject": "Hello", "body": "Welcome"}, format="json").status_code == 201
        assert preparer_api.get(url).data["count"] == 1

    def test_viewer_cannot_see_portal_admin(self, viewer_api):
        assert viewer_api.get("/api/v1/portal-admin/access/").status_code == 403

    def test_revoke_endpoint(self, preparer_api, portal_access):
        response = preparer_api.post(f"/api/v1/portal-admin/contacts/{portal_access.contact_id}/revoke/")
        assert response.status_code == 200
        assert response.data["is_active"] is False
