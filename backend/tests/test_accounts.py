# tests/test_accounts.py
"""
Tests for staff authentication and notifications.

Covers:
- Login with email/password, refresh, logout (blacklist) and /auth/me/
- Login throttling
- Notification listing and read state
- resolve_actor / require helpers
"""

import pytest
from django.core.exceptions import PermissionDenied
from rest_framework.exceptions import NotAuthenticated
from rest_framework.test import APIClient, APIRequestFactory

from accounts.authz import check_permission, require, require_any, resolve_actor, resolve_actor_optional
from accounts.models import Notification
from accounts.notifications import notify


LOGIN_URL = "/api/v1/auth/login/"


def _login(client, email, password="testpass123"):
    return client.post(LOGIN_URL, {"email": email, "password": password}, format="json")


@pytest.mark.django_db
class TestLogin:
    def test_login_returns_token_pair_and_profile(self, anon_api, preparer_user):
        response = _login(anon_api, preparer_user.email)

        assert response.status_code == 200
        assert response.data["access"] and response.data["refresh"]
        user = response.data["user"]
        assert user["email"] == preparer_user.email
        assert user["role"] == "preparer"
        assert "cases.transition" in user["permissions"]
        assert user["is_admin"] is False

    def test_wrong_password(self, anon_api, preparer_user):
        response = _login(anon_api, preparer_user.email, password="wrong")
        assert response.status_code == 401
        assert response.data["error"]["detail"] == "Invalid credentials"
        assert response["WWW-Authenticate"] == 'Bearer realm="api"'

    def test_stale_bearer_token_does_not_block_login(self, preparer_user):
        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION="Bearer not-a-real-token")
        assert _login(client, preparer_user.email).status_code == 200
        assert _login(client, preparer_user.email, password="wrong").status_code == 401

    def test_inactive_user_cannot_log_in(self, anon_api, preparer_user):
        preparer_user.is_active = False
        preparer_user.save()
        assert _login(anon_api, preparer_user.email).status_code == 401

    def test_access_token_authenticates_me(self, anon_api, admin_user):
        tokens = _login(anon_api, admin_user.email).data

        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {tokens['access']}")
        response = client.get("/api/v1/auth/me/")

        assert response.status_code == 200
        assert response.data["email"] == admin_user.email
        assert response.data["is_admin"] is True

    def test_refresh_then_logout_blacklists(self, anon_api, admin_user):
        tokens = _login(anon_api, admin_user.email).data

        refreshed = anon_api.post("/api/v1/auth/refresh/", {"refresh": tokens["refresh"]}, format="json")
        assert refreshed.status_code == 200
        assert refreshed.data["access"]

        refresh = refreshed.data.get("refresh", tokens["refresh"])
        assert anon_api.post("/api/v1/auth/logout/", {"refresh": refresh}, format="json").status_code == 204

        again = anon_api.post("/api/v1/auth/refresh/", {"refresh": refresh}, format="json")
        assert again.status_code == 401

    def test_logout_needs_a_token(self, anon_api):
        response = anon_api.post("/api/v1/auth/logout/", {}, format="json")
        assert response.status_code == 400
        assert response.data["error"]["detail"] == "Refresh token required"

    def test_logout_rejects_garbage(self, anon_api):
        response = anon_api.post("/api/v1/auth/logout/", {"refresh": "not-a-token"}, format="json")
        assert response.status_code == 400

    def test_login_is_throttled(self, anon_api, preparer_user):
        for _ in range(10):
            _login(anon_api, preparer_user.email, password="wrong")
        response = _login(anon_api, preparer_user.email, password="wrong")
        assert response.status_code == 429
        assert response.data["error"]["code"] == "throttled"


@pytest.mark.django_db
class TestNotifications:
    def test_list_only_own_with_unread_count(self, preparer_api, preparer_user, viewer_user):
        notify(preparer_user, "First")
        read = notify(preparer_user, "Second")
        read.mark_read()
        notify(viewer_user, "Not mine")

        response = preparer_api.get("/api/v1/notifications/")
        assert response.status_code == 200
        assert response.data["count"] == 2
        assert response.data["unread_count"] == 1

        unread = preparer_api.get("/api/v1/notifications/?unread=true")
        assert [n["title"] for n in unread.data["results"]] == ["First"]

    def test_mark_read(self, preparer_api, preparer_user):
        notification = notify(preparer_user, "Ping")

        response = preparer_api.post(f"/api/v1/notifications/{notification.pk}/read/")
        assert response.status_code == 200
        assert response.data["is_read"] is True

        notification.refresh_from_db()
        assert notification.read_at is not None

    def test_cannot_read_someone_elses(self, preparer_api, viewer_user):
        notification = notify(viewer_user, "Private")
        response = preparer_api.post(f"/api/v1/notifications/{notification.pk}/read/")
        assert response.status_code == 404

    def test_read_all(self, preparer_api, preparer_user):
        notify(preparer_user, "A")
        notify(preparer_user, "B")

        response = preparer_api.post("/api/v1/notifications/read-all/")
        assert response.data == {"updated": 2}
        assert not Notification.objects.filter(recipient=preparer_user, is_read=False).exists()

    def test_notify_links_related_record(self, preparer_user, contact):
        notification = notify(preparer_user, "Linked", related=contact)
        assert notification.related_object == contact


@pytest.mark.django_db
class TestAuthzHelpers:
    def _request(self, user=None):
        request = APIRequestFactory().get("/")
        request.user = user
        return request

    def test_resolve_actor_requires_authentication(self):
        from django.contrib.auth.models import AnonymousUser

        with pytest.raises(NotAuthenticated):
            resolve_actor(self._request(AnonymousUser()))
        assert resolve_actor_optional(self._request(AnonymousUser())) is None

    def test_resolve_actor_loads_role_permissions(self, receptionist_user):
        actor = resolve_actor(self._request(receptionist_user))
        assert actor.role_slug == "receptionist"
        assert actor.has("appointments.manage")
        assert not actor.has("cases.manage")

    def test_require(self, viewer_actor):
        require(viewer_actor, "cases.view")
        with pytest.raises(PermissionDenied):
            require(viewer_actor, "cases.manage")

    def test_require_any(self, viewer_actor):
        require_any(viewer_actor, "cases.manage", "cases.view")
        with pytest.raises(PermissionDenied):
            require_any(viewer_actor, "cases.manage", "cases.delete")

    def test_check_permission_does_not_raise(self, viewer_actor, admin_actor):
        assert check_permission(viewer_actor, "cases.view")
        assert not check_permission(viewer_actor, "backups.manage")
        assert check_permission(admin_actor, "backups.manage")
