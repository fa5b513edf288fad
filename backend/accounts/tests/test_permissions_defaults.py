#accounts/tests/test_permissions_defaults.py

from django.core.management import call_command
from django.test import TestCase
from django.contrib.auth import get_user_model

from accounts.authz import ActorContext, build_actor
from accounts.models import Permission, Role
from accounts.permission_defaults import PERMISSION_DESCRIPTIONS, ROLE_DEFAULTS
from accounts.permissions import grant_role_defaults, seed_roles


User = get_user_model()


class TestPermissionDefaults(TestCase):
    def setUp(self):
        seed_roles()
        self.roles = {r.slug: r for r in Role.objects.all()}
        self.admin = User.objects.create_user(email="a@test.com", password="pass12345", role=self.roles["admin"])
        self.manager = User.objects.create_user(email="m@test.com", password="pass12345", role=self.roles["manager"])
        self.preparer = User.objects.create_user(email="p@test.com", password="pass12345", role=self.roles["preparer"])
        self.viewer = User.objects.create_user(email="v@test.com", password="pass12345", role=self.roles["viewer"])

    def test_every_role_is_seeded(self):
        self.assertEqual(set(self.roles), set(Role.Slug.values))

    def test_viewer_cannot_manage_clients(self):
        actor = build_actor(self.viewer)
        self.assertTrue(actor.has("clients.view"))
        self.assertFalse(actor.has("clients.manage"))
        self.assertFalse(actor.has("backups.view"))

    def test_preparer_can_transition_but_not_delete_cases(self):
        actor = build_actor(self.preparer)
        self.assertTrue(actor.has("cases.transition"))
        self.assertFalse(actor.has("cases.delete"))

    def test_manager_cannot_manage_backups(self):
        actor = build_actor(self.manager)
        self.assertTrue(actor.has("backups.view"))
        self.assertFalse(actor.has("backups.manage"))

    def test_admin_role_is_implicit_allow(self):
        """Admins pass even for codes their role was never granted."""
        self.roles["admin"].permissions.clear()
        actor = build_actor(self.admin)
        self.assertEqual(actor.perms, frozenset())
        self.assertTrue(actor.has("backups.manage"))

    def test_superuser_without_role_is_allowed(self):
        su = User.objects.create_superuser(email="su@test.com", password="pass12345")
        self.assertTrue(build_actor(su).has("approvals.manage"))

    def test_inactive_user_has_nothing(self):
        self.admin.is_active = False
        self.admin.save()
        self.assertFalse(build_actor(self.admin).has("clients.view"))

    def test_revocation_actually_blocks(self):
        perm = Permission.objects.get(code="clients.manage")
        self.roles["preparer"].permissions.remove(perm)

        actor = build_actor(self.preparer)
        self.assertFalse(actor.has("clients.manage"))

    def test_user_without_role_has_no_permissions(self):
        user = User.objects.create_user(email="n@test.com", password="pass12345")
        actor = build_actor(user)
        self.assertIsNone(actor.role)
        self.assertFalse(actor.has("clients.view"))

    def test_actor_context_is_immutable(self):
        actor = ActorContext(user=self.viewer, role=None, perms=frozenset())
        with self.assertRaises(Exception):
            actor.perms = frozenset({"clients.manage"})


class TestGrantRoleDefaults(TestCase):
    def test_grant_is_idempotent(self):
        role = Role.objects.create(slug=Role.Slug.RECEPTIONIST, name="Receptionist")
        first = grant_role_defaults(role)
        second = grant_role_defaults(role)

        self.assertEqual(first, len(ROLE_DEFAULTS["receptionist"]))
        self.assertEqual(second, 0)

    def test_overwrite_resets_to_defaults(self):
        role = Role.objects.create(slug=Role.Slug.VIEWER, name="Viewer")
        extra = Permission.objects.create(code="backups.manage", module="backups")
        role.permissions.add(extra)

        grant_role_defaults(role, overwrite=True)

        codes = set(role.permissions.values_list("code", flat=True))
        self.assertEqual(codes, ROLE_DEFAULTS["viewer"])

    def test_seed_permissions_command(self):
        call_command("seed_permissions", verbosity=0)
        codes = set(Permission.objects.values_list("code", flat=True))
        self.assertEqual(codes, set(PERMISSION_DESCRIPTIONS))
        self.assertEqual(Role.objects.count(), len(Role.Slug.values))
