# tests/conftest.py
"""
Pytest fixtures for TaxDesk tests.

- Roles are seeded from accounts.permission_defaults
- One user (and ActorContext) per built-in role
- APIClients are force-authenticated, so tests skip the login round trip
- Media and backup storage point at a per-test temporary directory
"""

import datetime
import logging

import pytest
from cryptography.fernet import Fernet
from django.core.cache import cache
from django.utils import timezone
from rest_framework.test import APIClient

from accounts.authz import build_actor
from accounts.models import Department, Role, User
from accounts.permissions import seed_roles
from cases.models import TaxCase
from clients.models import Contact, Corporation


@pytest.fixture(autouse=True)
def _clear_cache():
    """Throttle counters live in the cache; start every test with a clean slate."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture(autouse=True)
def _storage(settings, tmp_path):
    """Keep uploads and backups out of the working tree."""
    settings.MEDIA_ROOT = tmp_path / "media"
    settings.BACKUP_ROOT = tmp_path / "media" / "backups"
    settings.MEDIA_ROOT.mkdir(parents=True, exist_ok=True)


@pytest.fixture
def app_logs(caplog):
    """Capture INFO records from the app loggers, which do not propagate to the root logger."""
    loggers = [logging.getLogger(name) for name in ("audit", "approvals", "portal")]
    for app_logger in loggers:
        app_logger.addHandler(caplog.handler)
        caplog.set_level(logging.INFO, logger=app_logger.name)
    yield caplog
    for app_logger in loggers:
        app_logger.removeHandler(caplog.handler)


@pytest.fixture
def fernet_key(settings):
    """Configure a fresh FIELD_ENCRYPTION_KEY for the test."""
    key = Fernet.generate_key().decode()
    settings.FIELD_ENCRYPTION_KEY = key
    return key


# =============================================================================
# Roles & Users
# =============================================================================

@pytest.fixture
def roles(db):
    """Seed every built-in role with its default permissions."""
    seed_roles()
    return {role.slug: role for role in Role.objects.all()}


def _make_user(email, role, **extra):
    return User.objects.create_user(
        email=email,
        password="testpass123",
        first_name=email.split("@")[0].title(),
        last_name="Tester",
        role=role,
        **extra,
    )


@pytest.fixture
def department(db):
    return Department.objects.create(name="Individual Tax", code="individual-tax")


@pytest.fixture
def admin_user(roles):
    return _make_user("admin@taxdesk.test", roles["admin"])


@pytest.fixture
def manager_user(roles):
    return _make_user("manager@taxdesk.test", roles["manager"])


@pytest.fixture
def preparer_user(roles):
    return _make_user("preparer@taxdesk.test", roles["preparer"])


@pytest.fixture
def receptionist_user(roles):
    return _make_user("receptionist@taxdesk.test", roles["receptionist"])


@pytest.fixture
def viewer_user(roles):
    return _make_user("viewer@taxdesk.test", roles["viewer"])


@pytest.fixture
def admin_actor(admin_user):
    return build_actor(admin_user)


@pytest.fixture
def manager_actor(manager_user):
    return build_actor(manager_user)


@pytest.fixture
def preparer_actor(preparer_user):
    return build_actor(preparer_user)


@pytest.fixture
def receptionist_actor(receptionist_user):
    return build_actor(receptionist_user)


@pytest.fixture
def viewer_actor(viewer_user):
    return build_actor(viewer_user)


# =============================================================================
# API Clients
# =============================================================================

def _client_for(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client


@pytest.fixture
def anon_api():
    return APIClient()


@pytest.fixture
def admin_api(admin_user):
    return _client_for(admin_user)


@pytest.fixture
def manager_api(manager_user):
    return _client_for(manager_user)


@pytest.fixture
def preparer_api(preparer_user):
    return _client_for(preparer_user)


@pytest.fixture
def viewer_api(viewer_user):
    return _client_for(viewer_user)


# =============================================================================
# Client Records
# =============================================================================

@pytest.fixture
def corporation(admin_user):
    """A parent corporation."""
    return Corporation.objects.create(
        name="Acme Holdings",
        entity_type=Corporation.EntityType.C_CORP,
        email="office@acme.test",
        created_by=admin_user,
    )


@pytest.fixture
def subsidiary(corporation, admin_user):
    """A subsidiary of `corporation`."""
    return Corporation.objects.create(
        name="Acme Retail",
        entity_type=Corporation.EntityType.LLC,
        member_of=corporation,
        created_by=admin_user,
    )


@pytest.fixture
def contact(corporation, admin_user):
    """A contact whose primary corporation is `corporation`."""
    contact = Contact.objects.create(
        first_name="Ada",
        last_name="Lovelace",
        email="ada@acme.test",
        primary_corporation=corporation,
        created_by=admin_user,
    )
    contact.corporations.add(corporation)
    return contact


@pytest.fixture
def tax_case(contact, corporation, preparer_user, admin_user):
    """A new 1120 case for `contact` at `corporation`."""
    return TaxCase.objects.create(
        title="2025 corporate return",
        case_type=TaxCase.CaseType.CORPORATE_1120,
        fiscal_year=2025,
        contact=contact,
        corporation=corporation,
        assigned_preparer=preparer_user,
        created_by=admin_user,
        due_date=timezone.localdate() + datetime.timedelta(days=30),
    )
