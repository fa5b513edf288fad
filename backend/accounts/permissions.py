# accounts/permissions.py
from __future__ import annotations

from django.db import transaction

from accounts.models import Permission, Role
from accounts.permission_defaults import PERMISSION_DESCRIPTIONS, ROLE_DEFAULTS, all_permission_codes


def _perm_defaults(code: str) -> dict:
    return {
        "name": code,
        "module": code.split(".")[0],
        "description": PERMISSION_DESCRIPTIONS.get(code, ""),
    }


@transaction.atomic
def ensure_permissions() -> tuple[int, int]:
    """Create or refresh a Permission row for every known code. Returns (created, updated)."""
    created = 0
    updated = 0
    for code in sorted(all_permission_codes()):
        _, was_created = Permission.objects.update_or_create(code=code, defaults=_perm_defaults(code))
        if was_created:
            created += 1
        else:
            updated += 1
    return created, updated


@transaction.atomic
def grant_role_defaults(role: Role, overwrite: bool = False) -> int:
    """
    Grant default permissions for role.slug.

    - Idempotent by default: only grants missing codes.
    - If overwrite=True: first removes existing permissions then grants defaults.
    Returns number of permissions newly granted.
    """
    default_codes = ROLE_DEFAULTS.get(role.slug, set())

    if overwrite:
        role.permissions.clear()

    existing = set(Permission.objects.filter(code__in=default_codes).values_list("code", flat=True))
    missing = [c for c in default_codes if c not in existing]
    if missing:
        Permission.objects.bulk_create(
            [Permission(code=c, **_perm_defaults(c)) for c in missing],
            ignore_conflicts=True,
        )

    already = set(role.permissions.values_list("code", flat=True))
    to_grant = list(Permission.objects.filter(code__in=default_codes).exclude(code__in=already))
    if not to_grant:
        return 0

    role.permissions.add(*to_grant)
    return len(to_grant)


@transaction.atomic
def seed_roles(overwrite: bool = False) -> dict[str, int]:
    """Create every built-in role and grant its defaults. Returns granted counts per slug."""
    granted = {}
    for slug, label in Role.Slug.choices:
        role, _ = Role.objects.get_or_create(slug=slug, defaults={"name": str(label)})
        granted[slug] = grant_role_defaults(role, overwrite=overwrite)
    return granted
