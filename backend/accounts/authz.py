"""
Authorization utilities for TaxDesk.

Provides:
- ActorContext: Immutable context for the current request
- resolve_actor: Extract actor context from request
- require: Check permissions and raise if not granted

Permissions are checked:
1. Superusers and the admin role: implicit allow
2. Every other role: explicit permission codes granted to the role
"""

from dataclasses import dataclass
from typing import FrozenSet, Optional

from django.core.exceptions import PermissionDenied
from rest_framework.exceptions import NotAuthenticated

from accounts.models import Permission, Role
from core.context import bind_user


@dataclass(frozen=True)
class ActorContext:
    """
    Immutable context for the current actor.

    This is passed to commands and policies to provide context
    about who is performing an action.

    Attributes:
        user: The authenticated user
        role: The user's role (may be None for users not yet assigned one)
        perms: Set of permission codes granted through the role
    """
    user: object  # User model
    role: Optional[Role]
    perms: FrozenSet[str]

    def has(self, code: str) -> bool:
        """
        Check if actor has a specific permission.

        Order of checks:
        1. inactive users: never
        2. superuser / admin role: implicit allow
        3. everyone else: only codes in perms
        """
        if not getattr(self.user, "is_active", False):
            return False
        if self.is_admin:
            return True
        return code in self.perms

    @property
    def is_authenticated(self) -> bool:
        """Mirror Django's user.is_authenticated for compatibility."""
        return bool(getattr(self.user, "is_authenticated", False))

    @property
    def is_admin(self) -> bool:
        if getattr(self.user, "is_superuser", False):
            return True
        return self.role is not None and self.role.slug == Role.Slug.ADMIN

    @property
    def role_slug(self) -> Optional[str]:
        return self.role.slug if self.role is not None else None


def build_actor(user) -> ActorContext:
    """Build an ActorContext for a user, loading permissions fresh from the database."""
    role = user.role if user.role_id else None
    if role is not None:
        perms = frozenset(
            Permission.objects.filter(roles=role).values_list("code", flat=True)
        )
    else:
        perms = frozenset()
    return ActorContext(user=user, role=role, perms=perms)


def resolve_actor(request) -> ActorContext:
    """
    Extract ActorContext from the current request.

    This is called at the start of every view that needs authorization.
    Permissions are loaded FRESH from the database, so role changes take
    effect immediately.

    Raises:
        NotAuthenticated: If user is not authenticated
    """
    user = getattr(request, "user", None)

    if not user or not user.is_authenticated:
        raise NotAuthenticated("Authentication required.")

    bind_user(user)
    return build_actor(user)


def require(actor: ActorContext, code: str) -> None:
    """
    Require that the actor has a specific permission.

    Raises:
        PermissionDenied: If permission is not granted

    Example:
        require(actor, "cases.manage")
        # If we get here, permission is granted
    """
    if not actor.has(code):
        raise PermissionDenied(f"Permission denied: {code}")


def require_any(actor: ActorContext, *codes: str) -> None:
    """
    Require that the actor has AT LEAST ONE of the specified permissions.

    Example:
        require_any(actor, "cases.view", "cases.manage")
    """
    for code in codes:
        if actor.has(code):
            return

    raise PermissionDenied(f"Permission denied: requires one of {', '.join(codes)}")


def check_permission(actor: ActorContext, code: str) -> bool:
    """Check if actor has a permission without raising."""
    return actor.has(code)


def resolve_actor_optional(request):
    """Try to resolve ActorContext, return None if not possible."""
    try:
        return resolve_actor(request)
    except (NotAuthenticated, PermissionDenied):
        return None
