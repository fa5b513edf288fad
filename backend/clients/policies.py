"""
Business policy functions for client records.

Policies answer: "Is this action allowed given the current state?"
They return (bool, reason) tuples; commands compose them.

Usage:
    allowed, reason = can_set_parent(corporation, parent)
    if not allowed:
        return CommandResult.fail(reason)

    assert_can_delete_contact(contact)  # raises PolicyViolation
"""

from core.exceptions import PolicyViolation

from .models import creates_cycle

OPEN_CASE_EXCLUDED = ("completed", "closed")


def can_set_parent(corporation, parent) -> tuple[bool, str]:
    if parent is None:
        return True, ""
    if parent.is_deleted:
        return False, "Parent corporation has been deleted."
    if creates_cycle(corporation, parent):
        return False, "A corporation cannot be a member of itself or its subsidiaries."
    return True, ""


def can_delete_corporation(corporation) -> tuple[bool, str]:
    if corporation.subsidiaries.filter(deleted_at__isnull=True).exists():
        return False, "Corporation has active subsidiaries; reassign or delete them first."
    return True, ""


def can_delete_contact(contact) -> tuple[bool, str]:
    from cases.models import TaxCase

    open_cases = TaxCase.objects.filter(contact=contact).exclude(status__in=OPEN_CASE_EXCLUDED)
    if open_cases.exists():
        return False, "Contact has open tax cases; close them before deleting the contact."
    return True, ""


def can_link_related(corporation, other) -> tuple[bool, str]:
    if corporation.pk == other.pk:
        return False, "A corporation cannot be related to itself."
    return True, ""


def assert_can_delete_contact(contact) -> None:
    allowed, reason = can_delete_contact(contact)
    if not allowed:
        raise PolicyViolation(reason)


def assert_can_delete_corporation(corporation) -> None:
    allowed, reason = can_delete_corporation(corporation)
    if not allowed:
        raise PolicyViolation(reason)
