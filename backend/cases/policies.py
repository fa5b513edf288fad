"""
Business policy functions for tax cases.

Workflow rules (status transitions, edit locks) are enforced HERE,
not in model.save(). Policies return (bool, reason) tuples.
"""

from core.exceptions import PolicyViolation

from .models import TaxCase


def can_edit_case(case) -> tuple[bool, str]:
    if case.is_locked:
        return False, f"Case is {case.get_status_display().lower()} and can no longer be edited."
    return True, ""


def can_transition(case, new_status: str) -> tuple[bool, str]:
    if new_status not in TaxCase.Status.values:
        return False, f"Unknown status '{new_status}'."
    if new_status == case.status:
        return False, f"Case is already {case.get_status_display().lower()}."
    allowed = TaxCase.VALID_TRANSITIONS.get(case.status, [])
    if new_status not in allowed:
        if not allowed:
            return False, f"Case is {case.get_status_display().lower()}; no further transitions are allowed."
        return False, (
            f"Cannot move a case from '{case.status}' to '{new_status}'. "
            f"Allowed: {', '.join(str(s) for s in allowed)}."
        )
    return True, ""


def can_delete_case(case) -> tuple[bool, str]:
    if case.status in TaxCase.LOCKED_STATUSES:
        return False, "Filed, completed or closed cases cannot be deleted."
    return True, ""


def assert_can_transition(case, new_status: str) -> None:
    allowed, reason = can_transition(case, new_status)
    if not allowed:
        raise PolicyViolation(reason)
