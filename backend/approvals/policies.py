"""
Decision policies for approval requests.

They return (bool, reason) tuples; commands compose them.
"""


def can_decide(actor, approval_request) -> tuple[bool, str]:
    if not approval_request.is_pending:
        return False, f"Request is already {approval_request.status}."
    if actor.is_admin:
        return True, ""
    if approval_request.approvers.filter(pk=actor.user.pk).exists():
        return True, ""
    return False, "You are not an approver for this request."


def can_cancel(actor, approval_request) -> tuple[bool, str]:
    if not approval_request.is_pending:
        return False, f"Request is already {approval_request.status}."
    if actor.is_admin or approval_request.submitted_by_id == actor.user.pk:
        return True, ""
    return False, "Only the submitter or an administrator can cancel this request."
