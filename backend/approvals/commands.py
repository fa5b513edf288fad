"""
Command layer for approval definitions and requests.

Saving a definition replaces its rules and actions wholesale. Decisions
commit the terminal status first, then run the phase's actions; action
failures are recorded in ApprovalActionLog and never undo the decision.
"""

import logging

from django.db import transaction
from django.utils import timezone

from accounts.authz import ActorContext, require
from accounts.models import Role, User
from accounts.notifications import notify
from audit.models import AuditLog
from audit.services import record_audit
from core.commands import CommandResult

from .engine import open_requests_for, run_actions
from .models import Approval, ApprovalAction, ApprovalRequest, ApprovalRule
from .policies import can_cancel, can_decide
from .registry import get_record

logger = logging.getLogger(__name__)

APPROVAL_FIELDS = {
    "name", "module", "is_active", "description", "trigger",
    "entry_criteria_all", "entry_criteria_any", "apply_on",
}


# =============================================================================
# Definitions
# =============================================================================

def _replace_rules(approval, rules_data):
    approval.rules.all().delete()
    for rule_data in rules_data:
        rule_data = dict(rule_data)
        profile_ids = rule_data.pop("owner_profile_ids", [])
        approver_ids = rule_data.pop("approver_ids", [])
        rule = ApprovalRule.objects.create(approval=approval, **rule_data)
        if profile_ids:
            rule.owner_profiles.set(Role.objects.filter(pk__in=profile_ids))
        if approver_ids:
            rule.approvers.set(User.objects.filter(pk__in=approver_ids))


def _replace_actions(approval, actions_data):
    approval.actions.all().delete()
    for action_data in actions_data:
        ApprovalAction.objects.create(approval=approval, **action_data)


@transaction.atomic
def save_approval(actor: ActorContext, data: dict, approval_id: int = None) -> CommandResult:
    """
    Create (approval_id=None) or update an approval definition.

    data holds the definition fields plus optional "rules" and "actions"
    lists. A list that is present replaces the stored one; on update, an
    absent list leaves the stored one alone.
    """
    require(actor, "approvals.manage")

    data = dict(data)
    rules_data = data.pop("rules", None)
    actions_data = data.pop("actions", None)
    unknown = set(data) - APPROVAL_FIELDS
    if unknown:
        return CommandResult.fail(f"Unknown field(s): {', '.join(sorted(unknown))}.")

    if approval_id is None:
        approval = Approval.objects.create(created_by=actor.user, **data)
        action = AuditLog.Action.CREATE
    else:
        approval = Approval.objects.filter(pk=approval_id).first()
        if approval is None:
            return CommandResult.fail("Approval not found.")
        for field, value in data.items():
            setattr(approval, field, value)
        approval.save()
        action = AuditLog.Action.UPDATE

    if rules_data is not None:
        _replace_rules(approval, rules_data)
    if actions_data is not None:
        _replace_actions(approval, actions_data)

    record_audit(actor, action, approval, module="approvals")
    logger.info("Approval definition saved", extra={"approval_id": approval.pk, "approval_module": approval.module})
    return CommandResult.ok(approval)


@transaction.atomic
def delete_approval(actor: ActorContext, approval_id: int) -> CommandResult:
    """Delete a definition. Its pending requests are cancelled; decided ones keep their history."""
    require(actor, "approvals.manage")

    approval = Approval.objects.filter(pk=approval_id).first()
    if approval is None:
        return CommandResult.fail("Approval not found.")

    cancelled = approval.requests.filter(status=ApprovalRequest.Status.PENDING).update(
        status=ApprovalRequest.Status.CANCELLED,
        decided_by=actor.user,
        decided_at=timezone.now(),
        comment="Approval definition deleted.",
    )
    record_audit(actor, AuditLog.Action.DELETE, approval, module="approvals")
    approval.delete()

    logger.info("Approval definition deleted", extra={"approval_id": approval_id, "cancelled": cancelled})
    return CommandResult.ok({"id": approval_id, "cancelled_requests": cancelled})


# =============================================================================
# Requests
# =============================================================================

@transaction.atomic
def submit_for_approval(actor: ActorContext, module: str, object_id) -> CommandResult:
    """Run the via_process approvals of a module against one record."""
    require(actor, "approvals.submit")

    record = get_record(module, object_id)
    if record is None:
        return CommandResult.fail("Record not found.")

    opened = open_requests_for(record, Approval.TriggerType.VIA_PROCESS, submitted_by=actor.user)
    if not opened:
        pending = ApprovalRequest.objects.filter(
            module=module, object_id=str(record.pk), status=ApprovalRequest.Status.PENDING
        ).exists()
        if pending:
            return CommandResult.fail("This record is already waiting for approval.")
        return CommandResult.fail("No approval process applies to this record.")
    return CommandResult.ok(opened)


def _lock_request(request_id):
    return ApprovalRequest.objects.select_for_update().filter(pk=request_id).first()


def _decide(actor: ActorContext, request_id: int, approve: bool, comment: str) -> CommandResult:
    approval_request = _lock_request(request_id)
    if approval_request is None:
        return CommandResult.fail("Approval request not found.")

    allowed, reason = can_decide(actor, approval_request)
    if not allowed:
        return CommandResult.fail(reason)

    approval_request.status = ApprovalRequest.Status.APPROVED if approve else ApprovalRequest.Status.REJECTED
    approval_request.decided_by = actor.user
    approval_request.decided_at = timezone.now()
    approval_request.comment = comment
    approval_request.save(update_fields=["status", "decided_by", "decided_at", "comment", "updated_at"])

    record = approval_request.get_record()
    if record is not None:
        record_audit(
            actor, AuditLog.Action.APPROVE if approve else AuditLog.Action.REJECT, record,
            changes={"approval": [approval_request.approval_name, approval_request.status]},
            module=approval_request.module,
        )

    phase = ApprovalAction.Phase.APPROVAL if approve else ApprovalAction.Phase.REJECTION
    run_actions(approval_request, phase)

    if approval_request.submitted_by_id and approval_request.submitted_by_id != actor.user.pk:
        notify(
            approval_request.submitted_by,
            title=f"{approval_request.approval_name}: {approval_request.get_status_display()}",
            message=comment or f"{approval_request.object_repr} was {approval_request.status}.",
            related=approval_request,
        )

    logger.info(
        "Approval request decided",
        extra={"request_id": approval_request.pk, "status": approval_request.status},
    )
    return CommandResult.ok(approval_request)


@transaction.atomic
def approve_request(actor: ActorContext, request_id: int, comment: str = "") -> CommandResult:
    return _decide(actor, request_id, True, comment)


@transaction.atomic
def reject_request(actor: ActorContext, request_id: int, comment: str = "") -> CommandResult:
    return _decide(actor, request_id, False, comment)


@transaction.atomic
def cancel_request(actor: ActorContext, request_id: int, comment: str = "") -> CommandResult:
    approval_request = _lock_request(request_id)
    if approval_request is None:
        return CommandResult.fail("Approval request not found.")

    allowed, reason = can_cancel(actor, approval_request)
    if not allowed:
        return CommandResult.fail(reason)

    approval_request.status = ApprovalRequest.Status.CANCELLED
    approval_request.decided_by = actor.user
    approval_request.decided_at = timezone.now()
    approval_request.comment = comment
    approval_request.save(update_fields=["status", "decided_by", "decided_at", "comment", "updated_at"])
    return CommandResult.ok(approval_request)
