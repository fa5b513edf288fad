"""
Approval runtime.

open_requests_for() is called by the on-save signal and by the submit
endpoint. It scans the active approvals of the record's module for the
given trigger, checks the entry criteria, picks the first matching rule and
opens one pending request per (approval, record).

run_actions() executes the active actions of one phase after a decision.
Every action gets an ApprovalActionLog row; a failing action is logged and
the remaining actions still run.
"""
import logging

from django.db import IntegrityError, transaction

from accounts.notifications import notify
from core.context import approval_triggers_suppressed

from .actions import HANDLERS, ActionError
from .conditions import all_match, matches_entry_criteria
from .models import Approval, ApprovalActionLog, ApprovalRequest
from .registry import module_registry

logger = logging.getLogger(__name__)


def select_rule(approval: Approval, record):
    """
    First rule (by rule_number, then creation order) whose conditions all
    hold and whose owner profiles, if any, include the record owner's role.
    """
    module = module_registry.get(approval.module)
    owner = module.owner(record, approval.apply_on) if module else None
    owner_role_id = getattr(owner, "role_id", None)

    for rule in approval.rules.order_by("rule_number", "created_at", "id").prefetch_related("owner_profiles"):
        if not all_match(record, rule.conditions):
            continue
        profile_ids = {role.pk for role in rule.owner_profiles.all()}
        if profile_ids and owner_role_id not in profile_ids:
            continue
        return rule
    return None


def rule_approvers(rule, excluded=()):
    """
    Active users listed on the rule. Owner profiles only select the rule; they
    never add approvers. Users in excluded (record owner, submitter) are left out.
    """
    excluded_ids = {user.pk for user in excluded if user is not None}
    return list(rule.approvers.filter(is_active=True).exclude(pk__in=excluded_ids).order_by("id"))


def open_request(approval: Approval, rule, record, module: str, submitted_by=None):
    """Open a pending request unless one is already pending for this approval and record."""
    object_id = str(record.pk)
    existing = ApprovalRequest.objects.filter(
        approval=approval, module=module, object_id=object_id, status=ApprovalRequest.Status.PENDING
    ).first()
    if existing is not None:
        return existing, False

    try:
        with transaction.atomic():
            approval_request = ApprovalRequest.objects.create(
                approval=approval,
                rule=rule,
                approval_name=approval.name,
                module=module,
                object_id=object_id,
                object_repr=str(record)[:255],
                submitted_by=submitted_by,
            )
    except IntegrityError:
        # Lost a race with a concurrent save of the same record
        existing = ApprovalRequest.objects.get(
            approval=approval, module=module, object_id=object_id, status=ApprovalRequest.Status.PENDING
        )
        return existing, False

    registered = module_registry.get(module)
    owner = registered.owner(record, approval.apply_on) if registered else None
    approvers = rule_approvers(rule, excluded=(owner, submitted_by))
    approval_request.approvers.set(approvers)
    for approver in approvers:
        notify(
            approver,
            title=f"Approval needed: {approval.name}",
            message=f"{approval_request.object_repr} is waiting for your decision.",
            action_url=f"/approvals/requests/{approval_request.pk}",
            related=approval_request,
        )

    logger.info(
        "Approval request opened",
        extra={"request_id": approval_request.pk, "approval_id": approval.pk, "rule_id": rule.pk},
    )
    return approval_request, True


def open_requests_for(record, trigger: str, submitted_by=None) -> list:
    """Evaluate every active approval of the record's module for trigger. Returns the requests opened."""
    module = module_registry.slug_for_model(type(record))
    if module is None:
        return []

    opened = []
    approvals = Approval.objects.filter(module=module, trigger=trigger, is_active=True).order_by("created_at", "id")
    for approval in approvals:
        if not matches_entry_criteria(approval, record):
            continue
        rule = select_rule(approval, record)
        if rule is None:
            logger.info(
                "Approval criteria met but no rule matched",
                extra={"approval_id": approval.pk, "object_id": record.pk},
            )
            continue
        approval_request, created = open_request(approval, rule, record, module, submitted_by=submitted_by)
        if created:
            opened.append(approval_request)
    return opened


def run_actions(approval_request: ApprovalRequest, phase: str) -> list:
    """Run the active actions of phase in creation order and log each outcome."""
    if approval_request.approval_id is None:
        return []
    record = approval_request.get_record()
    actions = approval_request.approval.actions.filter(phase=phase, is_active=True).order_by("created_at", "id")

    logs = []
    for action in actions:
        handler = HANDLERS.get(action.action_type)
        try:
            if handler is None:
                raise ActionError(f"Unsupported action type '{action.action_type}'.")
            if record is None:
                raise ActionError("The record no longer exists.")
            # Savepoint so a failing action leaves the decision and earlier actions intact
            with transaction.atomic(), approval_triggers_suppressed():
                detail = handler(action, approval_request, record)
            result = ApprovalActionLog.Result.SUCCESS
        except ActionError as e:
            detail = str(e)
            result = ApprovalActionLog.Result.ERROR
        except Exception as e:
            logger.exception("Approval action crashed", extra={"action_id": action.pk})
            detail = f"{type(e).__name__}: {e}"
            result = ApprovalActionLog.Result.ERROR

        if result == ApprovalActionLog.Result.ERROR:
            logger.warning(
                "Approval action failed",
                extra={"action_id": action.pk, "request_id": approval_request.pk, "detail": detail},
            )
        logs.append(ApprovalActionLog.objects.create(
            request=approval_request,
            action=action,
            action_type=action.action_type,
            action_title=action.action_title,
            result=result,
            detail=detail[:2000],
        ))
    return logs
