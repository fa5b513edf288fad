"""
On-save approval trigger.

Connected in ApprovalsConfig.ready() to every model in the module registry.
Saves made while approval actions write back are skipped, as are fixture
loads and soft-deleted rows.
"""
import logging

from core.context import approval_triggers_active, get_current_user

from .engine import open_requests_for
from .models import Approval
from .registry import module_registry

logger = logging.getLogger(__name__)


def evaluate_on_save(sender, instance, created, raw=False, **kwargs):
    if raw or not approval_triggers_active():
        return
    if getattr(instance, "is_deleted", False):
        return
    open_requests_for(instance, Approval.TriggerType.ON_SAVE, submitted_by=get_current_user())


def connect_signals():
    from django.db.models.signals import post_save

    for module in module_registry.all():
        post_save.connect(
            evaluate_on_save,
            sender=module.model,
            dispatch_uid=f"approvals.on_save.{module.slug}",
        )
