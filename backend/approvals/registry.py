"""
Registry of modules that approvals can target.

Maps a module slug to its model and to the attributes naming the record's
creator and assignee. Models are resolved lazily through the app registry.

Usage:
    model = module_registry.model("cases")
    record = get_record("cases", 42)
    owner = module_registry.get("cases").owner(record, "assigned_to")
"""
from dataclasses import dataclass
from typing import Dict, List, Optional

from django.apps import apps
from django.utils.module_loading import import_string


@dataclass(frozen=True)
class ModuleSpec:
    slug: str
    model_label: str
    created_by_attr: str = "created_by"
    assigned_to_attr: str = "assigned_to"
    # dotted path to a (record, new_status) -> (bool, reason) policy guarding `status`
    transition_policy: Optional[str] = None

    @property
    def model(self):
        return apps.get_model(self.model_label)

    def owner(self, record, apply_on: str):
        """The user the approval applies to: the record's creator or assignee."""
        attr = self.created_by_attr if apply_on == "created_by" else self.assigned_to_attr
        return getattr(record, attr, None)

    def check_transition(self, record, new_status) -> tuple:
        if not self.transition_policy:
            return True, ""
        return import_string(self.transition_policy)(record, new_status)


class ModuleRegistry:
    def __init__(self):
        self._modules: Dict[str, ModuleSpec] = {}

    def register(self, spec: ModuleSpec) -> None:
        self._modules[spec.slug] = spec

    def get(self, slug: str) -> Optional[ModuleSpec]:
        return self._modules.get(slug)

    def all(self) -> List[ModuleSpec]:
        return list(self._modules.values())

    def model(self, slug: str):
        spec = self.get(slug)
        return spec.model if spec else None

    def slug_for_model(self, model) -> Optional[str]:
        label = model._meta.label
        for spec in self._modules.values():
            if spec.model_label == label:
                return spec.slug
        return None


module_registry = ModuleRegistry()

module_registry.register(ModuleSpec("cases", "cases.TaxCase", transition_policy="cases.policies.can_transition"))
module_registry.register(ModuleSpec("contacts", "clients.Contact"))
module_registry.register(ModuleSpec("corporations", "clients.Corporation"))
module_registry.register(ModuleSpec("tasks", "cases.Task"))
module_registry.register(ModuleSpec("documents", "documents.Document", assigned_to_attr="uploaded_by"))
module_registry.register(ModuleSpec("appointments", "appointments.Appointment"))


def get_record(module: str, object_id):
    """Load a live record of a module, or None."""
    model = module_registry.model(module)
    if model is None:
        return None
    return model._default_manager.filter(pk=object_id).first()
