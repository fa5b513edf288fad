# accounts/permission_defaults.py

PERMISSION_DESCRIPTIONS = {
    "clients.view": "View contacts and corporations",
    "clients.manage": "Create and edit contacts and corporations",
    "clients.delete": "Delete contacts and corporations",
    "clients.export": "Export contacts to CSV",
    "cases.view": "View tax cases",
    "cases.manage": "Create and edit tax cases",
    "cases.transition": "Move tax cases between statuses",
    "cases.delete": "Delete tax cases",
    "tasks.view": "View tasks",
    "tasks.manage": "Create and update tasks",
    "documents.view": "View documents and folders",
    "documents.manage": "Upload documents and create folders",
    "documents.delete": "Delete documents",
    "appointments.view": "View appointments",
    "appointments.manage": "Schedule, reschedule and cancel appointments",
    "portal.manage": "Grant portal access and message clients",
    "approvals.view": "View approval definitions and requests",
    "approvals.manage": "Create and edit approval definitions",
    "approvals.submit": "Submit records for approval",
    "backups.view": "View backups and workload",
    "backups.manage": "Create, restore, upload and delete backups",
}

_VIEW_ALL = {
    "clients.view",
    "cases.view",
    "tasks.view",
    "documents.view",
    "appointments.view",
    "approvals.view",
}

ROLE_DEFAULTS = {
    "admin": set(PERMISSION_DESCRIPTIONS),
    "manager": set(PERMISSION_DESCRIPTIONS) - {"backups.manage"},
    "preparer": _VIEW_ALL | {
        "clients.manage",
        "clients.export",
        "cases.manage",
        "cases.transition",
        "tasks.manage",
        "documents.manage",
        "appointments.manage",
        "portal.manage",
        "approvals.submit",
    },
    "reviewer": _VIEW_ALL | {
        "cases.transition",
        "tasks.manage",
        "approvals.submit",
    },
    "receptionist": _VIEW_ALL | {
        "clients.manage",
        "appointments.manage",
        "tasks.manage",
    },
    "viewer": set(_VIEW_ALL),
}


def all_permission_codes() -> set[str]:
    codes: set[str] = set()
    for s in ROLE_DEFAULTS.values():
        codes |= set(s)
    return codes
