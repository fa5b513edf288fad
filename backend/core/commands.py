"""
Command result shared by every app's command layer.

Commands are the single point where business operations happen.
Views call commands; commands enforce rules and write the audit trail.

Pattern:
1. Validate permissions (require)
2. Apply business policies (can_*)
3. Perform the operation (model changes)
4. Record the audit entry (record_audit)
5. Return CommandResult
"""


class CommandResult:
    """
    Wrapper for command results with success/failure info.

    Usage:
        result = create_contact(actor, first_name="Ada", ...)
        if result.success:
            contact = result.data
        else:
            error_message = result.error
    """

    def __init__(self, success: bool, data=None, error: str = None):
        self.success = success
        self.data = data
        self.error = error

    @classmethod
    def ok(cls, data=None):
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str):
        return cls(success=False, error=error)

    def __bool__(self):
        return self.success

    def __repr__(self):
        if self.success:
            return f"CommandResult.ok({self.data!r})"
        return f"CommandResult.fail({self.error!r})"
