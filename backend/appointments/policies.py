"""
Scheduling policies.

They return (bool, reason) tuples; commands compose them.
"""


def can_occupy_slot(appointment) -> tuple[bool, str]:
    """End after start, and no clash with the staff member's other appointments."""
    if appointment.end_datetime <= appointment.start_datetime:
        return False, "End time must be after the start time."
    clash = appointment.overlapping().first()
    if clash is not None:
        return False, f"Overlaps with '{clash.title}' at {clash.start_datetime:%Y-%m-%d %H:%M}."
    return True, ""


def can_change(appointment) -> tuple[bool, str]:
    if appointment.status in appointment.CLOSED_STATUSES:
        return False, f"Appointment is {appointment.get_status_display().lower()} and cannot be changed."
    return True, ""
