CONTACT_EXPORT_COLUMNS = [
    {'key': 'contact_number', 'header': 'Contact #', 'width': 12},
    {'key': 'first_name', 'header': 'First Name', 'width': 18},
    {'key': 'last_name', 'header': 'Last Name', 'width': 18},
    {'key': 'email', 'header': 'Email', 'width': 30},
    {'key': 'phone', 'header': 'Phone', 'width': 16},
    {'key': 'status', 'header': 'Status', 'width': 10},
    {'key': 'primary_corporation', 'header': 'Primary Corporation', 'width': 30},
    {'key': 'corporations', 'header': 'Corporations', 'width': 40},
    {'key': 'city', 'header': 'City', 'width': 16},
    {'key': 'state', 'header': 'State', 'width': 10},
    {'key': 'assigned_to', 'header': 'Assigned To', 'width': 25},
    {'key': 'created_at', 'header': 'Created At', 'width': 18},
]


def prepare_contact_export_data(contacts) -> list[dict]:
    """Rows for contact export. SSNs are never exported."""
    data = []
    for contact in contacts:
        data.append({
            'contact_number': contact.contact_number,
            'first_name': contact.first_name,
            'last_name': contact.last_name,
            'email': contact.email,
            'phone': contact.phone,
            'status': contact.status,
            'primary_corporation': contact.corporation_name or '',
            'corporations': '; '.join(c.name for c in contact.corporations.all()),
            'city': contact.city,
            'state': contact.state,
            'assigned_to': contact.assigned_to.email if contact.assigned_to_id else '',
            'created_at': contact.created_at,
        })
    return data
