"""
Business policy functions for folders and documents.

They return (bool, reason) tuples; commands compose them.
"""


def can_delete_folder(folder) -> tuple[bool, str]:
    if folder.is_default:
        return False, "Default folders cannot be deleted."
    if folder.documents.exists():
        return False, "Folder still contains documents; move or delete them first."
    if folder.children.exists():
        return False, "Folder has subfolders; delete them first."
    return True, ""


def can_file_into(folder, contact_id, corporation_id) -> tuple[bool, str]:
    """A document filed into a folder must belong to the folder's client."""
    if folder is None:
        return True, ""
    if contact_id and folder.contact_id and folder.contact_id != contact_id:
        return False, "Folder belongs to another contact."
    if corporation_id and folder.corporation_id and folder.corporation_id != corporation_id:
        return False, "Folder belongs to another corporation."
    return True, ""
