"""
Portal permission class.

Portal views set authentication_classes = [] and rely on this permission to
read the portal bearer token instead of the staff JWT.
"""
import logging

import jwt
from rest_framework.permissions import BasePermission

from .models import ClientPortalAccess
from .tokens import decode_portal_token

security_logger = logging.getLogger("security")


class IsPortalAuthenticated(BasePermission):
    """
    Allows access only to active portal users.

    Attaches ``request.portal_access`` and ``request.portal_contact_id``.
    """

    message = "Portal authentication required."

    def has_permission(self, request, view):
        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return False

        try:
            payload = decode_portal_token(auth_header[7:])
        except jwt.InvalidTokenError as e:
            security_logger.info("Portal token rejected", extra={"reason": str(e), "path": request.path})
            return False

        access = (
            ClientPortalAccess.objects
            .select_related("contact")
            .filter(pk=payload["portal_access_id"], is_active=True)
            .first()
        )
        if access is None:
            return False

        request.portal_access = access
        request.portal_contact_id = access.contact_id
        return True
