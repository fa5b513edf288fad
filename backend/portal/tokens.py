"""
Portal JWT realm.

Portal tokens are signed with PORTAL_JWT_SIGNING_KEY and carry
realm="portal". Staff tokens (SimpleJWT, JWT_SIGNING_KEY) fail both the
signature and the realm check here, and portal tokens fail SimpleJWT's
signature check on staff endpoints.
"""
import uuid
from datetime import timedelta

import jwt
from django.conf import settings
from django.utils import timezone

ALGORITHM = "HS256"
REALM = "portal"
ACCESS = "access"
REFRESH = "refresh"


def _signing_key() -> str:
    return settings.PORTAL_JWT_SIGNING_KEY


def _encode(access, token_type: str, lifetime: timedelta) -> str:
    now = timezone.now()
    payload = {
        "portal_access_id": access.pk,
        "contact_id": access.contact_id,
        "token_type": token_type,
        "realm": REALM,
        "jti": uuid.uuid4().hex,
        "iat": int(now.timestamp()),
        "exp": int((now + lifetime).timestamp()),
    }
    return jwt.encode(payload, _signing_key(), algorithm=ALGORITHM)


def create_portal_tokens(access) -> dict:
    """Issue an access/refresh pair for a ClientPortalAccess."""
    return {
        "access": _encode(access, ACCESS, timedelta(minutes=settings.PORTAL_ACCESS_TOKEN_MINUTES)),
        "refresh": _encode(access, REFRESH, timedelta(days=settings.PORTAL_REFRESH_TOKEN_DAYS)),
    }


def decode_portal_token(token: str, expected_type: str = ACCESS) -> dict:
    """
    Verify a portal token and return its claims.

    Raises:
        jwt.InvalidTokenError: bad signature, expired, wrong realm or wrong type
    """
    payload = jwt.decode(
        token,
        _signing_key(),
        algorithms=[ALGORITHM],
        options={"require": ["exp", "iat", "portal_access_id", "token_type", "realm"]},
    )
    if payload.get("realm") != REALM:
        raise jwt.InvalidTokenError("Token is not a portal token.")
    if payload.get("token_type") != expected_type:
        raise jwt.InvalidTokenError(f"Expected a portal {expected_type} token.")
    return payload
