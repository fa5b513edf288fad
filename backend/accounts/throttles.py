# accounts/throttles.py
"""
Rate limiting for the staff and portal login endpoints.

Attempts are counted per client IP and submitted email, so one office
behind a shared address does not lock every user out at once.
"""

from rest_framework.throttling import AnonRateThrottle


class LoginAttemptThrottle(AnonRateThrottle):
    def get_cache_key(self, request, view):
        data = request.data if hasattr(request.data, "get") else {}
        email = str(data.get("email", "")).strip().lower()
        return self.cache_format % {
            "scope": self.scope,
            "ident": f"{self.get_ident(request)}:{email}",
        }


class LoginThrottle(LoginAttemptThrottle):
    """Staff login. Rate from DEFAULT_THROTTLE_RATES['login']."""
    scope = "login"


class PortalLoginThrottle(LoginAttemptThrottle):
    """Client portal login. Rate from DEFAULT_THROTTLE_RATES['portal_login']."""
    scope = "portal_login"
