"""Admin token authentication.

A single shared secret protects moderation routes. The token is accepted
from the Authorization bearer header, the X-Admin-Token header or the
``token`` query parameter.
"""

from .dependencies import AdminAccess, get_admin_auth, require_admin
from .token import AdminAuthError, AdminTokenAuth, extract_token


__all__ = [
    "AdminAccess",
    "AdminAuthError",
    "AdminTokenAuth",
    "extract_token",
    "get_admin_auth",
    "require_admin",
]
