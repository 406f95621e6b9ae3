"""Shared-secret admin token authentication."""

import secrets
from datetime import UTC, datetime

from fastapi import Request, status

from comment_api.config.settings import Settings
from comment_api.core.logging import get_logger


logger = get_logger(__name__)

GENERATED_TOKEN_BYTES = 32


class AdminAuthError(Exception):
    """Admin request rejected (missing or invalid token)."""

    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str):
        self.message = message
        self.timestamp = datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")
        super().__init__(message)


def extract_token(request: Request) -> str:
    """Extract the admin token from a request.

    Sources, in priority order:
    1. ``Authorization: Bearer <token>`` (scheme is case-insensitive)
    2. ``X-Admin-Token: <token>``
    3. ``?token=<token>`` query parameter

    Returns:
        The token, or an empty string when none is present.
    """
    auth_header = request.headers.get("Authorization")
    if auth_header:
        parts = auth_header.split(" ", 1)
        if len(parts) == 2 and parts[0].lower() == "bearer":  # noqa: PLR2004
            return parts[1]

    header_token = request.headers.get("X-Admin-Token")
    if header_token:
        return header_token

    return request.query_params.get("token", "")


class AdminTokenAuth:
    """Validates admin tokens against a single configured secret."""

    def __init__(self, admin_token: str, enabled: bool = True):
        self.admin_token = admin_token
        self.enabled = enabled

    @classmethod
    def from_settings(cls, settings: Settings) -> "AdminTokenAuth":
        """Build from settings, generating a random secret if none is set."""
        admin_token = settings.admin_token
        if not admin_token:
            admin_token = secrets.token_hex(GENERATED_TOKEN_BYTES)
            # Logged unmasked on purpose: operators need it to reach the admin API
            logger.warning(
                "admin_token_generated",
                value=admin_token,
                hint="Set ADMIN_TOKEN for production",
            )
        logger.info("admin_auth_configured", enabled=settings.auth_enabled)
        return cls(admin_token=admin_token, enabled=settings.auth_enabled)

    def validate(self, token: str) -> bool:
        """Constant-time comparison against the configured secret."""
        return secrets.compare_digest(token.encode(), self.admin_token.encode())

    def authenticate(self, request: Request) -> None:
        """Reject the request unless it carries the admin token.

        Raises:
            AdminAuthError: If auth is enabled and the token is missing or wrong.
        """
        if not self.enabled:
            return

        token = extract_token(request)
        if not token:
            raise AdminAuthError("Missing authentication token")

        if not self.validate(token):
            logger.warning(
                "admin_auth_rejected",
                path=request.url.path,
                method=request.method,
            )
            raise AdminAuthError("Invalid authentication token")
