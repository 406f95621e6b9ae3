"""FastAPI dependencies for admin authentication."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .token import AdminTokenAuth


async def get_admin_auth(request: Request) -> AdminTokenAuth:
    """Get the admin token checker from app state."""
    auth = getattr(request.app.state, "admin_auth", None)
    if auth is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin authentication not configured",
        )
    return auth


async def require_admin(
    request: Request,
    auth: Annotated[AdminTokenAuth, Depends(get_admin_auth)],
) -> None:
    """Dependency guarding admin routes.

    Raises:
        AdminAuthError: If the admin token is missing or invalid.
    """
    auth.authenticate(request)


AdminAccess = Depends(require_admin)
