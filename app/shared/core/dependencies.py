"""
Common FastAPI dependencies for the subscription service.
Provides the authenticated user extracted by AuthenticationMiddleware.
"""

import logging
from typing import Optional

from fastapi import Depends, Request

from .exceptions import AuthenticationError, AuthorizationError

logger = logging.getLogger(__name__)


class CurrentUser:
    """User information extracted from the access token."""

    def __init__(
        self,
        user_id: str,
        email: Optional[str] = None,
        role: str = "user"
    ):
        self.user_id = user_id
        self.email = email
        self.role = role

    def is_admin(self) -> bool:
        """Check if user has admin privileges."""
        return self.role in ("admin", "super_admin")


async def get_current_user(request: Request) -> CurrentUser:
    """
    Get current authenticated user from request state.
    This dependency assumes AuthenticationMiddleware has already validated the token.

    Args:
        request: FastAPI request object

    Returns:
        CurrentUser: Current user information

    Raises:
        AuthenticationError: If user is not authenticated
    """
    user_id = getattr(request.state, "user_id", None)
    if not user_id:
        logger.warning(f"Unauthenticated access to {request.url.path}")
        raise AuthenticationError("User not authenticated")

    return CurrentUser(
        user_id=user_id,
        email=getattr(request.state, "user_email", None),
        role=getattr(request.state, "user_role", "user"),
    )


async def get_current_admin_user(
    current_user: CurrentUser = Depends(get_current_user)
) -> CurrentUser:
    """
    Get current user with admin privileges.

    Raises:
        AuthorizationError: If user is not an admin
    """
    if not current_user.is_admin():
        logger.warning(f"Non-admin user attempted admin access: {current_user.user_id}")
        raise AuthorizationError("Admin privileges required for this action")

    return current_user
