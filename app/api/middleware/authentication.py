# 📄 File: app/api/middleware/authentication.py
# 🧭 Purpose (Layman Explanation):
# Acts like a security guard that checks the contractor's login pass (access token) before
# letting them look at or change their subscription.
# 🧪 Purpose (Technical Summary):
# Authentication middleware that validates Supabase access tokens, locally with the project JWT
# secret when configured or through the Supabase auth API otherwise, and injects the caller's
# identity into request.state for the get_current_user dependency and the rate limiter.
# 🔗 Dependencies:
# starlette BaseHTTPMiddleware, app.shared.core.security, app.shared.config.supabase
# 🔄 Connected Modules / Calls From:
# app.main (middleware registration), app.shared.core.dependencies, app.shared.core.rate_limiter

import logging
from typing import Any, Dict, Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from app.shared.config.settings import get_settings
from app.shared.config.supabase import get_supabase_manager
from app.shared.core.exceptions import AuthenticationError, ExternalServiceError
from app.shared.core.security import get_security_manager
from app.shared.utils.logging import user_id_var
from . import should_exclude_path

logger = logging.getLogger(__name__)


class AuthenticationMiddleware(BaseHTTPMiddleware):
    """
    Authentication middleware for Supabase access tokens

    This middleware:
    - Skips public paths (catalog, pricing, health, docs)
    - Validates the Bearer token when one is sent
    - Rejects invalid or expired tokens with 401
    - Leaves anonymous requests unauthenticated; protected endpoints reject
      them through the get_current_user dependency
    """

    def __init__(self, app: ASGIApp):
        super().__init__(app)
        self.settings = get_settings()

    async def dispatch(self, request: Request, call_next) -> Response:
        """
        Process authentication for incoming requests

        Args:
            request: HTTP request
            call_next: Next middleware or endpoint

        Returns:
            HTTP response
        """
        if request.method == "OPTIONS" or should_exclude_path("authentication", request.url.path):
            return await call_next(request)

        token = self._extract_token(request)
        if token:
            try:
                user = await self._authenticate(token)
            except AuthenticationError as e:
                return self._create_authentication_error(request, e)
            except ExternalServiceError as e:
                logger.error(f"Token validation unavailable: {e.message}")
                return JSONResponse(
                    status_code=e.status_code,
                    content=e.to_dict(getattr(request.state, "request_id", None)),
                )

            request.state.user_id = user["user_id"]
            request.state.user_email = user.get("email")
            request.state.user_role = user.get("role", "user")
            user_id_var.set(user["user_id"])

        return await call_next(request)

    def _extract_token(self, request: Request) -> Optional[str]:
        """Bearer token from the Authorization header."""
        authorization = request.headers.get("Authorization", "")
        scheme, _, credentials = authorization.partition(" ")
        if scheme.lower() != "bearer" or not credentials.strip():
            return None
        return credentials.strip()

    async def _authenticate(self, token: str) -> Dict[str, Any]:
        """
        Resolve a token to the caller's identity.

        Tokens are verified offline when the JWT secret is configured; otherwise
        the Supabase auth API is asked who the token belongs to.
        """
        security = get_security_manager()
        if security.can_verify_locally:
            token_data = security.verify_token(token)
            return token_data.model_dump()
        return await get_supabase_manager().resolve_user(token)

    def _create_authentication_error(self, request: Request, error: AuthenticationError) -> JSONResponse:
        logger.info(f"Rejected token on {request.method} {request.url.path}: {error.message}")
        return JSONResponse(
            status_code=error.status_code,
            content=error.to_dict(getattr(request.state, "request_id", None)),
            headers={"WWW-Authenticate": "Bearer"},
        )
