"""
Supabase client configuration for authentication services.
Handles Supabase initialization with proper error handling and connection management.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from supabase import create_client, Client
from supabase.lib.client_options import ClientOptions

from app.shared.core.exceptions import AuthenticationError, ExternalServiceError
from .settings import get_settings


logger = logging.getLogger(__name__)


class SupabaseManager:
    """
    Supabase client manager with lazy initialization.

    Subscription rows live in the Supabase Postgres database and are reached
    through SQLAlchemy; this client is used for the auth service only.
    """

    def __init__(self):
        self._client: Optional[Client] = None
        self.settings = get_settings()

    @property
    def client(self) -> Client:
        """Get or create Supabase client with lazy initialization."""
        if self._client is None:
            self._client = self._create_client()
        return self._client

    def _create_client(self) -> Client:
        """Create Supabase client with the service role key."""
        try:
            client_options = ClientOptions(
                schema="public",
                headers={
                    "User-Agent": f"EventMarketplaceSubscriptions/{self.settings.APP_VERSION}",
                },
                auto_refresh_token=False,
                persist_session=False,
            )

            client = create_client(
                self.settings.SUPABASE_URL,
                self.settings.SUPABASE_SERVICE_ROLE_KEY,
                options=client_options,
            )

            logger.info("Supabase client initialized successfully")
            return client

        except Exception as e:
            logger.error(f"Failed to initialize Supabase client: {e}")
            raise ExternalServiceError(
                "Supabase initialization failed",
                service_name="supabase",
                details={"error_type": type(e).__name__},
            ) from e

    def get_auth_client(self):
        """Get Supabase auth client for authentication operations."""
        return self.client.auth

    async def resolve_user(self, access_token: str) -> Dict[str, Any]:
        """
        Resolve an access token to its user through the Supabase auth API.

        Args:
            access_token: Bearer token issued by Supabase auth

        Returns:
            dict: user id, email and role

        Raises:
            AuthenticationError: If Supabase rejects the token
        """
        try:
            response = await asyncio.to_thread(self.get_auth_client().get_user, access_token)
        except Exception as e:
            logger.warning(f"Supabase rejected access token: {type(e).__name__}")
            raise AuthenticationError("Invalid or expired token") from e

        user = getattr(response, "user", None)
        if user is None:
            raise AuthenticationError("Invalid or expired token")

        app_metadata = getattr(user, "app_metadata", None) or {}
        return {
            "user_id": str(user.id),
            "email": getattr(user, "email", None),
            "role": app_metadata.get("role", "user"),
        }

    async def health_check(self) -> Dict[str, Any]:
        """
        Perform health check on the Supabase auth service.

        Returns:
            dict: Health status of Supabase services
        """
        health_status = {"auth_service": False, "error": None}

        try:
            await asyncio.to_thread(self.get_auth_client().admin.list_users, page=1, per_page=1)
            health_status["auth_service"] = True
        except Exception as e:
            logger.warning(f"Supabase health check failed: {e}")
            health_status["error"] = type(e).__name__

        return health_status


_supabase_manager: Optional[SupabaseManager] = None


def get_supabase_manager() -> SupabaseManager:
    """Get the process-wide Supabase manager."""
    global _supabase_manager
    if _supabase_manager is None:
        _supabase_manager = SupabaseManager()
    return _supabase_manager
