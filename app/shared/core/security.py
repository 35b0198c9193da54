"""
Security utilities for validating the Supabase-issued access tokens that
every authenticated subscription request carries.
"""

import logging
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any, Dict, Optional

from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import BaseModel

from ..config.settings import get_settings
from .exceptions import AuthenticationError

logger = logging.getLogger(__name__)


class TokenData(BaseModel):
    """Identity carried by a verified access token"""
    user_id: str
    email: Optional[str] = None
    role: str = "user"


class SecurityManager:
    """
    Centralized JWT handling.
    Supabase signs access tokens with the project JWT secret (HS256) and
    audience ``authenticated``.
    """

    def __init__(self):
        self.settings = get_settings()
        self.algorithm = self.settings.JWT_ALGORITHM
        self.secret_key = self.settings.SUPABASE_JWT_SECRET
        self.audience = self.settings.JWT_AUDIENCE

    @property
    def can_verify_locally(self) -> bool:
        """Whether a signing secret is configured for offline verification."""
        return bool(self.secret_key)

    def create_access_token(
        self,
        user_id: str,
        email: Optional[str] = None,
        role: str = "user",
        expires_delta: Optional[timedelta] = None
    ) -> str:
        """
        Create a token shaped like the ones Supabase issues.

        Used by operational scripts and the test-suite to act as a user.

        Args:
            user_id: Subject of the token
            email: User email claim
            role: Application role stored in app_metadata
            expires_delta: Custom expiration time

        Returns:
            str: Encoded JWT token
        """
        if not self.secret_key:
            raise AuthenticationError("Token signing secret is not configured")

        now = datetime.now(timezone.utc)
        expire = now + (expires_delta or timedelta(hours=1))
        payload = {
            "sub": user_id,
            "email": email,
            "aud": self.audience,
            "role": "authenticated",
            "app_metadata": {"role": role},
            "iat": int(now.timestamp()),
            "exp": int(expire.timestamp()),
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def verify_token(self, token: str) -> TokenData:
        """
        Verify and decode an access token.

        Args:
            token: JWT token to verify

        Returns:
            TokenData: Identity from the token

        Raises:
            AuthenticationError: If token is invalid or expired
        """
        try:
            payload: Dict[str, Any] = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                audience=self.audience,
            )
        except ExpiredSignatureError:
            logger.info("Access token has expired")
            raise AuthenticationError("Token expired")
        except JWTError as e:
            logger.warning(f"JWT validation failed: {e}")
            raise AuthenticationError("Could not validate credentials")

        user_id = payload.get("sub")
        if not user_id:
            logger.warning("Token missing subject (user_id)")
            raise AuthenticationError("Could not validate credentials")

        app_metadata = payload.get("app_metadata") or {}
        return TokenData(
            user_id=str(user_id),
            email=payload.get("email"),
            role=app_metadata.get("role", "user"),
        )


@lru_cache()
def get_security_manager() -> SecurityManager:
    """Get cached security manager instance."""
    return SecurityManager()
