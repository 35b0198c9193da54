# 📄 File: app/shared/config/database.py
#
# 🧭 Purpose (Layman Explanation):
# Configuration for connecting to the marketplace database (Supabase Postgres), managing
# connections efficiently so many contractors can check or change their plans at once.
#
# 🧪 Purpose (Technical Summary):
# SQLAlchemy async database configuration with connection pooling, the session factory,
# and the declarative base shared by all ORM models.
#
# 🔗 Dependencies:
# - SQLAlchemy async engine and session
# - app.shared.config.settings
# - PostgreSQL driver (asyncpg)
#
# 🔄 Connected Modules / Calls From:
# - app.shared.infrastructure.database.connection
# - app.shared.infrastructure.database.session
# - Subscription ORM models, Alembic env

from typing import Any, Dict, Optional

from sqlalchemy import MetaData
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from .settings import get_settings


# =============================================================================
# DATABASE CONFIGURATION
# =============================================================================

class DatabaseConfig:
    """Database configuration class with environment-specific settings."""

    def __init__(self):
        self.settings = get_settings()
        self._async_engine: Optional[AsyncEngine] = None
        self._async_session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    @property
    def database_url(self) -> str:
        """Get the database URL for async connections."""
        return self.settings.database_url

    @property
    def engine_kwargs(self) -> Dict[str, Any]:
        """Get SQLAlchemy engine configuration based on environment."""

        base_config: Dict[str, Any] = {
            "echo": self.settings.DB_ECHO,
            "connect_args": {
                "server_settings": {
                    "application_name": f"subscriptions_{self.settings.ENVIRONMENT}",
                    "timezone": "UTC",
                }
            },
        }

        if self.settings.is_testing:
            base_config["poolclass"] = NullPool
        else:
            base_config.update({
                "pool_size": self.settings.DB_POOL_SIZE,
                "max_overflow": self.settings.DB_MAX_OVERFLOW,
                "pool_timeout": self.settings.DB_POOL_TIMEOUT,
                "pool_recycle": self.settings.DB_POOL_RECYCLE,
                "pool_pre_ping": True,
            })

        return base_config

    def create_async_engine(self) -> AsyncEngine:
        """Create and configure async database engine."""
        if self._async_engine is None:
            self._async_engine = create_async_engine(
                self.database_url,
                **self.engine_kwargs
            )
        return self._async_engine

    def create_async_session_factory(self) -> async_sessionmaker[AsyncSession]:
        """Create async session factory."""
        if self._async_session_factory is None:
            self._async_session_factory = async_sessionmaker(
                self.create_async_engine(),
                expire_on_commit=False,
                autoflush=False,
            )
        return self._async_session_factory

    async def close_async_engine(self):
        """Close the async database engine."""
        if self._async_engine:
            await self._async_engine.dispose()
            self._async_engine = None
            self._async_session_factory = None


# =============================================================================
# DATABASE MODELS BASE CLASS
# =============================================================================

# Naming convention for database constraints
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s"
}

metadata = MetaData(naming_convention=convention)


class DatabaseBase(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    metadata = metadata


# =============================================================================
# GLOBAL DATABASE CONFIGURATION INSTANCE
# =============================================================================

_db_config: Optional[DatabaseConfig] = None


def get_database_config() -> DatabaseConfig:
    """Get the process-wide database configuration."""
    global _db_config
    if _db_config is None:
        _db_config = DatabaseConfig()
    return _db_config


def get_async_engine() -> AsyncEngine:
    """Get the async database engine."""
    return get_database_config().create_async_engine()


def get_async_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get the async session factory."""
    return get_database_config().create_async_session_factory()
