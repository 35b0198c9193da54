# 📄 File: app/shared/infrastructure/database/session.py
#
# 🧭 Purpose (Layman Explanation):
# Manages database sessions (like conversations with the database) ensuring each request
# gets its own clean session and that half-finished billing changes are rolled back.
#
# 🧪 Purpose (Technical Summary):
# Async SQLAlchemy session management with a FastAPI dependency and a context manager
# for background jobs: commit on success, rollback on any error.
#
# 🔗 Dependencies:
# - sqlalchemy.ext.asyncio (AsyncSession)
# - app.shared.config.database (session factory)
#
# 🔄 Connected Modules / Calls From:
# - Subscription presentation dependencies (request scoped sessions)
# - app.background_jobs.subscription_tasks (job scoped sessions)

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import exc
from sqlalchemy.ext.asyncio import AsyncSession

from app.shared.config.database import get_async_session_factory
from app.shared.core.exceptions import DatabaseError, MarketplaceException, TransactionError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def session_scope() -> AsyncGenerator[AsyncSession, None]:
    """
    Get an async database session with automatic transaction management.

    Yields:
        AsyncSession: Database session

    Raises:
        DatabaseError: If SQLAlchemy fails while the session is in use
        TransactionError: If the commit itself cannot be completed
    """
    session: AsyncSession = get_async_session_factory()()

    try:
        yield session
    except MarketplaceException:
        await session.rollback()
        raise
    except exc.SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Database error occurred, transaction rolled back: {e}")
        raise DatabaseError("Database operation failed") from e
    except Exception:
        await session.rollback()
        raise
    else:
        try:
            await session.commit()
        except exc.SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"Commit failed, transaction rolled back: {e}")
            raise TransactionError("Transaction failed") from e
    finally:
        await session.close()


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency yielding one transactional session per request.

    Yields:
        AsyncSession: Database session
    """
    async with session_scope() as session:
        yield session
