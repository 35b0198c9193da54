# 📄 File: app/shared/infrastructure/database/connection.py
#
# 🧭 Purpose (Layman Explanation):
# Opens and closes the connection to the subscription database when the app starts and stops,
# and checks whether the database is reachable.
#
# 🧪 Purpose (Technical Summary):
# Async engine lifecycle (startup ping, shutdown dispose) and a database health check
# built on the shared DatabaseConfig.
#
# 🔗 Dependencies:
# - sqlalchemy.ext.asyncio
# - app.shared.config.database
#
# 🔄 Connected Modules / Calls From:
# - app.main lifespan
# - app.api.v1.health readiness check

import logging
import time
from typing import Any, Dict

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.shared.config.database import get_async_engine, get_database_config
from app.shared.core.exceptions import DatabaseError

logger = logging.getLogger(__name__)


async def init_database() -> bool:
    """
    Create the engine and verify connectivity.

    Returns:
        bool: True when the database answered the ping query

    Raises:
        DatabaseError: If the database cannot be reached
    """
    try:
        engine = get_async_engine()
        async with engine.connect() as connection:
            await connection.execute(text("SELECT 1"))
        logger.info("Database connection verified")
        return True
    except SQLAlchemyError as e:
        logger.error(f"Database initialization failed: {e}")
        raise DatabaseError("Database initialization failed", operation="connect") from e


async def close_database() -> None:
    """Dispose of the engine and its pooled connections."""
    await get_database_config().close_async_engine()
    logger.info("Database engine disposed")


async def database_health_check() -> Dict[str, Any]:
    """
    Run a lightweight query and report latency.

    Returns:
        dict: status and response time in milliseconds
    """
    start = time.perf_counter()
    try:
        async with get_async_engine().connect() as connection:
            await connection.execute(text("SELECT 1"))
        return {
            "status": "healthy",
            "response_time_ms": round((time.perf_counter() - start) * 1000, 2),
        }
    except SQLAlchemyError as e:
        logger.warning(f"Database health check failed: {e}")
        return {"status": "unhealthy", "error": type(e).__name__}
