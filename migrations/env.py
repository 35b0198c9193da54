# 📄 File: migrations/env.py
# 🧭 Purpose (Layman Explanation):
# Tells Alembic how to connect to the subscription database and apply schema changes safely
# in every environment.
# 🧪 Purpose (Technical Summary):
# Alembic environment for the subscription tables: async (asyncpg) online migrations, offline SQL
# generation, model imports for autogenerate and a filter that keeps Supabase-managed schemas out.
# 🔗 Dependencies:
# - alembic, SQLAlchemy async engine, asyncpg
# - python-dotenv (environment variables)
# - app.shared.config.settings
# 🔄 Connected Modules / Calls From:
# - alembic CLI commands (upgrade, downgrade, revision)

import asyncio
import os
import sys
from logging.config import fileConfig

from alembic import context
from dotenv import load_dotenv
from sqlalchemy import pool
from sqlalchemy.ext.asyncio import async_engine_from_config

# Load environment variables
load_dotenv()

# Add the project root to Python path
sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

from app.shared.config.database import DatabaseBase  # noqa: E402
from app.shared.config.settings import get_settings  # noqa: E402

# Import models so their tables are registered on the metadata
from app.modules.subscription_management.infrastructure.database import models  # noqa: E402,F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = DatabaseBase.metadata

# Schemas owned by Supabase
SUPABASE_SCHEMAS = {'auth', 'storage', 'realtime', 'vault', 'extensions', 'graphql', 'graphql_public'}


def get_database_url() -> str:
    """Database URL using the asyncpg driver."""
    return get_settings().database_url


def include_object(object, name, type_, reflected, compare_to):
    """
    Filter objects to include in migrations.

    Returns:
        bool: False for Supabase-managed schemas and for reflected tables
        this service does not own
    """
    if getattr(object, 'schema', None) in SUPABASE_SCHEMAS:
        return False
    if type_ == "table" and reflected and name not in target_metadata.tables:
        return False
    return True


def run_migrations_offline() -> None:
    """
    Run migrations in 'offline' mode.

    Emits SQL to the script output instead of executing it.
    """
    context.configure(
        url=get_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
        include_object=include_object,
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        compare_type=True,
        compare_server_default=True,
        include_object=include_object,
    )

    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    """Run migrations through an async engine."""
    configuration = config.get_section(config.config_ini_section) or {}
    configuration["sqlalchemy.url"] = get_database_url()

    connectable = async_engine_from_config(
        configuration,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


def run_migrations_online() -> None:
    asyncio.run(run_async_migrations())


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
