# 📄 File: app/shared/__init__.py
#
# 🧭 Purpose (Layman Explanation):
# Marks the 'shared' folder as a package of common tools every part of the service uses,
# like settings, database access, security and logging.
#
# 🧪 Purpose (Technical Summary):
# Shared kernel package for configuration, infrastructure and cross-cutting concerns.
#
# 🔗 Dependencies:
# - Python packaging system
#
# 🔄 Connected Modules / Calls From:
# - All application modules importing shared utilities

"""
Shared Kernel - Common Utilities and Infrastructure

- Configuration management (pydantic-settings, Supabase, SQLAlchemy)
- Database sessions and connection lifecycle
- Security (Supabase JWT verification) and exceptions
- Structured logging and money helpers
"""

__all__ = []
