# 📄 File: app/shared/utils/__init__.py

# 🧭 Purpose (Layman Explanation):
# A small toolbox other parts of the service use for logging and for handling money amounts.

# 🧪 Purpose (Technical Summary):
# Utilities package: structured JSON logging with request context, and Decimal money helpers
# (half-up cent rounding, minor units, JSON serialization).

# 🔗 Dependencies:
# - python-json-logger (logging.py), pydantic (money.py)

# 🔄 Connected Modules / Calls From:
# Used by: app.main, middleware, domain services, repositories, Celery tasks

"""
Shared Utilities Package

- logging: structured logging, request/billing event helpers
- money: Decimal rounding and conversion for prices and charges
"""

__all__ = []
