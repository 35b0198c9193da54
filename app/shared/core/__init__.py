"""
Core utilities package for the subscription service.
Provides exceptions, token verification, request dependencies and rate limiting.

Modules are imported directly (e.g. ``from app.shared.core.exceptions import NotFoundError``)
so that importing one does not pull in the web stack.
"""

__all__ = []
