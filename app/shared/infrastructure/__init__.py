"""
Infrastructure layer package for the subscription service.
Provides database connections, sessions and the external HTTP client.
"""

__all__ = []
