"""
External API integration package.
The generic aiohttp client used by the payment processor and email adapters.
"""

from app.shared.infrastructure.external_apis.api_client import APIClient, APIResponse, TransientAPIError

__all__ = ["APIClient", "APIResponse", "TransientAPIError"]
