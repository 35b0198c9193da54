# 📄 File: app/api/middleware/__init__.py
# 🧭 Purpose (Layman Explanation):
# Groups the helpers that look at every request before it reaches the subscription endpoints:
# tagging it with an id, checking who is calling and writing it to the log.
# 🧪 Purpose (Technical Summary):
# Package initialization for API middleware components with shared path-exclusion configuration
# for authentication and request logging.
# 🔗 Dependencies:
# typing
# 🔄 Connected Modules / Calls From:
# app.main (middleware registration), middleware modules in this package

"""
Subscription API Middleware Package

Middleware Components:
    - ErrorHandlingMiddleware: request ids and a JSON envelope for unhandled errors
    - RequestLoggingMiddleware: HTTP request and response logging
    - AuthenticationMiddleware: Supabase access token validation

Middleware Stack Order (outermost first):
    1. ErrorHandlingMiddleware
    2. RequestLoggingMiddleware
    3. AuthenticationMiddleware
    4. Application Routes

Usage:
    app.add_middleware(AuthenticationMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(ErrorHandlingMiddleware)
"""

from typing import Any, Dict, List

# Paths reachable without a bearer token. Entries ending in "/" are prefixes.
PUBLIC_PATHS: List[str] = [
    "/",
    "/health",
    "/health/",
    "/docs",
    "/redoc",
    "/openapi.json",
    "/favicon.ico",
    "/api/subscriptions/tiers",
    "/api/subscriptions/pricing",
    "/api/subscriptions/pricing/calculate",
]

MIDDLEWARE_CONFIG: Dict[str, Dict[str, Any]] = {
    "authentication": {
        "exclude_paths": PUBLIC_PATHS,
    },
    "logging": {
        "exclude_paths": ["/health", "/health/"],
        "sensitive_headers": ["authorization", "cookie", "x-api-key"],
    },
}


def get_middleware_config(middleware_name: str) -> Dict[str, Any]:
    """Configuration block for one middleware, empty when unknown."""
    return MIDDLEWARE_CONFIG.get(middleware_name, {})


def should_exclude_path(middleware_name: str, path: str) -> bool:
    """
    Check whether a middleware should skip a path.

    Args:
        middleware_name: Key in MIDDLEWARE_CONFIG
        path: Request path

    Returns:
        bool: True for exact matches and for paths under a "/"-terminated prefix
    """
    for excluded in get_middleware_config(middleware_name).get("exclude_paths", []):
        if path == excluded:
            return True
        if excluded.endswith("/") and len(excluded) > 1 and path.startswith(excluded):
            return True
    return False


__all__ = [
    "PUBLIC_PATHS",
    "MIDDLEWARE_CONFIG",
    "get_middleware_config",
    "should_exclude_path",
]
