# 📄 File: app/api/__init__.py
# 🧭 Purpose (Layman Explanation): 
# This file marks the api folder as a Python package: the web-facing parts of the service
# (middleware, health checks and the versioned router) live underneath it.
# 🧪 Purpose (Technical Summary): 
# Package initialization for the API layer with version constants shared by the routers.
# 🔗 Dependencies: 
# None (package initialization)
# 🔄 Connected Modules / Calls From: 
# app.main, app.api.v1.router

"""
Event Marketplace Subscription API Package

Structure:
    api/
    ├── __init__.py          # This file
    ├── middleware/          # Request id, error envelope, authentication, access logging
    └── v1/
        ├── router.py        # Collects module routers under /api
        └── health.py        # Liveness and readiness
"""

CURRENT_VERSION = "v1"

DEFAULT_HEADERS = {
    "X-API-Version": CURRENT_VERSION,
}

__all__ = [
    "CURRENT_VERSION",
    "DEFAULT_HEADERS",
]
