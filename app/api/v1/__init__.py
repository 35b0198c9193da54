# 📄 File: app/api/v1/__init__.py
# 🧭 Purpose (Layman Explanation):
# Organizes version 1 of the subscription API so a later version can be added without
# breaking the apps already using this one.
# 🧪 Purpose (Technical Summary):
# Package initialization for API version 1 for the versioned route modules.
# 🔗 Dependencies:
# None (package initialization)
# 🔄 Connected Modules / Calls From:
# app.api.v1.router, app.main

"""
Event Marketplace Subscription API Version 1

Structure:
    v1/
    ├── __init__.py          # This file
    ├── router.py            # Aggregates module routers
    └── health.py            # Health check endpoints
"""

__api_version__ = "v1"
