# 📄 File: app/__init__.py
#
# 🧭 Purpose (Layman Explanation):
# Marks the 'app' folder as the event marketplace subscription service and records its version.
#
# 🧪 Purpose (Technical Summary):
# Application package initialization with version and package metadata for the
# FastAPI subscription & billing service.
#
# 🔗 Dependencies:
# - Python packaging system
#
# 🔄 Connected Modules / Calls From:
# - main.py (application entry point), health endpoints

"""
Event Marketplace Subscriptions - tiered plans, pricing and billing for contractors.
"""

__version__ = "1.0.0"
__title__ = "Event Marketplace Subscription Service"
__description__ = "Subscription tiers, pricing, trials and payment recovery for marketplace contractors"

__all__ = [
    "__version__",
    "__title__",
    "__description__",
]
