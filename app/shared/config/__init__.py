# 📄 File: app/shared/config/__init__.py
#
# 🧭 Purpose (Layman Explanation):
# Where the subscription service finds its settings: database, Supabase, card processor,
# email service and the billing rules (trial length, grace period, retry cap).
#
# 🧪 Purpose (Technical Summary):
# Configuration package. Re-exports the cached Settings accessor; database.py and supabase.py
# are imported directly by the infrastructure that needs them.
#
# 🔗 Dependencies:
# - settings.py (pydantic-settings)
#
# 🔄 Connected Modules / Calls From:
# - app.main, celery_config, migrations/env.py, domain services

from .settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
