# 📄 File: app/modules/subscription_management/__init__.py
# 🧭 Purpose (Layman Explanation):
# Everything about contractor plans: the three tiers, prices and discount codes, free trials,
# upgrades and downgrades, cancellations, renewals and failed payment recovery.
# 🧪 Purpose (Technical Summary):
# Subscription management module laid out in domain / application / infrastructure /
# presentation layers (DDD + CQRS).
# 🔗 Dependencies:
# - app.shared (config, database, security, logging)
# 🔄 Connected Modules / Calls From:
# - app.api.v1.router, app.background_jobs.subscription_tasks
