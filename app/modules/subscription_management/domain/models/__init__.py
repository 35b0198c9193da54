# 📄 File: app/modules/subscription_management/domain/models/__init__.py
# 🧭 Purpose (Layman Explanation):
# The core records of the subscription system: plans (tiers), subscriptions, discount codes,
# prices, payments and the history of plan changes.
# 🧪 Purpose (Technical Summary):
# Pydantic domain entities and value objects with their enums and transition rules.
# 🔗 Dependencies:
# pydantic, decimal, app.shared.utils.money
# 🔄 Connected Modules / Calls From:
# Domain services, repositories, application layer, infrastructure layer
