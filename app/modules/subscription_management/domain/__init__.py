"""Subscription domain: entities, repository ports and business services."""
