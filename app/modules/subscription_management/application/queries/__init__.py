"""Subscription, pricing and payment queries (read operations)."""
