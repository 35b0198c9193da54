"""Subscription and payment commands (write operations)."""
