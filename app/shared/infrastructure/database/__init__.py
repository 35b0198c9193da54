"""Database connection lifecycle and request-scoped sessions."""
