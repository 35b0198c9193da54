"""Command and query handlers delegating to the domain services."""
