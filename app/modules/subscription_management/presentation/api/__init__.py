"""HTTP API of the subscription module."""
