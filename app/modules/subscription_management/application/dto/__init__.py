"""Response DTOs shared by every subscription and payment endpoint."""
