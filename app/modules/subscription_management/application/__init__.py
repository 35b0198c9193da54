"""Application layer: CQRS commands, queries, handlers and response DTOs."""
