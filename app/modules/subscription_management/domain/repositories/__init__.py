"""Repository interfaces (ports) for subscriptions, promotional codes and payments."""
