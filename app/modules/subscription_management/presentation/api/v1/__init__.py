"""Version 1 routers: subscriptions and payments."""
