"""Infrastructure adapters: SQLAlchemy repositories, Stripe gateway and SendGrid email."""
