"""Payment processor and email service adapters."""
