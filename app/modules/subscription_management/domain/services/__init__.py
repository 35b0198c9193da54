"""Domain services: pricing, promotional codes, lifecycle, payment retry and reminders; gateway/email ports."""
