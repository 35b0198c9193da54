"""Celery tasks for renewals, expiry sweeps and failed payment reminders."""
