"""Request bodies and response envelopes."""
