"""Infrastructure adapters: database, payment processor, notifications."""
