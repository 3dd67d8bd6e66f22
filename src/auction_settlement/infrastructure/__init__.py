"""Infrastructure adapters: database, Redis, object storage, notifications."""
