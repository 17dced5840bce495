"""Infrastructure adapters (persistence, notification delivery)."""
