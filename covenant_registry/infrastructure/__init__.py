"""Infrastructure layer - adapters for storage, delivery and observability."""
