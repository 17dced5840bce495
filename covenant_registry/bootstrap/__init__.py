"""Bootstrap wiring for external resources."""
