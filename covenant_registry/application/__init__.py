"""Application layer - ports and orchestration services for the registry."""
