"""Service-level JSON endpoints."""
