"""FastAPI application, routes, and wire models."""
