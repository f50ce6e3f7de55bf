"""FastAPI application package for the design review service."""
