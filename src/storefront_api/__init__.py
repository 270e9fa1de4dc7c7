"""FastAPI application for the storefront payment API."""
