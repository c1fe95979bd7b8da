"""API routers for Observer."""
