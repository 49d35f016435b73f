"""FastAPI integration: per-request Unit of Work dependency and health router."""
