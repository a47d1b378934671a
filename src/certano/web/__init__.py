"""Web API for certano (FastAPI)."""
