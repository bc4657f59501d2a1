"""FastAPI router factories. Routers handle HTTP concerns only."""
