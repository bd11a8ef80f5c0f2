"""HTTP API layer - FastAPI application, routes and error mapping."""
