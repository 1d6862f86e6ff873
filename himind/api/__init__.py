"""HTTP API: FastAPI routers and request-handler dependencies."""
