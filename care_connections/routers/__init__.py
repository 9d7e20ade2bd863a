"""API routers."""

from care_connections.routers.connections import router as connections_router

__all__ = ["connections_router"]
