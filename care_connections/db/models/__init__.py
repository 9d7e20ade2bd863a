"""SQLAlchemy ORM models."""

from care_connections.db.models.connections import Connection
from care_connections.db.models.profiles import Profile

__all__ = ["Connection", "Profile"]
