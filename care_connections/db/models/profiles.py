"""SQLAlchemy ORM models."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Index, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from care_connections.db.base import Base


class Profile(Base):
    """
    A party on the marketplace: a care seeker (family) or a provider.

    Owned by an account managed upstream. The connection engine only reads
    display metadata and care types from here.
    """

    __tablename__ = "profiles"
    __table_args__ = (
        Index("ix_profiles_account_id", "account_id"),
        Index("ix_profiles_type_city", "type", "city"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    account_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    state: Mapped[str | None] = mapped_column(String(50), nullable=True)
    care_types: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    # relationship_to_recipient, timeline, payment_methods, accepts_medicaid, ...
    metadata_: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSON, nullable=False, default=dict
    )

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )
