"""SQLAlchemy ORM models."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Uuid,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from care_connections.db.base import Base

if TYPE_CHECKING:
    from care_connections.db.models import Profile


class Connection(Base):
    """
    Directed relationship between a care seeker and a provider.

    `status` is a closed enum; archive/hide/report/viewed, the thread and the
    scheduling sub-records live in `metadata`. Every UPDATE is guarded by
    `version` (optimistic locking), so a stale read-modify-write raises
    StaleDataError instead of clobbering a concurrent commit.
    """

    __tablename__ = "connections"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'accepted', 'declined', 'expired')",
            name="ck_connections_status",
        ),
        CheckConstraint(
            "type IN ('inquiry', 'request')",
            name="ck_connections_type",
        ),
        CheckConstraint(
            "from_profile_id <> to_profile_id",
            name="ck_connections_not_self",
        ),
        Index("ix_connections_from_profile", "from_profile_id", "created_at"),
        Index("ix_connections_to_profile", "to_profile_id", "created_at"),
        # At most one pending/accepted connection per direction and type
        Index(
            "uq_connections_active_pair",
            "from_profile_id",
            "to_profile_id",
            "type",
            unique=True,
            postgresql_where=text("status IN ('pending', 'accepted')"),
            sqlite_where=text("status IN ('pending', 'accepted')"),
        ),
        Index(
            "ix_connections_pair_type_status",
            "from_profile_id",
            "to_profile_id",
            "type",
            "status",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")

    from_profile_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    to_profile_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )

    # Structured intake: care_type, care_recipient, urgency, additional_notes
    message: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    metadata_: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSON, nullable=False, default=dict
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)

    from_profile: Mapped["Profile"] = relationship(foreign_keys=[from_profile_id])
    to_profile: Mapped["Profile"] = relationship(foreign_keys=[to_profile_id])

    __mapper_args__ = {"version_id_col": version}
