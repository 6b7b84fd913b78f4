"""UserAction model: append-only audit trail of user-triggered operations."""

from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import DateTime, String, text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class UserActionType:
    """Known action_type values."""

    CLUSTER_GENERATED = "cluster_generated"
    CLUSTER_ACCEPTED = "cluster_accepted"


class UserAction(Base):
    """One audit record.

    Attributes:
        id: UUID primary key
        user_id: Acting user
        action_type: Event name, see UserActionType
        target_id: Optional id of the affected entity
        action_metadata: Event payload (column name "metadata")
        occurred_at: When the action happened
    """

    __tablename__ = "user_actions"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
        server_default=text("gen_random_uuid()"),
    )

    user_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
    )

    action_type: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
    )

    target_id: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    # "metadata" is reserved on declarative classes
    action_metadata: Mapped[dict[str, Any]] = mapped_column(
        "metadata",
        JSONB,
        nullable=False,
        default=dict,
        server_default=text("'{}'::jsonb"),
    )

    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        server_default=text("now()"),
    )

    def __repr__(self) -> str:
        return f"<UserAction(action_type={self.action_type!r}, user_id={self.user_id!r})>"
