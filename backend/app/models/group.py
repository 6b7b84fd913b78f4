"""Group and GroupItem models for user-curated query collections.

Group is a named collection of queries owned by one user:
- name: unique per owner, case-insensitive (functional unique index)
- ai_generated: True when the group was accepted from a cluster suggestion
- metrics_*/query_count: denormalized snapshot of the members' aggregate
  metrics, rewritten whenever membership changes

GroupItem is a single (group_id, query_id) membership row.
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base

if TYPE_CHECKING:
    from app.models.query import Query

GROUP_NAME_MAX_LENGTH = 120


class Group(Base):
    """Group model.

    Attributes:
        id: UUID primary key
        user_id: Owner identifier
        name: Display name (1-120 chars, unique per owner ignoring case)
        ai_generated: Whether created from an AI cluster suggestion
        metrics_impressions: Summed impressions of members
        metrics_clicks: Summed clicks of members
        metrics_ctr: clicks / impressions, 4 decimal places
        metrics_avg_position: Mean member position, 1 decimal place
        query_count: Number of member queries
        created_at: Timestamp when record was created
        updated_at: Timestamp when record was last updated
    """

    __tablename__ = "groups"

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

    name: Mapped[str] = mapped_column(
        String(GROUP_NAME_MAX_LENGTH),
        nullable=False,
    )

    ai_generated: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )

    metrics_impressions: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text("0"),
    )

    metrics_clicks: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text("0"),
    )

    metrics_ctr: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        default=0.0,
        server_default=text("0"),
    )

    metrics_avg_position: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        default=0.0,
        server_default=text("0"),
    )

    query_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text("0"),
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        server_default=text("now()"),
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        server_default=text("now()"),
        onupdate=lambda: datetime.now(UTC),
    )

    items: Mapped[list["GroupItem"]] = relationship(
        "GroupItem",
        back_populates="group",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Group(id={self.id!r}, name={self.name!r}, user_id={self.user_id!r})>"


Index(
    "uq_groups_user_id_lower_name",
    Group.user_id,
    func.lower(Group.name),
    unique=True,
)


class GroupItem(Base):
    """Membership row linking a query to a group.

    Attributes:
        id: UUID primary key
        group_id: Owning group
        query_id: Member query
        added_at: When the query was added
    """

    __tablename__ = "group_items"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
        server_default=text("gen_random_uuid()"),
    )

    group_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("groups.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    query_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("queries.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    added_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        server_default=text("now()"),
    )

    group: Mapped["Group"] = relationship("Group", back_populates="items")
    query: Mapped["Query"] = relationship("Query")

    __table_args__ = (
        UniqueConstraint("group_id", "query_id", name="uq_group_items_group_query"),
    )

    def __repr__(self) -> str:
        return f"<GroupItem(group_id={self.group_id!r}, query_id={self.query_id!r})>"
