"""Query model for imported search-analytics rows.

Rows are written by the nightly import pipeline and are read-only here:
- query_text / url: the search query and the landing page it surfaced
- impressions / clicks / ctr / avg_position: daily search performance
- is_opportunity: precomputed flag (high impressions, low CTR, mid position)
"""

from datetime import UTC, datetime
from datetime import date as date_type
from decimal import Decimal
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Float,
    Index,
    Integer,
    Numeric,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class Query(Base):
    """One search query's performance for one day.

    Attributes:
        id: UUID primary key
        date: Day the metrics were collected for
        query_text: The search query
        url: Landing page URL
        impressions: Impression count
        clicks: Click count
        ctr: Click-through rate as a fraction, 4 decimal places
        avg_position: Mean ranking position (may be null)
        is_opportunity: Whether the row looks like an optimization target
        created_at: Import timestamp
    """

    __tablename__ = "queries"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
        server_default=text("gen_random_uuid()"),
    )

    date: Mapped[date_type] = mapped_column(
        Date,
        nullable=False,
    )

    query_text: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )

    url: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )

    impressions: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text("0"),
    )

    clicks: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text("0"),
    )

    ctr: Mapped[Decimal] = mapped_column(
        Numeric(6, 4),
        nullable=False,
        default=Decimal("0"),
        server_default=text("0"),
    )

    avg_position: Mapped[float | None] = mapped_column(
        Float,
        nullable=True,
    )

    is_opportunity: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        server_default=text("now()"),
    )

    __table_args__ = (
        Index("ix_queries_impressions_date", "impressions", "date"),
    )

    def __repr__(self) -> str:
        return f"<Query(id={self.id!r}, query_text={self.query_text[:40]!r})>"
