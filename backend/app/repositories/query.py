"""QueryRepository: read access to imported query rows.

Queries are owned by the import pipeline; this repository never writes them.

ERROR LOGGING REQUIREMENTS:
- Log method entry/exit at DEBUG level with parameters
- Log all exceptions with full stack trace and context
- Add timing logs for slow operations
"""

import time
from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import db_logger, get_logger
from app.models.query import Query

logger = get_logger(__name__)

DEFAULT_CHUNK_SIZE = 1000


class QueryRepository:
    """Read-only repository for Query rows."""

    TABLE_NAME = "queries"
    SLOW_OPERATION_THRESHOLD_MS = 1000

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def fetch_candidates(
        self,
        limit: int,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> list[Query]:
        """Fetch up to ``limit`` queries, highest impressions first.

        Ties are broken by most recent date, then id, so paging is stable.
        Rows are read in chunks of ``chunk_size``.

        Raises:
            SQLAlchemyError: On database errors
        """
        start_time = time.monotonic()
        logger.debug(
            "Fetching candidate queries",
            extra={"limit": limit, "chunk_size": chunk_size},
        )

        rows: list[Query] = []
        try:
            while len(rows) < limit:
                page_size = min(chunk_size, limit - len(rows))
                result = await self.session.execute(
                    select(Query)
                    .order_by(
                        Query.impressions.desc(),
                        Query.date.desc(),
                        Query.id.asc(),
                    )
                    .offset(len(rows))
                    .limit(page_size)
                )
                chunk = list(result.scalars().all())
                rows.extend(chunk)
                if len(chunk) < page_size:
                    break

        except SQLAlchemyError as e:
            logger.error(
                "Failed to fetch candidate queries",
                extra={
                    "limit": limit,
                    "fetched": len(rows),
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                },
                exc_info=True,
            )
            raise

        duration_ms = (time.monotonic() - start_time) * 1000
        logger.debug(
            "Candidate queries fetched",
            extra={"count": len(rows), "duration_ms": round(duration_ms, 2)},
        )
        if duration_ms > self.SLOW_OPERATION_THRESHOLD_MS:
            db_logger.slow_query(
                query="SELECT FROM queries ORDER BY impressions DESC, date DESC",
                duration_ms=duration_ms,
                table=self.TABLE_NAME,
            )
        return rows

    async def get_by_ids(self, query_ids: Sequence[str]) -> list[Query]:
        """Fetch the queries that exist among ``query_ids`` (any order)."""
        if not query_ids:
            return []
        try:
            result = await self.session.execute(
                select(Query).where(Query.id.in_(list(query_ids)))
            )
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(
                "Failed to fetch queries by ID",
                extra={
                    "id_count": len(query_ids),
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                },
                exc_info=True,
            )
            raise
