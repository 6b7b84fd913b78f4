"""Recompute a group's stored metrics snapshot from its durable membership."""

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import get_logger
from app.repositories.group import GroupNotFound, GroupRepository
from app.schemas.ai_cluster import AggregatedMetrics
from app.services.query_metrics import calculate_group_metrics

logger = get_logger(__name__)


@dataclass(frozen=True)
class GroupMetricsSnapshot:
    group_id: str
    metrics: AggregatedMetrics
    query_count: int


class GroupMetricsService:
    """Keeps Group.metrics_* and query_count equal to the aggregate of its items.

    Membership is always re-read from the database, never taken from the
    caller, so the snapshot reflects what is stored.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.groups = GroupRepository(session)

    async def recompute_and_persist(
        self, group_id: str
    ) -> GroupMetricsSnapshot | GroupNotFound:
        if await self.groups.get(group_id) is None:
            logger.warning(
                "Cannot recompute metrics for missing group",
                extra={"group_id": group_id},
            )
            return GroupNotFound(group_id=group_id)

        members = await self.groups.get_member_queries(group_id)
        metrics, query_count = calculate_group_metrics(members)
        await self.groups.update_metrics(group_id, metrics, query_count)

        logger.debug(
            "Group metrics recomputed",
            extra={
                "group_id": group_id,
                "query_count": query_count,
                "impressions": metrics.impressions,
                "clicks": metrics.clicks,
            },
        )
        return GroupMetricsSnapshot(
            group_id=group_id, metrics=metrics, query_count=query_count
        )
