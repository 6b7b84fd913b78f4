"""GroupRepository: group and membership persistence.

Conflicts and missing rows are returned as tagged results instead of raised:
- create() -> GroupCreated | DuplicateGroupName
- add_items() -> ItemsAdded | GroupNotFound
Unexpected database failures still raise SQLAlchemyError.

ERROR LOGGING REQUIREMENTS:
- Log method entry/exit at DEBUG level with parameters
- Log all exceptions with full stack trace and context
- Include entity IDs (group_id, user_id) in all logs
- Add timing logs for slow operations
"""

import time
from collections.abc import Sequence
from dataclasses import dataclass

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import db_logger, get_logger
from app.models.group import Group, GroupItem
from app.models.query import Query
from app.schemas.ai_cluster import AggregatedMetrics

logger = get_logger(__name__)

DUPLICATE_NAME_MESSAGE = "A group with this name already exists"


@dataclass(frozen=True)
class GroupCreated:
    group: Group


@dataclass(frozen=True)
class DuplicateGroupName:
    name: str

    @property
    def message(self) -> str:
        return DUPLICATE_NAME_MESSAGE


@dataclass(frozen=True)
class GroupNotFound:
    group_id: str

    @property
    def message(self) -> str:
        return f"Group not found: {self.group_id}"


@dataclass(frozen=True)
class ItemsAdded:
    added_count: int
    skipped_count: int = 0


GroupCreateResult = GroupCreated | DuplicateGroupName
AddItemsResult = ItemsAdded | GroupNotFound


class GroupRepository:
    """Repository for Group and GroupItem rows."""

    TABLE_NAME = "groups"
    ITEMS_TABLE_NAME = "group_items"
    SLOW_OPERATION_THRESHOLD_MS = 1000

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, group_id: str) -> Group | None:
        result = await self.session.execute(select(Group).where(Group.id == group_id))
        return result.scalar_one_or_none()

    async def name_exists(self, user_id: str, name: str) -> bool:
        """Case-insensitive name lookup within one owner's groups."""
        result = await self.session.execute(
            select(Group.id)
            .where(Group.user_id == user_id)
            .where(func.lower(Group.name) == func.lower(name))
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def create(
        self,
        user_id: str,
        name: str,
        ai_generated: bool = False,
    ) -> GroupCreateResult:
        """Create an empty group.

        The unique index on (user_id, lower(name)) is the source of truth;
        the pre-check only avoids a failed insert in the common case. On a
        constraint violation the current transaction is rolled back.

        Raises:
            SQLAlchemyError: On database errors other than the name conflict
        """
        start_time = time.monotonic()
        logger.debug(
            "Creating group",
            extra={"user_id": user_id, "name": name, "ai_generated": ai_generated},
        )

        if await self.name_exists(user_id, name):
            logger.debug(
                "Group name already taken",
                extra={"user_id": user_id, "name": name},
            )
            return DuplicateGroupName(name=name)

        group = Group(user_id=user_id, name=name, ai_generated=ai_generated)
        try:
            self.session.add(group)
            await self.session.flush()
        except IntegrityError as e:
            await self.session.rollback()
            db_logger.integrity_error(
                e, table=self.TABLE_NAME, context=f"Creating group name={name}"
            )
            return DuplicateGroupName(name=name)
        except SQLAlchemyError as e:
            db_logger.transaction_failure(
                e,
                table=self.TABLE_NAME,
                context=f"Creating group name={name}",
            )
            raise

        duration_ms = (time.monotonic() - start_time) * 1000
        logger.debug(
            "Group created",
            extra={
                "group_id": group.id,
                "user_id": user_id,
                "duration_ms": round(duration_ms, 2),
            },
        )
        if duration_ms > self.SLOW_OPERATION_THRESHOLD_MS:
            db_logger.slow_query(
                query="INSERT INTO groups",
                duration_ms=duration_ms,
                table=self.TABLE_NAME,
            )
        return GroupCreated(group=group)

    async def add_items(self, group_id: str, query_ids: Sequence[str]) -> AddItemsResult:
        """Add queries to a group.

        Ids are de-duplicated; ids with no matching query and queries
        already in the group are skipped.

        Raises:
            SQLAlchemyError: On database errors
        """
        start_time = time.monotonic()
        unique_ids = list(dict.fromkeys(query_ids))
        logger.debug(
            "Adding group items",
            extra={"group_id": group_id, "requested_count": len(query_ids)},
        )

        try:
            if await self.get(group_id) is None:
                return GroupNotFound(group_id=group_id)

            existing_queries = await self.session.execute(
                select(Query.id).where(Query.id.in_(unique_ids))
            )
            known_ids = set(existing_queries.scalars().all())

            current_items = await self.session.execute(
                select(GroupItem.query_id).where(GroupItem.group_id == group_id)
            )
            already_member = set(current_items.scalars().all())

            to_add = [
                query_id
                for query_id in unique_ids
                if query_id in known_ids and query_id not in already_member
            ]
            self.session.add_all(
                GroupItem(group_id=group_id, query_id=query_id) for query_id in to_add
            )
            await self.session.flush()

        except SQLAlchemyError as e:
            db_logger.transaction_failure(
                e,
                table=self.ITEMS_TABLE_NAME,
                context=f"Adding items to group_id={group_id}",
            )
            raise

        duration_ms = (time.monotonic() - start_time) * 1000
        logger.debug(
            "Group items added",
            extra={
                "group_id": group_id,
                "added_count": len(to_add),
                "skipped_count": len(query_ids) - len(to_add),
                "duration_ms": round(duration_ms, 2),
            },
        )
        if duration_ms > self.SLOW_OPERATION_THRESHOLD_MS:
            db_logger.slow_query(
                query="INSERT INTO group_items",
                duration_ms=duration_ms,
                table=self.ITEMS_TABLE_NAME,
            )
        return ItemsAdded(added_count=len(to_add), skipped_count=len(query_ids) - len(to_add))

    async def get_member_queries(self, group_id: str) -> list[Query]:
        """Queries currently in the group, as stored."""
        result = await self.session.execute(
            select(Query)
            .join(GroupItem, GroupItem.query_id == Query.id)
            .where(GroupItem.group_id == group_id)
        )
        return list(result.scalars().all())

    async def update_metrics(
        self,
        group_id: str,
        metrics: AggregatedMetrics,
        query_count: int,
    ) -> None:
        """Overwrite the group's metrics snapshot.

        Raises:
            SQLAlchemyError: On database errors
        """
        try:
            await self.session.execute(
                update(Group)
                .where(Group.id == group_id)
                .values(
                    metrics_impressions=metrics.impressions,
                    metrics_clicks=metrics.clicks,
                    metrics_ctr=metrics.ctr,
                    metrics_avg_position=metrics.avg_position,
                    query_count=query_count,
                )
            )
        except SQLAlchemyError as e:
            db_logger.transaction_failure(
                e,
                table=self.TABLE_NAME,
                context=f"Updating metrics for group_id={group_id}",
            )
            raise
