"""Tests for GroupRepository tagged results and membership writes."""

import uuid
from unittest.mock import patch

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from app.models import Group, GroupItem
from app.repositories.group import (
    DuplicateGroupName,
    GroupCreated,
    GroupNotFound,
    GroupRepository,
    ItemsAdded,
)
from app.schemas.ai_cluster import AggregatedMetrics


class TestCreate:
    """Tests for GroupRepository.create."""

    async def test_creates_group(self, db_session) -> None:
        result = await GroupRepository(db_session).create("user-1", "Pricing", ai_generated=True)

        assert isinstance(result, GroupCreated)
        assert result.group.id is not None
        assert result.group.ai_generated is True
        assert result.group.query_count == 0

    async def test_duplicate_name_is_case_insensitive(self, db_session) -> None:
        repo = GroupRepository(db_session)
        await repo.create("user-1", "Pricing")

        result = await repo.create("user-1", "pRiCiNg")

        assert result == DuplicateGroupName(name="pRiCiNg")
        assert result.message == "A group with this name already exists"

    async def test_names_scoped_per_user(self, db_session) -> None:
        repo = GroupRepository(db_session)
        await repo.create("user-1", "Pricing")

        assert isinstance(await repo.create("user-2", "Pricing"), GroupCreated)

    async def test_integrity_error_becomes_duplicate(self, db_session) -> None:
        repo = GroupRepository(db_session)

        with (
            patch.object(repo, "name_exists", return_value=False),
            patch.object(
                db_session,
                "flush",
                side_effect=IntegrityError("INSERT INTO groups", {}, Exception("unique")),
            ),
        ):
            result = await repo.create("user-1", "Pricing")

        assert isinstance(result, DuplicateGroupName)


class TestAddItems:
    """Tests for GroupRepository.add_items."""

    async def test_adds_known_queries_once(self, db_session, seed_queries) -> None:
        rows = await seed_queries({}, {})
        repo = GroupRepository(db_session)
        group = (await repo.create("user-1", "Pricing")).group

        result = await repo.add_items(
            group.id, [rows[0].id, rows[0].id, rows[1].id, str(uuid.uuid4())]
        )

        assert result == ItemsAdded(added_count=2, skipped_count=2)
        members = await repo.get_member_queries(group.id)
        assert {m.id for m in members} == {rows[0].id, rows[1].id}

    async def test_existing_members_skipped(self, db_session, seed_queries) -> None:
        rows = await seed_queries({})
        repo = GroupRepository(db_session)
        group = (await repo.create("user-1", "Pricing")).group
        await repo.add_items(group.id, [rows[0].id])

        result = await repo.add_items(group.id, [rows[0].id])

        assert result.added_count == 0
        items = (await db_session.execute(select(GroupItem))).scalars().all()
        assert len(items) == 1

    async def test_unknown_group(self, db_session) -> None:
        missing = str(uuid.uuid4())

        result = await GroupRepository(db_session).add_items(missing, [str(uuid.uuid4())])

        assert result == GroupNotFound(group_id=missing)
        assert missing in result.message


class TestUpdateMetrics:
    """Tests for GroupRepository.update_metrics."""

    async def test_overwrites_snapshot(self, db_session) -> None:
        repo = GroupRepository(db_session)
        group = (await repo.create("user-1", "Pricing")).group

        await repo.update_metrics(
            group.id,
            AggregatedMetrics(impressions=500, clicks=25, ctr=0.05, avg_position=3.2),
            query_count=4,
        )

        stored = (
            await db_session.execute(select(Group).where(Group.id == group.id))
        ).scalar_one()
        assert stored.metrics_impressions == 500
        assert stored.metrics_clicks == 25
        assert stored.metrics_ctr == 0.05
        assert stored.metrics_avg_position == 3.2
        assert stored.query_count == 4
