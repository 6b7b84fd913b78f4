"""Acceptance of cluster suggestions as durable groups.

Per selected suggestion, in selection order, inside its own transaction:
1. Create the group (ai_generated=True); a taken name is a per-item failure
2. Add the member queries
3. Recompute the group's metrics from its stored membership
4. Commit

Acceptance is not atomic across suggestions: groups committed before an
unexpected failure stay persisted and are reported on the raised
AcceptancePersistenceError. A best-effort cluster_accepted audit record is
written after the loop.

ERROR LOGGING REQUIREMENTS:
- Log acceptance start/complete with counts and timing
- Log every per-item failure with its code
- Never fail acceptance on an audit write
"""

import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import clustering_logger, get_logger
from app.models.group import Group
from app.models.user_action import UserActionType
from app.repositories.group import DuplicateGroupName, GroupNotFound, GroupRepository
from app.services.audit import record_user_action
from app.services.cluster_validation import is_acceptable_cluster
from app.services.group_metrics import GroupMetricsService
from app.utils.validation import is_valid_uuid

logger = get_logger(__name__)

NO_CLUSTERS_SELECTED = "No clusters selected"
INVALID_CLUSTERS_SELECTED = "Invalid clusters selected"

DUPLICATE_GROUP_NAME = "DUPLICATE_GROUP_NAME"
GROUP_NOT_FOUND = "GROUP_NOT_FOUND"


class AcceptableCluster(Protocol):
    @property
    def name(self) -> str: ...

    @property
    def query_ids(self) -> list[str]: ...


@dataclass(frozen=True)
class AcceptCommand:
    """Normalized acceptance input: trimmed name, unique member ids."""

    name: str
    query_ids: tuple[str, ...]


@dataclass(frozen=True)
class AcceptanceFailure:
    index: int
    name: str
    code: str
    error: str


@dataclass
class AcceptanceResult:
    """Groups created and suggestions rejected, in selection order."""

    created_groups: list[Group] = field(default_factory=list)
    failures: list[AcceptanceFailure] = field(default_factory=list)
    accepted_indices: list[int] = field(default_factory=list)

    @property
    def accepted_count(self) -> int:
        return len(self.created_groups)


class AcceptanceError(Exception):
    """Base exception for acceptance errors."""

    pass


class AcceptanceValidationError(AcceptanceError):
    """Raised before any persistence when the selection is unusable."""

    def __init__(self, message: str, invalid_names: list[str] | None = None) -> None:
        self.message = message
        self.invalid_names = invalid_names or []
        super().__init__(message)


class AcceptancePersistenceError(AcceptanceError):
    """Raised when the group store fails unexpectedly partway through."""

    def __init__(self, message: str, result: AcceptanceResult) -> None:
        self.message = message
        self.result = result
        super().__init__(message)

    @property
    def created_groups(self) -> list[Group]:
        return self.result.created_groups

    @property
    def failures(self) -> list[AcceptanceFailure]:
        return self.result.failures


def validate_selection(items: Sequence[AcceptableCluster]) -> None:
    """Reject the whole selection if it is empty or any item is unusable.

    Raises:
        AcceptanceValidationError: With NO_CLUSTERS_SELECTED or
            INVALID_CLUSTERS_SELECTED
    """
    if not items:
        raise AcceptanceValidationError(NO_CLUSTERS_SELECTED)

    invalid = [
        item.name
        for item in items
        if not is_acceptable_cluster(item.name, item.query_ids)
        or not all(is_valid_uuid(query_id) for query_id in item.query_ids)
    ]
    if invalid:
        raise AcceptanceValidationError(INVALID_CLUSTERS_SELECTED, invalid_names=invalid)


def build_accept_command(item: AcceptableCluster) -> AcceptCommand:
    return AcceptCommand(
        name=item.name.strip(),
        query_ids=tuple(dict.fromkeys(item.query_ids)),
    )


class AcceptanceOrchestrator:
    """Materializes selected suggestions as groups owned by one user."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._groups = GroupRepository(session)
        self._metrics = GroupMetricsService(session)

    async def accept(
        self,
        user_id: str,
        items: Sequence[AcceptableCluster],
    ) -> AcceptanceResult:
        """Accept the selected suggestions.

        Raises:
            AcceptanceValidationError: Nothing was persisted
            AcceptancePersistenceError: Earlier groups may be persisted
        """
        validate_selection(items)

        start_time = time.monotonic()
        clustering_logger.acceptance_start(user_id, len(items))
        result = AcceptanceResult()

        for index, item in enumerate(items):
            command = build_accept_command(item)
            try:
                outcome = await self._accept_one(user_id, command)
            except SQLAlchemyError as e:
                await self._session.rollback()
                logger.error(
                    "Cluster acceptance aborted",
                    extra={
                        "user_id": user_id,
                        "cluster_name": command.name,
                        "created_count": result.accepted_count,
                        "error_type": type(e).__name__,
                        "error_message": str(e),
                    },
                    exc_info=True,
                )
                raise AcceptancePersistenceError(
                    f"Failed to create group '{command.name}'", result
                ) from e

            if isinstance(outcome, Group):
                result.created_groups.append(outcome)
                result.accepted_indices.append(index)
                continue

            code = (
                DUPLICATE_GROUP_NAME
                if isinstance(outcome, DuplicateGroupName)
                else GROUP_NOT_FOUND
            )
            clustering_logger.acceptance_item_failed(
                user_id, command.name, code, outcome.message
            )
            result.failures.append(
                AcceptanceFailure(
                    index=index, name=command.name, code=code, error=outcome.message
                )
            )

        await record_user_action(
            self._session,
            user_id=user_id,
            action_type=UserActionType.CLUSTER_ACCEPTED,
            metadata={
                "acceptedCount": result.accepted_count,
                "createdGroupIds": [g.id for g in result.created_groups],
            },
        )

        clustering_logger.acceptance_complete(
            user_id,
            result.accepted_count,
            len(result.failures),
            (time.monotonic() - start_time) * 1000,
        )
        return result

    async def _accept_one(
        self, user_id: str, command: AcceptCommand
    ) -> Group | DuplicateGroupName | GroupNotFound:
        created = await self._groups.create(user_id, command.name, ai_generated=True)
        if isinstance(created, DuplicateGroupName):
            return created

        group = created.group
        added = await self._groups.add_items(group.id, command.query_ids)
        if isinstance(added, GroupNotFound):
            await self._session.rollback()
            return added

        snapshot = await self._metrics.recompute_and_persist(group.id)
        if isinstance(snapshot, GroupNotFound):
            await self._session.rollback()
            return snapshot

        await self._session.commit()
        await self._session.refresh(group)
        # later rollbacks in this run must not expire committed groups
        self._session.expunge(group)
        logger.debug(
            "Group created from cluster suggestion",
            extra={
                "group_id": group.id,
                "user_id": user_id,
                "query_count": snapshot.query_count,
                "added_count": added.added_count,
            },
        )
        return group
